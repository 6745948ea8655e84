"""Command-line interface for agent-sessions."""
