"""Index, cache and search coding-assistant session logs."""
