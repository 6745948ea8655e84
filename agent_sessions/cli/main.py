#!/usr/bin/env python3
"""
Command-line interface for agent-sessions.

Lists, searches and views Claude Code and Codex sessions, and prints usage
stats. Each command opens one SessionStore, so the session cache is written
at most once per invocation.
"""

from __future__ import annotations

from datetime import datetime

import typer

from agent_sessions.cli.logger import configure_logging
from agent_sessions.cli.render import (
    list_time_ms,
    render_conversation,
    render_search_results,
    render_session_list,
    render_stats,
)
from agent_sessions.config.base import get_settings
from agent_sessions.exceptions import AgentSessionError, SessionNotFoundError
from agent_sessions.services.store import SessionStore

app = typer.Typer(
    name='agent-sessions',
    help='Session tools for Claude Code and Codex',
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: int = typer.Option(0, '--verbose', '-v', count=True, help='Verbose output (-vv for debug)'),
) -> None:
    """Session tools for Claude Code and Codex."""
    configure_logging(verbose)


def _open_store() -> SessionStore:
    try:
        return SessionStore.from_settings(get_settings())
    except (FileNotFoundError, ValueError) as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


def _parse_since(since: str) -> int:
    """Local midnight of a YYYY-MM-DD date, in epoch milliseconds."""
    try:
        day = datetime.strptime(since, '%Y-%m-%d')
    except ValueError:
        raise typer.BadParameter(f'Invalid date format: {since} (use YYYY-MM-DD)', param_hint="'--since'") from None
    return int(day.timestamp() * 1000)


@app.command('list')
def list_sessions(
    project: str | None = typer.Option(None, '--project', '-p', help='Only sessions whose project contains this'),
    since: str | None = typer.Option(None, '--since', '-s', help='Only sessions active since YYYY-MM-DD'),
    limit: int = typer.Option(50, '--limit', '-l', min=0, help='Maximum sessions to show'),
    json_output: bool = typer.Option(False, '--json', help='Output JSON'),
) -> None:
    """List resumable sessions, most recently modified first."""
    since_ms = _parse_since(since) if since is not None else None

    with _open_store() as store:
        sessions = store.all()

    if project:
        needle = project.lower()
        sessions = [session for session in sessions if needle in session.project.lower()]
    if since_ms is not None:
        sessions = [session for session in sessions if session.timestamp >= since_ms]

    sessions.sort(key=list_time_ms, reverse=True)
    typer.echo(render_session_list(sessions[:limit], json_output=json_output))


@app.command()
def search(
    query: str = typer.Argument(..., help='Regular expression (case-insensitive)'),
    project: str | None = typer.Option(None, '--project', '-p', help='Only sessions whose project contains this'),
    max_results: int = typer.Option(50, '--max', '-m', min=1, help='Maximum matches'),
) -> None:
    """Search session transcripts."""
    try:
        with _open_store() as store:
            hits = store.search(query, project=project, max_results=max_results)
    except AgentSessionError as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    typer.echo(render_search_results(hits))


@app.command()
def view(
    session_id: str = typer.Argument(..., help='Session ID (full or unambiguous prefix)'),
    thinking: bool = typer.Option(False, '--thinking', help='Include thinking blocks'),
    tail: int | None = typer.Option(None, '--tail', '-t', min=0, help='Only show the last N messages'),
) -> None:
    """Print a session's conversation."""
    try:
        with _open_store() as store:
            session = store.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            messages = store.read_messages(session)
    except AgentSessionError as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    typer.echo('\n'.join(render_conversation(session, messages, thinking=thinking, tail=tail)))


@app.command()
def stats() -> None:
    """Show usage statistics for both sources."""
    with _open_store() as store:
        report = store.build_stats_report()
    typer.echo(render_stats(report))


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == '__main__':
    main()
