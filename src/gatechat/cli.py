"""CLI entry point for gatechat."""

import asyncio
from pathlib import Path

import typer

APP_HELP = """
Inspect gateway chat sessions.
"""

REPLAY_HELP = """
Replay a recorded push-event log and print the resulting transcript as JSON.

Each line of the event log is one gateway chat event:
  {"runId": "r1", "sessionKey": "main", "seq": 1, "state": "delta", "message": {"content": "Hel"}}

\b
States:
  delta     streaming fragment, appended to the run's message
  final     authoritative content, replaces the run's message
  error     surfaces errorMessage, ends the run
  aborted   ends the run silently

\b
Examples:
  # Replay events on top of an empty transcript
  gatechat replay events.jsonl

  # Seed the transcript from a history snapshot and send a message first
  gatechat replay events.jsonl --history history.json --send "hi"

  # Compact output for piping
  gatechat replay events.jsonl --compact | jq '.messages[-1].content'
"""

app = typer.Typer(add_completion=False, help=APP_HELP)


@app.callback()
def main() -> None:
    pass


@app.command(help=REPLAY_HELP)
def replay(
    events_path: Path = typer.Argument(..., help="Path to JSONL push-event log"),
    history: Path | None = typer.Option(
        None, "--history", help="JSON file with history records (a list or {messages: [...]})"
    ),
    send: str | None = typer.Option(None, "--send", help="Send this message before replaying"),
    run_id: str | None = typer.Option(None, "--run-id", help="Run id acknowledged for --send"),
    output: Path | None = typer.Option(None, "-o", "--output", help="Output JSON file path"),
    compact: bool = typer.Option(False, "--compact", help="No indentation (for piping)"),
) -> None:
    import json

    from .config import get_settings
    from .gateway import StaticGateway
    from .log import configure_logging
    from .orchestrator import ChatOrchestrator
    from .parser import load_records
    from .renderer import render_json

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)

    for path in [events_path, history]:
        if path is not None and not path.exists():
            typer.echo(f"Error: File not found: {path}", err=True)
            raise typer.Exit(1)

    history_messages = None
    if history is not None:
        data = json.loads(history.read_text())
        history_messages = data.get("messages", []) if isinstance(data, dict) else data

    gateway = StaticGateway(history_messages=history_messages, run_ids=[run_id] if run_id else [])
    orchestrator = ChatOrchestrator(gateway, settings)

    async def run() -> None:
        await orchestrator.load_history()
        if send is not None:
            await orchestrator.send(send)
        for event in load_records(events_path):
            orchestrator.handle_event(event)

    asyncio.run(run())
    json_str = render_json(orchestrator.store, settings.session_key, compact=compact)
    orchestrator.close()

    if output is None:
        typer.echo(json_str)
    else:
        output.write_text(json_str)
        typer.echo(f"Written to {output}", err=True)


if __name__ == "__main__":
    app()
