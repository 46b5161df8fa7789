#!/usr/bin/env python3
"""
Code Gatekeeper terminal front-end.

Usage:
    # Generate code, then take the quiz by typing answers
    python scripts/run_gatekeeper.py "Create a rate limiter middleware for Express"

    # Generate code, then open a tutor session on one of its topics
    python scripts/run_gatekeeper.py --tutor "Async/Await & Promises" "Fetch users with retries"

    # General tutor session, no code
    python scripts/run_gatekeeper.py --tutor ""

    # Speak the feature description instead of typing it
    python scripts/run_gatekeeper.py --audio feature.webm

    # Utility commands
    python scripts/run_gatekeeper.py --status   # Show credential status
    python scripts/run_gatekeeper.py --serve    # Run the HTTP API

Inside a session, type a message and press enter. ``/end`` closes the
session, ``/status`` shows the score and transcript so far.

Configuration:
    ELEVENLABS_API_KEY, ELEVENLABS_AGENT_ID, ANTHROPIC_API_KEY (required)
    N8N_WEBHOOK_URL (optional approval workflow)
    OPENAI_API_KEY (for --audio transcription)
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from code_gatekeeper.config import GatekeeperConfig, configure_logging
from code_gatekeeper.errors import GatekeeperError
from code_gatekeeper.orchestrator import GatekeeperApp
from code_gatekeeper.session_schema import SessionStatus
from code_gatekeeper.transcription import Transcriber
from code_gatekeeper.visualization import (
    ExportFormat,
    SessionRenderer,
    render_approval,
    render_config_banner,
    render_entry,
    render_status,
    render_topics,
)


def print_notifications(app: GatekeeperApp) -> None:
    for note in app.drain_notifications():
        print(f"[{note.level}] {note.message}")


async def session_loop(app: GatekeeperApp) -> None:
    """Relay typed lines to the agent until the session closes."""
    renderer = SessionRenderer(app.state, app.config.scoring.pass_threshold)
    printed = 0

    while app.sessions.is_open:
        for entry in app.state.transcript[printed:]:
            print(render_entry(entry))
        printed = len(app.state.transcript)

        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            line = "/end"

        # The agent may have hung up while we were waiting for input
        if not app.sessions.is_open:
            break

        line = line.strip()
        if not line:
            continue
        if line == "/end":
            await app.end_session()
            break
        if line == "/status":
            print(renderer.render_text())
            continue
        try:
            await app.send_text(line)
        except GatekeeperError as e:
            print(f"Error: {e}", file=sys.stderr)
            break
        # Give the agent a moment to answer before prompting again
        await asyncio.sleep(1.0)

    print()
    print(renderer.render_text())


async def run(args: argparse.Namespace, config: GatekeeperConfig) -> int:
    app = GatekeeperApp(config)
    try:
        return await _run(app, args, config)
    finally:
        await app.end_session()


async def _run(app: GatekeeperApp, args: argparse.Namespace, config: GatekeeperConfig) -> int:
    prompt = args.prompt
    if args.audio:
        print(f"Transcribing {args.audio}")
        try:
            prompt = await Transcriber(config).transcribe(args.audio)
        except GatekeeperError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"Heard: {prompt}")

    if prompt:
        print(f"Generating code for: {prompt}")
        try:
            artifact = await app.generate(prompt)
        except GatekeeperError as e:
            print_notifications(app)
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print_notifications(app)
        print()
        print(artifact.source_text)
        print()
        print("Topics:")
        print(render_topics(app.topics))
        print()

    try:
        if args.tutor is not None:
            await app.start_tutor(args.tutor or None)
        else:
            await app.start_quiz()
    except GatekeeperError as e:
        print_notifications(app)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print_notifications(app)

    await session_loop(app)
    print_notifications(app)

    if args.export:
        path = Path(args.export)
        fmt = {
            ".json": ExportFormat.JSON,
            ".html": ExportFormat.HTML,
            ".md": ExportFormat.MARKDOWN,
        }.get(path.suffix, ExportFormat.TEXT)
        SessionRenderer(app.state, config.scoring.pass_threshold).export(fmt, path)
        print(f"Transcript written to {path}")

    if app.status in (SessionStatus.PASSED, SessionStatus.FAILED):
        record = await app.approve()
        print()
        print(render_approval(record))
        if args.review and record.approved:
            print()
            print(app.review())
        return 0 if record.approved else 2

    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Generate code, then prove you understand it before it ships",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("prompt", nargs="?", help="Feature description to generate code for")
    parser.add_argument("--audio", metavar="PATH", help="Transcribe the feature description from an audio file")
    parser.add_argument(
        "--tutor",
        metavar="TOPIC",
        help="Open a tutor session on TOPIC instead of the quiz (empty string for a general session)",
    )
    parser.add_argument("--export", metavar="PATH", help="Write the transcript to PATH (.json, .html, .md, .txt)")
    parser.add_argument("--review", action="store_true", help="Print the code review after approval")
    parser.add_argument("--config", type=Path, help="Path to a JSON config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    # Utility commands
    parser.add_argument("--status", action="store_true", help="Show credential status")
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API")
    parser.add_argument("--host", default="127.0.0.1", help="Server host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Server port (default: 8000)")

    args = parser.parse_args()
    configure_logging("DEBUG" if args.verbose else None)
    config = GatekeeperConfig.load(args.config)

    if args.status:
        banner = render_config_banner(config)
        print(banner or "All required API keys configured.")
        print(render_status(SessionStatus.IDLE))
        return

    if args.serve:
        from code_gatekeeper.server import run_server

        run_server(args.host, args.port, config)
        return

    if not args.prompt and not args.audio and args.tutor is None:
        parser.print_help()
        sys.exit(1)

    banner = render_config_banner(config)
    if banner:
        print(banner, file=sys.stderr)

    try:
        sys.exit(asyncio.run(run(args, config)))
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
