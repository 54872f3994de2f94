#!/usr/bin/env python3
"""
DualChat - Two-agent deliberative chat

Command-line interface: Cognito and Muse discuss your query and write the
final answer into a shared Markdown notepad.

Usage:
    python scripts/dualchat.py
    python scripts/dualchat.py "Compare B-trees and LSM trees"
    python scripts/dualchat.py --mode ai-driven --image diagram.png
    python scripts/dualchat.py --timing  # Print model call timings on exit
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console as RichConsole
from rich.markdown import Markdown

COMMANDS_HELP = """Commands:
  /retry          retry the failed step and continue the discussion
  /undo, /redo    step through notepad history
  /notepad        show the notepad
  /clear          clear chat and notepad
  /image <path>   attach an image to the next query
  /quit           exit"""


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="DualChat: two AI agents discuss your query and write the answer to a notepad",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/dualchat.py                          # Interactive chat
  python scripts/dualchat.py "Explain CRDTs"          # One-shot query
  python scripts/dualchat.py --mode ai-driven         # Agents decide when to stop
  python scripts/dualchat.py --turns 4 --no-persist   # Longer talk, nothing saved
        """,
    )

    parser.add_argument("query", nargs="?", help="Run a single query and exit")

    parser.add_argument("--config", "-c", help="Path to dualchat_config.yaml")

    parser.add_argument("--image", "-i", help="Image to attach to the first query")

    parser.add_argument(
        "--mode", "-m",
        choices=["fixed", "ai-driven"],
        help="Discussion mode (default from config)",
    )

    parser.add_argument("--turns", "-n", type=int, help="Number of Muse turns in fixed mode")

    parser.add_argument("--provider", "-p", choices=["gemini", "openai"], help="Model provider")

    parser.add_argument("--state-dir", help="Where to keep the transcript and notepad")

    parser.add_argument("--reset", action="store_true", help="Delete the saved chat state before starting")

    parser.add_argument(
        "--no-persist",
        action="store_true",
        help="Do not load or save chat state",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output (debug logs, reasoning traces)",
    )

    parser.add_argument("--no-color", action="store_true", help="Plain output without ANSI colours")

    parser.add_argument(
        "--timing", "-t",
        action="store_true",
        help="Print per-agent model call timings on exit",
    )

    return parser.parse_args()


def build_settings(args: argparse.Namespace):
    from DualChat.config import load_settings
    from DualChat.core import DiscussionMode

    settings = load_settings(Path(args.config) if args.config else None)
    return settings.with_overrides(
        provider=args.provider,
        discussion_mode=DiscussionMode(args.mode) if args.mode else None,
        fixed_turns=args.turns,
        state_dir=args.state_dir,
    )


def show_message(message) -> None:
    """Transcript listener: echo new messages to the terminal."""
    from DualChat.core import Sender
    from DualChat.utils import console

    if message.sender == Sender.USER:
        return
    if message.sender == Sender.SYSTEM:
        console.system_notice(message.text)
        return
    console.agent_message(message.sender.value, message.text, message.duration_ms, message.thoughts)


def show_notepad(orchestrator, rich_console: RichConsole) -> None:
    from DualChat.utils import console

    notepad = orchestrator.notepad
    updated_by = notepad.last_updated_by.value if notepad.last_updated_by else "-"
    console.header(f"Notepad (version {notepad.history_index + 1}/{len(notepad.history)}, last edit: {updated_by})")
    rich_console.print(Markdown(notepad.content))
    console.separator()


def report_outcome(orchestrator) -> None:
    """Console summary after a session or a manual retry."""
    from DualChat.infrastructure import CredentialError, StepFailedError, handle_error
    from DualChat.utils import console

    status = orchestrator.api_key_status
    if not status.ok:
        kind = "missing-credential" if status.is_missing else "invalid-credential"
        handle_error(CredentialError(status.message or "API key problem", kind=kind), "Session")
        return

    failed = orchestrator.failed_step
    if failed is not None:
        handle_error(StepFailedError(f"{failed.step.label} failed", step=failed.step, handled=True), "Session")
        return

    if orchestrator.last_completed_turn_count == 0:
        console.info("Stopped")
        return
    console.success(
        f"Done in {orchestrator.elapsed_seconds:.1f}s after {orchestrator.last_completed_turn_count} turn(s)"
    )


async def run_with_interrupt(orchestrator, coro) -> None:
    """Await ``coro``; Ctrl+C stops the session instead of killing the process."""
    from DualChat.utils import console

    loop = asyncio.get_running_loop()

    def handle_interrupt(signum, frame):
        console.warning("Stopping...")
        loop.call_soon_threadsafe(orchestrator.stop)

    previous = signal.signal(signal.SIGINT, handle_interrupt)
    try:
        await coro
    finally:
        signal.signal(signal.SIGINT, previous)


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    from DualChat.core import ImagePart, Notepad
    from DualChat.orchestrators import SessionOrchestrator
    from DualChat.storage import StateStore, Transcript
    from DualChat.utils import console, print_timing_summary

    if args.verbose:
        console.set_verbose(True)
    if args.no_color:
        console.enable_colors(False)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    try:
        settings = build_settings(args)
    except (FileNotFoundError, ValueError) as e:
        console.error(f"Invalid configuration: {e}")
        return 1

    store = None if args.no_persist else StateStore(settings.state_dir)
    if store is not None and args.reset:
        store.clear()
        console.info(f"Cleared saved state in {store.state_dir}")
    if store is not None:
        try:
            transcript = store.load_transcript()
        except ValueError as e:
            console.warning(f"Could not read saved transcript, starting fresh: {e}")
            transcript = Transcript()
        notepad = Notepad(saved_content=store.load_notepad())
    else:
        transcript, notepad = Transcript(), Notepad()

    orchestrator = SessionOrchestrator(settings, transcript=transcript, notepad=notepad, store=store)
    rich_console = RichConsole()
    transcript.subscribe(show_message)
    orchestrator.initialize(clear=len(transcript) == 0)
    if store is not None and len(transcript) > 1:
        console.info(f"Restored {len(transcript)} messages from {store.state_dir}")

    image = None
    if args.image:
        try:
            image = ImagePart.from_file(args.image)
        except FileNotFoundError as e:
            console.error(str(e))
            return 1

    try:
        if args.query:
            await run_with_interrupt(orchestrator, orchestrator.start_session(args.query, image=image))
            report_outcome(orchestrator)
            show_notepad(orchestrator, rich_console)
            return 0 if orchestrator.failed_step is None and orchestrator.api_key_status.ok else 1

        console.header("DualChat - Cognito & Muse")
        print(COMMANDS_HELP)
        print()

        while True:
            try:
                line = console.user_prompt().strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\n  Goodbye!")
                break

            if not line:
                continue

            command, _, argument = line.partition(" ")
            command = command.lower()

            if command == "/quit":
                break
            elif command == "/retry":
                if orchestrator.failed_step is None:
                    console.info("Nothing to retry")
                    continue
                await run_with_interrupt(orchestrator, orchestrator.retry_failed_step())
                report_outcome(orchestrator)
            elif command == "/undo":
                if not orchestrator.undo_notepad():
                    console.info("Nothing to undo")
                else:
                    show_notepad(orchestrator, rich_console)
            elif command == "/redo":
                if not orchestrator.redo_notepad():
                    console.info("Nothing to redo")
                else:
                    show_notepad(orchestrator, rich_console)
            elif command == "/notepad":
                show_notepad(orchestrator, rich_console)
            elif command == "/clear":
                orchestrator.initialize(clear=True)
                orchestrator.save_state()
                console.success("Chat and notepad cleared")
            elif command == "/image":
                path = argument.strip()
                if not path:
                    image = None
                    console.info("Image detached")
                    continue
                try:
                    image = ImagePart.from_file(path)
                    console.success(f"Attached {image.name} to the next query")
                except FileNotFoundError as e:
                    console.error(str(e))
            elif command.startswith("/"):
                console.warning(f"Unknown command {command}")
                print(COMMANDS_HELP)
            else:
                await run_with_interrupt(orchestrator, orchestrator.start_session(line, image=image))
                image = None
                report_outcome(orchestrator)
                if orchestrator.failed_step is None:
                    show_notepad(orchestrator, rich_console)

        return 0

    finally:
        await orchestrator.aclose()
        if args.timing:
            print_timing_summary(orchestrator.transcript.messages, orchestrator.elapsed_seconds)


def main() -> None:
    """Main entry point."""
    args = parse_args()
    exit_code = asyncio.run(main_async(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
