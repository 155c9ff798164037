"""Interactive DM assistant in the terminal.

Chat messages go to the session's background worker; events are printed as
they arrive, so ``/cancel`` can interrupt a turn that is still running.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from src.session_orchestrator import (
    AssistantErrorEvent,
    AssistantResponse,
    AssistantThinking,
    AssistantThinkingDone,
    CommandError,
    ConfigurationError,
    Conversation,
    ExitCommand,
    ResetCommand,
    RollCommand,
    Session,
    SessionBuilder,
    SessionConfig,
    configure_logging,
    parse_command,
)
from src.session_orchestrator.config import DEFAULT_MAX_TOKENS, DEFAULT_MODEL
from src.toolkits import default_toolkits

logger = logging.getLogger("dmcli")

HELP_TEXT = """\
Commands:
  /roll <expr>...  roll dice locally, e.g. /roll 1d20+5 2d6
  /reset           forget the conversation (the persona prompt is kept)
  /cancel          abort the turn in progress
  /exit            quit"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Dungeon master's assistant")
    parser.add_argument(
        "--model", default=None,
        help=f"LLM model in 'provider:model' format (default: {DEFAULT_MODEL})",
    )
    parser.add_argument(
        "--max-tokens", type=int, default=None,
        help=f"Maximum output tokens per response (default: {DEFAULT_MAX_TOKENS})",
    )
    parser.add_argument(
        "--vault", default=None,
        help="Markdown notes vault exposed to the assistant through the notes tools",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-file", default=None,
        help="Write logs to this file instead of stderr",
    )
    return parser


def _print_event(event: object, transcript: Conversation) -> None:
    """Print one event and record it in the presentation transcript."""
    if isinstance(event, AssistantResponse):
        transcript.assistant(event.text)
        print(f"\n{event.text}\n")
    elif isinstance(event, AssistantThinking):
        transcript.thinking(event.text, event.tool_calls)
        if event.text:
            print(f"\n{event.text}")
        for call in event.tool_calls:
            print(f"  ... {call.name}({call.arguments})")
    elif isinstance(event, AssistantThinkingDone):
        transcript.thinking_done(event.results)
        for result in event.results:
            print(f"  -> {result.to_text()}")
    elif isinstance(event, AssistantErrorEvent):
        transcript.error(event.text)
        print(f"\n[error] {event.text}\n")


async def _print_events(session: Session, transcript: Conversation) -> None:
    async for event in session.events:
        _print_event(event, transcript)


async def run(args: argparse.Namespace) -> int:
    config = SessionConfig.from_env(
        model=args.model, max_tokens=args.max_tokens, notes_vault=args.vault
    )
    builder = SessionBuilder().with_config(config)
    for toolkit in default_toolkits(config):
        builder.with_toolkit(toolkit)
    try:
        session = builder.build()
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 2

    transcript = Conversation()
    session.start()
    printer = asyncio.create_task(_print_events(session, transcript))
    print(f"DM assistant ready ({config.model}). Type /help for commands.")

    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            line = line.strip()
            if not line:
                continue
            if line in ("/help", "/?"):
                print(HELP_TEXT)
                continue
            if line == "/cancel":
                if not session.cancel():
                    print("Nothing to cancel.")
                continue

            try:
                command = parse_command(line)
            except CommandError as e:
                print(e.message)
                continue

            if command is None:
                transcript.user(line)
                session.push(line)
            elif isinstance(command, ExitCommand):
                break
            elif isinstance(command, ResetCommand):
                await session.reset()
                transcript.clear(keep_pinned=False)
                print("Conversation reset.")
            elif isinstance(command, RollCommand):
                try:
                    print(command.run())
                except CommandError as e:
                    print(e.message)
    finally:
        session.cancel()
        await session.close()
        await printer
    logger.debug("Transcript held %d message(s) at exit", len(transcript))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_file)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
