#!/usr/bin/env python3
# Terminal chat front-end.
# Run with: walkwithme-chat --relay-url http://localhost:8787/
import argparse
import dataclasses
import sys
from collections.abc import Callable
from typing import TextIO

from walkwithme_client.app.config import get_settings
from walkwithme_client.app.controller import THINKING_TEXT, ChatController
from walkwithme_client.infrastructure.data_models import ASSISTANT, USER
from walkwithme_client.services.conversation_service import ConversationBuffer
from walkwithme_client.services.relay_client_service import RelayClient
from walkwithme_client.services.snapshot_service import build_snapshot_store
from walkwithme_shared.platform_manager import create_logger

QUIT_COMMANDS = {"/quit", "/exit"}

READY_PROMPT = "me> "
WAITING_PROMPT = "(waiting for a reply) "

# ANSI: cursor up one line, then clear it
_ERASE_LINE = "\x1b[1A\x1b[2K"


class ConsoleChatView:
    """ChatView that prints labelled bubbles to a terminal stream."""

    labels = {USER: "me", ASSISTANT: "friend"}

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout
        self.prompt = READY_PROMPT
        self.composer_enabled = True
        self.submit_enabled = True
        self._last_bubble = 0
        self._bubble_count = 0

    def _write_bubble(self, label: str, text: str) -> int:
        self.stream.write(f"[{label}] {text}\n")
        self.stream.flush()
        self._bubble_count += 1
        self._last_bubble = self._bubble_count
        return self._bubble_count

    def render_message(self, role: str, text: str) -> int:
        return self._write_bubble(self.labels.get(role, role), text)

    def show_thinking(self) -> int:
        return self._write_bubble(self.labels[ASSISTANT], THINKING_TEXT)

    def remove_bubble(self, bubble: int) -> None:
        # Only the newest line can be erased in place
        if bubble == self._last_bubble and self.stream.isatty():
            self.stream.write(_ERASE_LINE)
            self.stream.flush()

    def lock_composer(self) -> None:
        self.composer_enabled = False
        self.prompt = WAITING_PROMPT

    def unlock_composer(self) -> None:
        self.composer_enabled = True
        self.prompt = READY_PROMPT

    def set_submit_enabled(self, enabled: bool) -> None:
        self.submit_enabled = enabled

    def focus_composer(self) -> None:
        self.stream.write("(type a message, or /quit to leave)\n")
        self.stream.flush()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments for the chat front-end.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(description="walkwithme terminal chat")

    parser.add_argument("--relay-url", "-u", help="Relay endpoint (default from config)")
    parser.add_argument("--snapshot-path", "-s", help="Conversation snapshot file")
    parser.add_argument(
        "--no-snapshot", action="store_true", help="Do not restore or save the conversation"
    )
    parser.add_argument("--model", "-m", help="Model identifier forwarded to the relay")
    parser.add_argument(
        "--log-level",
        "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Set the logging level (default: WARNING)",
    )

    return parser.parse_args(argv)


def run(controller: ChatController, view: ConsoleChatView, read: Callable[[str], str]) -> None:
    """Read composer lines until EOF or a quit command."""
    while True:
        try:
            line = read(view.prompt)
        except EOFError:
            break
        if line.strip() in QUIT_COMMANDS:
            break
        controller.submit(line)


def main(argv: list[str] | None = None) -> int:
    """
    Start the terminal chat.

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    logger = create_logger(logger_name="walkwithme-client", log_level=args.log_level)

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"❌ Error: {e}")
        return 1

    overrides = {}
    if args.relay_url:
        overrides["relay_url"] = args.relay_url
    if args.snapshot_path:
        overrides["snapshot_path"] = args.snapshot_path
        overrides["snapshot_backend"] = "file"
    if args.no_snapshot:
        overrides["snapshot_backend"] = "none"
    if args.model:
        overrides["model"] = args.model.strip()
    settings = dataclasses.replace(settings, **overrides)

    view = ConsoleChatView()
    relay = RelayClient(
        settings.relay_url, timeout=settings.request_timeout, model=settings.model
    )
    controller = ChatController(
        view,
        relay,
        buffer=ConversationBuffer(settings.max_history),
        snapshot_store=build_snapshot_store(settings),
    )

    logger.info(f"Using relay {settings.relay_url}")
    controller.restore()

    try:
        run(controller, view, input)
    except KeyboardInterrupt:
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
