from __future__ import annotations

from enum import Enum
from typing import Any, Protocol

from walkwithme_client.infrastructure.data_models import ASSISTANT, USER, Message
from walkwithme_client.services.conversation_service import ConversationBuffer
from walkwithme_client.services.relay_client_service import RelayError, ReplyTimeoutError
from walkwithme_client.services.snapshot_service import (
    NullSnapshotStore,
    SnapshotError,
    SnapshotStore,
)
from walkwithme_shared.platform_manager import create_logger

logger = create_logger(logger_name="walkwithme-client", log_level="INFO")

THINKING_TEXT = "Thinking…"
EMPTY_REPLY_TEXT = "Sorry, I couldn't get an answer just now. Please try again in a moment."
TIMEOUT_TEXT = "It looks like the connection dropped for a moment. Could you try again?"
ERROR_PREFIX = "Sorry, something went wrong: "


class ChatState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    SUCCESS = "success"
    FAILED = "failed"


class ChatEvent(str, Enum):
    SUBMIT = "submit"
    REPLY = "reply"
    FAIL = "fail"
    SETTLE = "settle"


class SubmitOutcome(str, Enum):
    IGNORED = "ignored"  # empty input, nothing sent
    REJECTED = "rejected"  # a reply is still pending
    REPLIED = "replied"
    FALLBACK = "fallback"  # relay answered without content
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class InvalidTransitionError(RuntimeError):
    pass


_TRANSITIONS: dict[tuple[ChatState, ChatEvent], ChatState] = {
    (ChatState.IDLE, ChatEvent.SUBMIT): ChatState.SENDING,
    (ChatState.SENDING, ChatEvent.REPLY): ChatState.SUCCESS,
    (ChatState.SENDING, ChatEvent.FAIL): ChatState.FAILED,
    (ChatState.SUCCESS, ChatEvent.SETTLE): ChatState.IDLE,
    (ChatState.FAILED, ChatEvent.SETTLE): ChatState.IDLE,
}


def transition(state: ChatState, event: ChatEvent) -> ChatState:
    """Next state of the reply exchange; raises InvalidTransitionError for illegal events."""
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(f"{event.value} is not allowed while {state.value}") from None


class ChatView(Protocol):
    """Rendering surface driven by the controller."""

    def render_message(self, role: str, text: str) -> Any: ...
    def show_thinking(self) -> Any: ...
    def remove_bubble(self, bubble: Any) -> None: ...
    def lock_composer(self) -> None: ...
    def unlock_composer(self) -> None: ...
    def set_submit_enabled(self, enabled: bool) -> None: ...
    def focus_composer(self) -> None: ...


class ReplySource(Protocol):
    def request_reply(self, messages: list[Message]) -> str | None: ...


class ChatController:
    """
    Runs the reply exchange for one conversation.

    At most one exchange is in flight: while a reply is pending the submit control and
    composer are disabled and any further submission is rejected without side effects.
    Whatever happens during the exchange, the controller returns to IDLE and re-enables
    the composer and submit control exactly once.
    """

    def __init__(
        self,
        view: ChatView,
        relay: ReplySource,
        *,
        buffer: ConversationBuffer | None = None,
        snapshot_store: SnapshotStore | None = None,
    ) -> None:
        self._view = view
        self._relay = relay
        self._buffer = buffer if buffer is not None else ConversationBuffer()
        self._store: SnapshotStore = snapshot_store or NullSnapshotStore()
        self._state = ChatState.IDLE

    @property
    def state(self) -> ChatState:
        return self._state

    @property
    def buffer(self) -> ConversationBuffer:
        return self._buffer

    def restore(self) -> int:
        """Rehydrate the buffer and the view from the snapshot; returns the message count."""
        messages = self._store.load()
        if not messages:
            return 0

        self._buffer.replace(messages)
        for message in self._buffer.messages:
            self._view.render_message(message.role, message.content)
        logger.info(f"Restored {len(self._buffer)} messages from snapshot")
        return len(self._buffer)

    def submit(self, text: str) -> SubmitOutcome:
        """Handle one composer submission."""
        if self._state is not ChatState.IDLE:
            logger.warning("Submission rejected: a reply is still pending")
            return SubmitOutcome.REJECTED

        content = text.strip()
        if not content:
            self._view.focus_composer()
            return SubmitOutcome.IGNORED

        self._state = transition(self._state, ChatEvent.SUBMIT)
        try:
            return self._exchange(content)
        finally:
            self._settle()

    def _exchange(self, content: str) -> SubmitOutcome:
        self._buffer.append(USER, content)
        self._view.render_message(USER, content)
        self._persist()

        self._view.set_submit_enabled(False)
        self._view.lock_composer()
        thinking = self._view.show_thinking()

        try:
            reply = self._request_reply(thinking)
        except ReplyTimeoutError as e:
            self._state = transition(self._state, ChatEvent.FAIL)
            logger.warning(f"Reply timed out: {e}")
            self._view.render_message(ASSISTANT, TIMEOUT_TEXT)
            return SubmitOutcome.TIMED_OUT
        except RelayError as e:
            self._state = transition(self._state, ChatEvent.FAIL)
            logger.error(f"Relay error (status {e.status_code}): {e}")
            self._view.render_message(ASSISTANT, f"{ERROR_PREFIX}{e}")
            return SubmitOutcome.FAILED
        except Exception as e:
            self._state = transition(self._state, ChatEvent.FAIL)
            logger.exception("Unexpected error during reply exchange")
            self._view.render_message(ASSISTANT, f"{ERROR_PREFIX}{e}")
            return SubmitOutcome.FAILED

        self._state = transition(self._state, ChatEvent.REPLY)
        if not reply:
            logger.warning("Relay answered without reply content")
            self._view.render_message(ASSISTANT, EMPTY_REPLY_TEXT)
            return SubmitOutcome.FALLBACK

        self._buffer.append(ASSISTANT, reply)
        self._view.render_message(ASSISTANT, reply)
        self._persist()
        return SubmitOutcome.REPLIED

    def _request_reply(self, thinking: Any) -> str | None:
        """Ask the relay for a reply; the thinking bubble is removed on every path."""
        try:
            reply = self._relay.request_reply(self._buffer.build_request_payload())
        except Exception:
            # The request failure decides the outcome, not a failed removal
            try:
                self._view.remove_bubble(thinking)
            except Exception:
                logger.exception("Thinking bubble could not be removed")
            raise
        self._view.remove_bubble(thinking)
        return reply

    def _settle(self) -> None:
        # An exchange interrupted before it reached an outcome counts as failed
        if self._state is ChatState.SENDING:
            self._state = transition(self._state, ChatEvent.FAIL)
        self._state = transition(self._state, ChatEvent.SETTLE)
        try:
            self._view.set_submit_enabled(True)
        finally:
            self._view.unlock_composer()

    def _persist(self) -> None:
        try:
            self._store.save(self._buffer.messages)
        except SnapshotError as e:
            logger.error(f"Snapshot not saved: {e}")
