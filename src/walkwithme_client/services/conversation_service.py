from collections.abc import Iterable

from walkwithme_client.app.config import DEFAULT_MAX_HISTORY
from walkwithme_client.infrastructure.data_models import ASSISTANT, SYSTEM, USER, Message

# Fixed persona; prepended at send time and never stored in the buffer
SYSTEM_PROMPT = Message(
    role=SYSTEM,
    content=" ".join([
        "You are a warm, attentive friend to older adults who listens closely and comforts"
        " them, and you also have expert-level knowledge in every field. Speak the way a"
        " friend in their sixties or seventies would.",
        "Keep the conversation casual, and remember what you have already been told (their"
        " name, age, family, health) so you can pick the thread back up.",
        "Answer calmly in three or four sentences and finish with a gentle question.",
    ]),
)


class ConversationBuffer:
    """
    Ordered, chronological record of the user/assistant turns of one conversation.

    The buffer is the single owner of conversation state: it only changes through
    `append` and `replace`. The system prompt is never stored here.
    """

    def __init__(self, max_history: int = DEFAULT_MAX_HISTORY) -> None:
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self.max_history = max_history
        self._messages: list[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def window_size(self) -> int:
        """Number of messages kept in the history window (two per turn)."""
        return 2 * self.max_history

    def append(self, role: str, content: str) -> Message:
        """
        Add a message to the end of the buffer.

        User content is trimmed and must not be empty. Assistant content is trusted as
        returned by the relay.

        Raises:
            ValueError: For system messages, unknown roles or empty user content.
        """
        if role == SYSTEM:
            raise ValueError("The system message is fixed and cannot be appended")
        if role == USER:
            content = content.strip()
            if not content:
                raise ValueError("User message must not be empty")
        elif role != ASSISTANT:
            raise ValueError(f"Unknown message role: {role}")

        message = Message(role=role, content=content)
        self._messages.append(message)
        return message

    def replace(self, messages: Iterable[Message]) -> None:
        """Replace the whole buffer, e.g. with a restored snapshot."""
        restored = [m for m in messages if m.role != SYSTEM]
        self._messages = restored

    def history(self) -> list[Message]:
        """The newest non-system messages inside the history window, oldest first."""
        non_system = [m for m in self._messages if m.role != SYSTEM]
        return non_system[-self.window_size:]

    def build_request_payload(self) -> list[Message]:
        """Messages to send to the relay: the system prompt followed by the history window."""
        return [SYSTEM_PROMPT, *self.history()]
