"""Unit tests for the conversation buffer and payload builder."""
import pytest
from hypothesis import given
from hypothesis import strategies as st

from walkwithme_client.infrastructure.data_models import ASSISTANT, SYSTEM, USER, Message
from walkwithme_client.services.conversation_service import SYSTEM_PROMPT, ConversationBuffer

MAX_HISTORY = 12


def fill(buffer: ConversationBuffer, pairs: int) -> None:
    for i in range(pairs):
        buffer.append(USER, f"question {i}")
        buffer.append(ASSISTANT, f"answer {i}")


class TestAppend:
    """Tests for ConversationBuffer.append."""

    def test_appends_in_order(self):
        buffer = ConversationBuffer()
        buffer.append(USER, "hello")
        buffer.append(ASSISTANT, "hi")

        assert buffer.messages == (Message(USER, "hello"), Message(ASSISTANT, "hi"))

    def test_user_content_is_trimmed(self):
        buffer = ConversationBuffer()
        message = buffer.append(USER, "  hello \n")

        assert message.content == "hello"

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_empty_user_content_is_rejected(self, content):
        buffer = ConversationBuffer()

        with pytest.raises(ValueError):
            buffer.append(USER, content)
        assert len(buffer) == 0

    def test_assistant_content_is_trusted(self):
        buffer = ConversationBuffer()
        message = buffer.append(ASSISTANT, "  spaced  ")

        assert message.content == "  spaced  "

    def test_system_role_is_rejected(self):
        buffer = ConversationBuffer()

        with pytest.raises(ValueError):
            buffer.append(SYSTEM, "new persona")

    def test_unknown_role_is_rejected(self):
        with pytest.raises(ValueError):
            ConversationBuffer().append("tool", "result")

    def test_messages_are_immutable(self):
        message = ConversationBuffer().append(USER, "hello")

        with pytest.raises(AttributeError):
            message.content = "changed"  # type: ignore[misc]


class TestPayload:
    """Tests for build_request_payload."""

    def test_empty_buffer_sends_only_system_prompt(self):
        assert ConversationBuffer().build_request_payload() == [SYSTEM_PROMPT]

    def test_short_history_is_sent_whole(self):
        buffer = ConversationBuffer()
        fill(buffer, 3)

        payload = buffer.build_request_payload()

        assert payload[0] == SYSTEM_PROMPT
        assert payload[1:] == list(buffer.messages)

    @given(st.integers(min_value=MAX_HISTORY + 1, max_value=60))
    def test_history_is_bounded(self, pairs: int):
        """Property test: only the last 12 pairs are sent, in order."""
        buffer = ConversationBuffer(MAX_HISTORY)
        fill(buffer, pairs)

        payload = buffer.build_request_payload()

        assert len(payload) == 1 + 2 * MAX_HISTORY
        expected = []
        for i in range(pairs - MAX_HISTORY, pairs):
            expected += [Message(USER, f"question {i}"), Message(ASSISTANT, f"answer {i}")]
        assert payload[1:] == expected

    @given(st.lists(st.tuples(st.sampled_from([USER, ASSISTANT]), st.text(min_size=1)).filter(
        lambda turn: turn[0] == ASSISTANT or turn[1].strip()
    ), max_size=40))
    def test_system_prompt_is_invariant(self, turns):
        """Property test: the first payload entry is always the system constant."""
        buffer = ConversationBuffer()
        for role, content in turns:
            buffer.append(role, content)

        payload = buffer.build_request_payload()

        assert payload[0] is SYSTEM_PROMPT
        assert all(m.role != SYSTEM for m in payload[1:])
        assert len(payload) <= 1 + 2 * MAX_HISTORY

    def test_building_has_no_side_effects(self):
        buffer = ConversationBuffer()
        fill(buffer, 20)
        before = buffer.messages

        first = buffer.build_request_payload()
        second = buffer.build_request_payload()

        assert first == second
        assert buffer.messages == before

    def test_custom_window(self):
        buffer = ConversationBuffer(max_history=2)
        fill(buffer, 5)

        assert [m.content for m in buffer.history()] == [
            "question 3", "answer 3", "question 4", "answer 4",
        ]

    def test_window_must_be_positive(self):
        with pytest.raises(ValueError):
            ConversationBuffer(max_history=0)


class TestReplace:
    """Tests for ConversationBuffer.replace."""

    def test_replace_discards_previous_messages(self):
        buffer = ConversationBuffer()
        fill(buffer, 2)

        buffer.replace([Message(USER, "restored"), Message(ASSISTANT, "welcome back")])

        assert [m.content for m in buffer.messages] == ["restored", "welcome back"]

    def test_replace_drops_system_messages(self):
        buffer = ConversationBuffer()

        buffer.replace([Message(SYSTEM, "old persona"), Message(USER, "hello")])

        assert buffer.messages == (Message(USER, "hello"),)
