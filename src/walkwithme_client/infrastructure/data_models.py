"""
Shared data models.
"""

from dataclasses import asdict, dataclass
from typing import Any

SYSTEM = "system"
USER = "user"
ASSISTANT = "assistant"

ROLES = (SYSTEM, USER, ASSISTANT)


@dataclass(frozen=True)
class Message:
    role: str  # "system" | "user" | "assistant"
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role}")
        if not isinstance(self.content, str):
            raise ValueError("Message content must be a string")

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "Message":
        """Build a Message from its wire/persisted form; raises ValueError when malformed."""
        if not isinstance(data, dict):
            raise ValueError("Message must be an object")
        return cls(role=data.get("role", ""), content=data.get("content"))
