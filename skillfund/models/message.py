"""Direct message data models."""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from typing import Any


@dataclass
class SenderSummary:
    full_name: str = "Unknown User"
    avatar_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"full_name": self.full_name, "avatar_url": self.avatar_url}


@dataclass
class Message:
    """A row of the `messages` table."""
    id: str
    sender_id: str
    recipient_id: str
    content: str
    is_read: bool = False
    created_at: str | None = None
    sender: SenderSummary = dataclass_field(default_factory=SenderSummary)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "recipient_id": self.recipient_id,
            "content": self.content,
            "is_read": self.is_read,
            "created_at": self.created_at,
            "sender": self.sender.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            id=data.get("id", ""),
            sender_id=data.get("sender_id") or "",
            recipient_id=data.get("recipient_id") or "",
            content=data.get("content") or "",
            is_read=bool(data.get("is_read")),
            created_at=data.get("created_at"),
        )


@dataclass
class Contact:
    """One entry of the chat list, aggregated from messages."""
    id: str
    full_name: str
    avatar_url: str = ""
    last_message: str = "Click to start conversation"
    last_message_time: str | None = None
    unread_count: int = 0

    @property
    def initial(self) -> str:
        return (self.full_name or "U")[:1].upper()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "avatar_url": self.avatar_url,
            "last_message": self.last_message,
            "last_message_time": self.last_message_time,
            "unread_count": self.unread_count,
        }
