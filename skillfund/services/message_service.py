"""Message Service - Direct messages between users.

This module handles:
- Aggregating a user's messages into a contact list
- Loading and reading a two-party conversation
- Sending messages

Interface Contract:
- list_contacts(user_id, limit, scan_limit) -> list[Contact]
- get_conversation(user_id, contact_id) -> list[Message]
- mark_as_read(user_id, contact_id) -> int
- send_message(sender_id, recipient_id, content) -> Message
- Failures raise MessageServiceError (mark_as_read only logs)
"""

from __future__ import annotations

import logging

from config import CONTACT_SCAN_LIMIT, CONTACTS_LIMIT
from skillfund.models import Contact, Message, SenderSummary
from skillfund.services.backend import BackendConsumer, BackendError
from skillfund.services.query import any_of, eq, in_, neq

logger = logging.getLogger(__name__)


class MessageServiceError(Exception):
    """Raised when messages cannot be loaded or sent."""
    pass


def aggregate_contacts(user_id: str, messages: list[dict]) -> dict[str, Contact]:
    """One contact per counterpart from newest-first message rows.

    The first row seen for a counterpart supplies the last message; unread
    counts only messages addressed to `user_id`.
    """
    contacts: dict[str, Contact] = {}
    for row in messages:
        sender_id = row.get("sender_id")
        counterpart = row.get("recipient_id") if sender_id == user_id else sender_id
        if not counterpart or counterpart == user_id:
            continue
        contact = contacts.get(counterpart)
        if contact is None:
            contact = Contact(
                id=counterpart,
                full_name="Unknown User",
                last_message=row.get("content") or "",
                last_message_time=row.get("created_at"),
            )
            contacts[counterpart] = contact
        if row.get("recipient_id") == user_id and not row.get("is_read"):
            contact.unread_count += 1
    return contacts


class MessageService(BackendConsumer):
    """Service for contacts and conversations."""

    def list_contacts(
        self,
        user_id: str,
        limit: int = CONTACTS_LIMIT,
        scan_limit: int = CONTACT_SCAN_LIMIT,
    ) -> list[Contact]:
        """Contacts with a conversation first (latest activity on top), then
        other users to start a conversation with, up to `limit` entries.

        Only the newest `scan_limit` messages are aggregated.
        """
        try:
            rows = self.backend.select(
                "messages",
                filters=[any_of([eq("sender_id", user_id)], [eq("recipient_id", user_id)])],
                order="created_at.desc",
                limit=scan_limit,
            )
            contacts = aggregate_contacts(user_id, rows)

            if contacts:
                profiles = self.backend.select(
                    "profiles",
                    columns="id, full_name, avatar_url",
                    filters=[in_("id", list(contacts))],
                )
                for row in profiles:
                    contact = contacts[row["id"]]
                    contact.full_name = row.get("full_name") or "Unknown User"
                    contact.avatar_url = row.get("avatar_url") or ""

            result = list(contacts.values())
            if len(result) < limit:
                others = self.backend.select(
                    "profiles",
                    columns="id, full_name, avatar_url",
                    filters=[neq("id", user_id)],
                    limit=limit + len(result),
                )
                for row in others:
                    if len(result) >= limit:
                        break
                    if row["id"] in contacts:
                        continue
                    result.append(Contact(
                        id=row["id"],
                        full_name=row.get("full_name") or "Unknown User",
                        avatar_url=row.get("avatar_url") or "",
                    ))
        except BackendError as e:
            logger.error("Error fetching contacts for %s: %s", user_id, e)
            raise MessageServiceError("Failed to load contacts") from e
        return result

    def get_contact(self, contact_id: str) -> Contact | None:
        try:
            row = self.backend.select_one(
                "profiles", columns="id, full_name, avatar_url", filters=[eq("id", contact_id)]
            )
        except BackendError as e:
            logger.error("Error fetching contact %s: %s", contact_id, e)
            raise MessageServiceError("Failed to load contact") from e
        if row is None:
            return None
        return Contact(
            id=row["id"],
            full_name=row.get("full_name") or "Unknown User",
            avatar_url=row.get("avatar_url") or "",
        )

    def get_conversation(self, user_id: str, contact_id: str) -> list[Message]:
        """Messages in both directions, oldest first, with senders attached."""
        try:
            rows = self.backend.select(
                "messages",
                filters=[any_of(
                    [eq("sender_id", user_id), eq("recipient_id", contact_id)],
                    [eq("sender_id", contact_id), eq("recipient_id", user_id)],
                )],
                order="created_at.asc",
            )
            if not rows:
                return []
            sender_ids = sorted({row["sender_id"] for row in rows})
            profiles = self.backend.select(
                "profiles", columns="id, full_name, avatar_url", filters=[in_("id", sender_ids)]
            )
        except BackendError as e:
            logger.error("Error fetching messages: %s", e)
            raise MessageServiceError("Failed to load messages") from e

        senders = {
            row["id"]: SenderSummary(
                full_name=row.get("full_name") or "Unknown User",
                avatar_url=row.get("avatar_url") or "",
            )
            for row in profiles
        }
        messages = []
        for row in rows:
            message = Message.from_dict(row)
            message.sender = senders.get(message.sender_id, SenderSummary())
            messages.append(message)
        return messages

    def mark_as_read(self, user_id: str, contact_id: str) -> int:
        """Flag the contact's unread messages to the user as read."""
        try:
            rows = self.backend.update(
                "messages",
                {"is_read": True},
                filters=[
                    eq("sender_id", contact_id),
                    eq("recipient_id", user_id),
                    eq("is_read", False),
                ],
            )
        except BackendError as e:
            logger.error("Error marking messages as read: %s", e)
            return 0
        return len(rows)

    def send_message(self, sender_id: str, recipient_id: str, content: str) -> Message:
        text = (content or "").strip()
        if not text:
            raise MessageServiceError("Message cannot be empty")
        if sender_id == recipient_id:
            raise MessageServiceError("You cannot message yourself")
        try:
            rows = self.backend.insert(
                "messages",
                {"sender_id": sender_id, "recipient_id": recipient_id, "content": text},
            )
        except BackendError as e:
            logger.error("Error sending message: %s", e)
            raise MessageServiceError("Failed to send message. Please try again.") from e
        if rows:
            return Message.from_dict(rows[0])
        return Message(id="", sender_id=sender_id, recipient_id=recipient_id, content=text)
