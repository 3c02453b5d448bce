"""
Conversations between the accountant and their clients.

``sender_is_user`` on a message row is true when the client wrote it. Messages
the accountant sends are stored as already read; client messages stay unread
until a staff member opens the conversation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from accountify.db import MESSAGES_TABLE, DbClient, MessageRecord, iso_timestamp
from accountify.enums import ChangeType
from accountify.realtime import ChangeFeed, publish_change

logger = logging.getLogger(__name__)

ACCOUNTANT_SENDER_ID = "accountant"


@dataclass
class Sender:
    id: str
    name: str
    is_accountant: bool


@dataclass
class Message:
    id: str
    content: str
    timestamp: Optional[str]
    sender: Sender
    read: bool


@dataclass
class Conversation:
    client_id: str
    client_name: str
    unread_count: int = 0
    last_message: Optional[str] = None
    last_message_time: Optional[str] = None
    messages: list[Message] = field(default_factory=list)


def staff_view(record: MessageRecord) -> Message:
    """Map a row to the accountant's point of view."""
    if record.sender_is_user:
        sender = Sender(id=record.client_id, name="Client", is_accountant=False)
    else:
        sender = Sender(
            id=ACCOUNTANT_SENDER_ID, name="Your Accountant", is_accountant=True
        )
    return Message(
        id=record.id,
        content=record.content,
        timestamp=iso_timestamp(record.created_at),
        sender=sender,
        read=record.read,
    )


def client_view(record: MessageRecord) -> Message:
    """Map a row to the client portal's point of view."""
    if record.sender_is_user:
        sender = Sender(id="client", name="You", is_accountant=False)
    else:
        sender = Sender(id=ACCOUNTANT_SENDER_ID, name="Accountant", is_accountant=True)
    return Message(
        id=record.id,
        content=record.content,
        timestamp=iso_timestamp(record.created_at),
        sender=sender,
        read=record.read,
    )


def get_conversations(db: DbClient) -> list[Conversation]:
    clients = db.list_clients()
    if not clients:
        return []

    # Newest first, so the first message seen per client is its latest.
    latest: dict[str, MessageRecord] = {}
    for message in db.list_all_messages():
        latest.setdefault(message.client_id, message)
    unread = db.unread_counts()

    conversations = []
    for client in clients:
        last = latest.get(client.id)
        conversations.append(
            Conversation(
                client_id=client.id,
                client_name=client.name,
                unread_count=int(unread.get(client.id, 0)),
                last_message=last.content if last else None,
                last_message_time=iso_timestamp(last.created_at) if last else None,
            )
        )
    return conversations


def get_messages_for_client(
    db: DbClient, client_id: str, feed: ChangeFeed | None = None
) -> list[Message]:
    """Return the conversation oldest first and mark the client's messages read."""
    records = db.list_messages(client_id)
    mark_messages_as_read(db, client_id, feed=feed)
    return [staff_view(record) for record in records]


def mark_messages_as_read(
    db: DbClient, client_id: str, feed: ChangeFeed | None = None
) -> int:
    changed = db.mark_messages_read(client_id)
    if changed:
        logger.debug("Marked %d messages read for client %s", changed, client_id)
        publish_change(
            feed,
            MESSAGES_TABLE,
            ChangeType.UPDATE,
            record={"client_id": client_id, "read": True},
        )
    return changed


def send_message(
    db: DbClient,
    client_id: str,
    content: str,
    *,
    is_accountant: bool,
    feed: ChangeFeed | None = None,
) -> MessageRecord:
    if not content or not content.strip():
        raise ValueError("Message content must not be empty")
    record = db.create_message(
        client_id,
        content,
        sender_is_user=not is_accountant,
        read=is_accountant,
    )
    publish_change(feed, MESSAGES_TABLE, ChangeType.INSERT, record=record.as_dict())
    return record
