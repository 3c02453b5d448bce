"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    func,
    select,
    update,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from accountify.enums import Priority, TaskType, UserRole

CLIENTS_TABLE = "clients"
MESSAGES_TABLE = "client_messages"
FILES_TABLE = "client_files"
COLUMNS_TABLE = "kanban_columns"
TASKS_TABLE = "kanban_tasks"
PROFILES_TABLE = "profiles"

CLIENT_FIELDS = frozenset(
    {
        "name",
        "company",
        "email",
        "phone",
        "address",
        "tax_id",
        "notes",
        "client_since",
        "last_activity",
    }
)
TASK_FIELDS = frozenset(
    {
        "title",
        "description",
        "task_type",
        "client_name",
        "deadline",
        "priority",
        "assigned_to",
        "column_id",
        "order_index",
    }
)


def _new_id() -> str:
    return str(uuid.uuid4())


def iso_timestamp(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _checked_fields(fields: dict, allowed: frozenset) -> dict:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")
    return fields


class DbClient(Protocol):
    """Interface for database access."""

    # Clients
    def create_client(
        self,
        *,
        name: str,
        company: str,
        email: str,
        phone: str,
        address: Optional[str] = None,
        tax_id: Optional[str] = None,
        notes: Optional[str] = None,
        client_since: Optional[str] = None,
    ) -> "ClientRecord":
        ...

    def get_client(self, client_id: str) -> Optional["ClientRecord"]:
        ...

    def get_client_by_email(self, email: str) -> Optional["ClientRecord"]:
        ...

    def list_clients(self) -> list["ClientRecord"]:
        ...

    def update_client(self, client_id: str, **fields) -> Optional["ClientRecord"]:
        ...

    def delete_client(self, client_id: str) -> bool:
        ...

    # Messages
    def create_message(
        self, client_id: str, content: str, *, sender_is_user: bool, read: bool
    ) -> "MessageRecord":
        ...

    def list_messages(self, client_id: str) -> list["MessageRecord"]:
        ...

    def list_all_messages(self) -> list["MessageRecord"]:
        ...

    def mark_messages_read(self, client_id: str) -> int:
        ...

    def unread_counts(self) -> dict[str, int]:
        ...

    # Files
    def create_file(
        self,
        *,
        name: str,
        type: str,
        size: int,
        uploaded_by: str,
        client_id: Optional[str] = None,
        storage_path: Optional[str] = None,
    ) -> "FileRecord":
        ...

    def get_file(self, file_id: str) -> Optional["FileRecord"]:
        ...

    def list_files(self, client_id: Optional[str] = None) -> list["FileRecord"]:
        ...

    def delete_file(self, file_id: str) -> bool:
        ...

    # Kanban
    def list_columns(self) -> list["KanbanColumnRecord"]:
        ...

    def get_column(self, column_id: str) -> Optional["KanbanColumnRecord"]:
        ...

    def create_column(self, title: str, order_index: int) -> "KanbanColumnRecord":
        ...

    def update_column(
        self, column_id: str, title: str, order_index: int
    ) -> Optional["KanbanColumnRecord"]:
        ...

    def delete_column(self, column_id: str) -> bool:
        ...

    def list_tasks(self, column_id: Optional[str] = None) -> list["KanbanTaskRecord"]:
        ...

    def get_task(self, task_id: str) -> Optional["KanbanTaskRecord"]:
        ...

    def create_task(
        self,
        *,
        title: str,
        task_type: TaskType,
        priority: Priority,
        column_id: str,
        order_index: int,
        description: Optional[str] = None,
        client_name: Optional[str] = None,
        deadline: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> "KanbanTaskRecord":
        ...

    def update_task(self, task_id: str, **fields) -> Optional["KanbanTaskRecord"]:
        ...

    def set_task_position(
        self, task_id: str, column_id: str, order_index: int
    ) -> Optional["KanbanTaskRecord"]:
        ...

    def delete_task(self, task_id: str) -> bool:
        ...

    # Profiles
    def get_profile(self, user_id: str) -> Optional["ProfileRecord"]:
        ...

    def list_profiles(self) -> list["ProfileRecord"]:
        ...

    def save_profile(self, profile: "ProfileRecord") -> "ProfileRecord":
        ...

    def update_profile_role(
        self, user_id: str, role: UserRole
    ) -> Optional["ProfileRecord"]:
        ...


@dataclass
class ClientRecord:
    id: str
    name: str
    company: str
    email: str
    phone: str
    address: Optional[str] = None
    tax_id: Optional[str] = None
    notes: Optional[str] = None
    client_since: Optional[str] = None
    last_activity: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = iso_timestamp(self.created_at)
        data["updated_at"] = iso_timestamp(self.updated_at)
        return data


@dataclass
class MessageRecord:
    id: str
    client_id: str
    content: str
    sender_is_user: bool
    read: bool = False
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = iso_timestamp(self.created_at)
        return data


@dataclass
class FileRecord:
    id: str
    name: str
    type: str
    size: int
    uploaded_by: str
    client_id: Optional[str] = None
    storage_path: Optional[str] = None
    uploaded_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        data = asdict(self)
        data["uploaded_at"] = iso_timestamp(self.uploaded_at)
        return data


@dataclass
class KanbanColumnRecord:
    id: str
    title: str
    order_index: int
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = iso_timestamp(self.created_at)
        data["updated_at"] = iso_timestamp(self.updated_at)
        return data


@dataclass
class KanbanTaskRecord:
    id: str
    title: str
    task_type: TaskType
    priority: Priority
    column_id: str
    order_index: int
    description: Optional[str] = None
    client_name: Optional[str] = None
    deadline: Optional[str] = None
    assigned_to: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        data = asdict(self)
        data["task_type"] = self.task_type.value
        data["priority"] = self.priority.value
        data["created_at"] = iso_timestamp(self.created_at)
        data["updated_at"] = iso_timestamp(self.updated_at)
        return data


@dataclass
class ProfileRecord:
    id: str
    role: UserRole = UserRole.CLIENT
    email: Optional[str] = None
    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    @property
    def display_name(self) -> str:
        return self.full_name or self.username or self.email or self.id

    def as_dict(self) -> dict:
        data = asdict(self)
        data["role"] = self.role.value
        data["created_at"] = iso_timestamp(self.created_at)
        data["updated_at"] = iso_timestamp(self.updated_at)
        return data


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.clients: Dict[str, ClientRecord] = {}
        self.messages: Dict[str, MessageRecord] = {}
        self.files: Dict[str, FileRecord] = {}
        self.columns: Dict[str, KanbanColumnRecord] = {}
        self.tasks: Dict[str, KanbanTaskRecord] = {}
        self.profiles: Dict[str, ProfileRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.clients.clear()
        self.messages.clear()
        self.files.clear()
        self.columns.clear()
        self.tasks.clear()
        self.profiles.clear()

    # Clients

    def create_client(
        self,
        *,
        name: str,
        company: str,
        email: str,
        phone: str,
        address: Optional[str] = None,
        tax_id: Optional[str] = None,
        notes: Optional[str] = None,
        client_since: Optional[str] = None,
    ) -> ClientRecord:
        record = ClientRecord(
            id=_new_id(),
            name=name,
            company=company,
            email=email,
            phone=phone,
            address=address,
            tax_id=tax_id,
            notes=notes,
            client_since=client_since,
        )
        self.clients[record.id] = record
        return record

    def get_client(self, client_id: str) -> Optional[ClientRecord]:
        return self.clients.get(client_id)

    def get_client_by_email(self, email: str) -> Optional[ClientRecord]:
        for client in self.clients.values():
            if client.email == email:
                return client
        return None

    def list_clients(self) -> list[ClientRecord]:
        return sorted(self.clients.values(), key=lambda c: c.name.lower())

    def update_client(self, client_id: str, **fields) -> Optional[ClientRecord]:
        _checked_fields(fields, CLIENT_FIELDS)
        client = self.clients.get(client_id)
        if not client:
            return None
        for key, value in fields.items():
            setattr(client, key, value)
        client.updated_at = time.time()
        return client

    def delete_client(self, client_id: str) -> bool:
        if self.clients.pop(client_id, None) is None:
            return False
        for message_id in [
            m.id for m in self.messages.values() if m.client_id == client_id
        ]:
            del self.messages[message_id]
        for file_id in [f.id for f in self.files.values() if f.client_id == client_id]:
            del self.files[file_id]
        return True

    # Messages

    def create_message(
        self, client_id: str, content: str, *, sender_is_user: bool, read: bool
    ) -> MessageRecord:
        record = MessageRecord(
            id=_new_id(),
            client_id=client_id,
            content=content,
            sender_is_user=sender_is_user,
            read=read,
        )
        self.messages[record.id] = record
        return record

    def list_messages(self, client_id: str) -> list[MessageRecord]:
        items = [m for m in self.messages.values() if m.client_id == client_id]
        return sorted(items, key=lambda m: m.created_at)

    def list_all_messages(self) -> list[MessageRecord]:
        # Reverse insertion first so equal timestamps keep newest-first order.
        items = list(reversed(list(self.messages.values())))
        return sorted(items, key=lambda m: m.created_at, reverse=True)

    def mark_messages_read(self, client_id: str) -> int:
        changed = 0
        for message in self.messages.values():
            if (
                message.client_id == client_id
                and message.sender_is_user
                and not message.read
            ):
                message.read = True
                changed += 1
        return changed

    def unread_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for message in self.messages.values():
            if message.sender_is_user and not message.read:
                counts[message.client_id] = counts.get(message.client_id, 0) + 1
        return counts

    # Files

    def create_file(
        self,
        *,
        name: str,
        type: str,
        size: int,
        uploaded_by: str,
        client_id: Optional[str] = None,
        storage_path: Optional[str] = None,
    ) -> FileRecord:
        record = FileRecord(
            id=_new_id(),
            name=name,
            type=type,
            size=size,
            uploaded_by=uploaded_by,
            client_id=client_id,
            storage_path=storage_path,
        )
        self.files[record.id] = record
        return record

    def get_file(self, file_id: str) -> Optional[FileRecord]:
        return self.files.get(file_id)

    def list_files(self, client_id: Optional[str] = None) -> list[FileRecord]:
        items = list(reversed(list(self.files.values())))
        if client_id is not None:
            items = [f for f in items if f.client_id == client_id]
        return sorted(items, key=lambda f: f.uploaded_at, reverse=True)

    def delete_file(self, file_id: str) -> bool:
        return self.files.pop(file_id, None) is not None

    # Kanban

    def list_columns(self) -> list[KanbanColumnRecord]:
        return sorted(self.columns.values(), key=lambda c: c.order_index)

    def get_column(self, column_id: str) -> Optional[KanbanColumnRecord]:
        return self.columns.get(column_id)

    def create_column(self, title: str, order_index: int) -> KanbanColumnRecord:
        record = KanbanColumnRecord(id=_new_id(), title=title, order_index=order_index)
        self.columns[record.id] = record
        return record

    def update_column(
        self, column_id: str, title: str, order_index: int
    ) -> Optional[KanbanColumnRecord]:
        column = self.columns.get(column_id)
        if not column:
            return None
        column.title = title
        column.order_index = order_index
        column.updated_at = time.time()
        return column

    def delete_column(self, column_id: str) -> bool:
        if self.columns.pop(column_id, None) is None:
            return False
        for task_id in [t.id for t in self.tasks.values() if t.column_id == column_id]:
            del self.tasks[task_id]
        return True

    def list_tasks(self, column_id: Optional[str] = None) -> list[KanbanTaskRecord]:
        items = list(self.tasks.values())
        if column_id is not None:
            items = [t for t in items if t.column_id == column_id]
        return sorted(items, key=lambda t: t.order_index)

    def get_task(self, task_id: str) -> Optional[KanbanTaskRecord]:
        return self.tasks.get(task_id)

    def create_task(
        self,
        *,
        title: str,
        task_type: TaskType,
        priority: Priority,
        column_id: str,
        order_index: int,
        description: Optional[str] = None,
        client_name: Optional[str] = None,
        deadline: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> KanbanTaskRecord:
        record = KanbanTaskRecord(
            id=_new_id(),
            title=title,
            task_type=TaskType(task_type),
            priority=Priority(priority),
            column_id=column_id,
            order_index=order_index,
            description=description,
            client_name=client_name,
            deadline=deadline,
            assigned_to=assigned_to,
        )
        self.tasks[record.id] = record
        return record

    def update_task(self, task_id: str, **fields) -> Optional[KanbanTaskRecord]:
        _checked_fields(fields, TASK_FIELDS)
        task = self.tasks.get(task_id)
        if not task:
            return None
        for key, value in fields.items():
            if key == "task_type":
                value = TaskType(value)
            elif key == "priority":
                value = Priority(value)
            setattr(task, key, value)
        task.updated_at = time.time()
        return task

    def set_task_position(
        self, task_id: str, column_id: str, order_index: int
    ) -> Optional[KanbanTaskRecord]:
        return self.update_task(task_id, column_id=column_id, order_index=order_index)

    def delete_task(self, task_id: str) -> bool:
        return self.tasks.pop(task_id, None) is not None

    # Profiles

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        return self.profiles.get(user_id)

    def list_profiles(self) -> list[ProfileRecord]:
        return sorted(self.profiles.values(), key=lambda p: p.created_at)

    def save_profile(self, profile: ProfileRecord) -> ProfileRecord:
        profile.updated_at = time.time()
        self.profiles[profile.id] = profile
        return profile

    def update_profile_role(
        self, user_id: str, role: UserRole
    ) -> Optional[ProfileRecord]:
        profile = self.profiles.get(user_id)
        if not profile:
            return None
        profile.role = UserRole(role)
        profile.updated_at = time.time()
        return profile


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    # Row conversion

    @staticmethod
    def _to_client(row: "ClientRow") -> ClientRecord:
        return ClientRecord(
            id=row.id,
            name=row.name,
            company=row.company,
            email=row.email,
            phone=row.phone,
            address=row.address,
            tax_id=row.tax_id,
            notes=row.notes,
            client_since=row.client_since,
            last_activity=row.last_activity,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_message(row: "MessageRow") -> MessageRecord:
        return MessageRecord(
            id=row.id,
            client_id=row.client_id,
            content=row.content,
            sender_is_user=row.sender_is_user,
            read=row.read,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_file(row: "FileRow") -> FileRecord:
        return FileRecord(
            id=row.id,
            name=row.name,
            type=row.type,
            size=row.size,
            uploaded_by=row.uploaded_by,
            client_id=row.client_id,
            storage_path=row.storage_path,
            uploaded_at=row.uploaded_at,
        )

    @staticmethod
    def _to_column(row: "KanbanColumnRow") -> KanbanColumnRecord:
        return KanbanColumnRecord(
            id=row.id,
            title=row.title,
            order_index=row.order_index,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_task(row: "KanbanTaskRow") -> KanbanTaskRecord:
        return KanbanTaskRecord(
            id=row.id,
            title=row.title,
            task_type=TaskType(row.task_type),
            priority=Priority(row.priority),
            column_id=row.column_id,
            order_index=row.order_index,
            description=row.description,
            client_name=row.client_name,
            deadline=row.deadline,
            assigned_to=row.assigned_to,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_profile(row: "ProfileRow") -> ProfileRecord:
        return ProfileRecord(
            id=row.id,
            role=UserRole(row.role),
            email=row.email,
            username=row.username,
            full_name=row.full_name,
            avatar_url=row.avatar_url,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    # Clients

    def create_client(
        self,
        *,
        name: str,
        company: str,
        email: str,
        phone: str,
        address: Optional[str] = None,
        tax_id: Optional[str] = None,
        notes: Optional[str] = None,
        client_since: Optional[str] = None,
    ) -> ClientRecord:
        now = time.time()
        with self.Session() as session:
            row = ClientRow(
                id=_new_id(),
                name=name,
                company=company,
                email=email,
                phone=phone,
                address=address,
                tax_id=tax_id,
                notes=notes,
                client_since=client_since,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            return self._to_client(row)

    def get_client(self, client_id: str) -> Optional[ClientRecord]:
        with self.Session() as session:
            row = session.get(ClientRow, client_id)
            return self._to_client(row) if row else None

    def get_client_by_email(self, email: str) -> Optional[ClientRecord]:
        with self.Session() as session:
            stmt = select(ClientRow).where(ClientRow.email == email).limit(1)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_client(row) if row else None

    def list_clients(self) -> list[ClientRecord]:
        with self.Session() as session:
            stmt = select(ClientRow).order_by(func.lower(ClientRow.name))
            return [self._to_client(row) for row in session.execute(stmt).scalars()]

    def update_client(self, client_id: str, **fields) -> Optional[ClientRecord]:
        _checked_fields(fields, CLIENT_FIELDS)
        with self.Session() as session:
            row = session.get(ClientRow, client_id)
            if not row:
                return None
            for key, value in fields.items():
                setattr(row, key, value)
            row.updated_at = time.time()
            session.commit()
            return self._to_client(row)

    def delete_client(self, client_id: str) -> bool:
        with self.Session() as session:
            row = session.get(ClientRow, client_id)
            if not row:
                return False
            session.execute(delete(MessageRow).where(MessageRow.client_id == client_id))
            session.execute(delete(FileRow).where(FileRow.client_id == client_id))
            session.delete(row)
            session.commit()
            return True

    # Messages

    def create_message(
        self, client_id: str, content: str, *, sender_is_user: bool, read: bool
    ) -> MessageRecord:
        with self.Session() as session:
            row = MessageRow(
                id=_new_id(),
                client_id=client_id,
                content=content,
                sender_is_user=sender_is_user,
                read=read,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            return self._to_message(row)

    def list_messages(self, client_id: str) -> list[MessageRecord]:
        with self.Session() as session:
            stmt = (
                select(MessageRow)
                .where(MessageRow.client_id == client_id)
                .order_by(MessageRow.created_at.asc())
            )
            return [self._to_message(row) for row in session.execute(stmt).scalars()]

    def list_all_messages(self) -> list[MessageRecord]:
        with self.Session() as session:
            stmt = select(MessageRow).order_by(MessageRow.created_at.desc())
            return [self._to_message(row) for row in session.execute(stmt).scalars()]

    def mark_messages_read(self, client_id: str) -> int:
        with self.Session() as session:
            result = session.execute(
                update(MessageRow)
                .where(
                    MessageRow.client_id == client_id,
                    MessageRow.sender_is_user.is_(True),
                    MessageRow.read.is_(False),
                )
                .values(read=True)
            )
            session.commit()
            return result.rowcount or 0

    def unread_counts(self) -> dict[str, int]:
        with self.Session() as session:
            stmt = (
                select(MessageRow.client_id, func.count(MessageRow.id))
                .where(
                    MessageRow.sender_is_user.is_(True),
                    MessageRow.read.is_(False),
                )
                .group_by(MessageRow.client_id)
            )
            return {client_id: count for client_id, count in session.execute(stmt)}

    # Files

    def create_file(
        self,
        *,
        name: str,
        type: str,
        size: int,
        uploaded_by: str,
        client_id: Optional[str] = None,
        storage_path: Optional[str] = None,
    ) -> FileRecord:
        with self.Session() as session:
            row = FileRow(
                id=_new_id(),
                name=name,
                type=type,
                size=size,
                uploaded_by=uploaded_by,
                client_id=client_id,
                storage_path=storage_path,
                uploaded_at=time.time(),
            )
            session.add(row)
            session.commit()
            return self._to_file(row)

    def get_file(self, file_id: str) -> Optional[FileRecord]:
        with self.Session() as session:
            row = session.get(FileRow, file_id)
            return self._to_file(row) if row else None

    def list_files(self, client_id: Optional[str] = None) -> list[FileRecord]:
        with self.Session() as session:
            stmt = select(FileRow).order_by(FileRow.uploaded_at.desc())
            if client_id is not None:
                stmt = stmt.where(FileRow.client_id == client_id)
            return [self._to_file(row) for row in session.execute(stmt).scalars()]

    def delete_file(self, file_id: str) -> bool:
        with self.Session() as session:
            row = session.get(FileRow, file_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    # Kanban

    def list_columns(self) -> list[KanbanColumnRecord]:
        with self.Session() as session:
            stmt = select(KanbanColumnRow).order_by(KanbanColumnRow.order_index.asc())
            return [self._to_column(row) for row in session.execute(stmt).scalars()]

    def get_column(self, column_id: str) -> Optional[KanbanColumnRecord]:
        with self.Session() as session:
            row = session.get(KanbanColumnRow, column_id)
            return self._to_column(row) if row else None

    def create_column(self, title: str, order_index: int) -> KanbanColumnRecord:
        now = time.time()
        with self.Session() as session:
            row = KanbanColumnRow(
                id=_new_id(),
                title=title,
                order_index=order_index,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            return self._to_column(row)

    def update_column(
        self, column_id: str, title: str, order_index: int
    ) -> Optional[KanbanColumnRecord]:
        with self.Session() as session:
            row = session.get(KanbanColumnRow, column_id)
            if not row:
                return None
            row.title = title
            row.order_index = order_index
            row.updated_at = time.time()
            session.commit()
            return self._to_column(row)

    def delete_column(self, column_id: str) -> bool:
        with self.Session() as session:
            row = session.get(KanbanColumnRow, column_id)
            if not row:
                return False
            session.execute(
                delete(KanbanTaskRow).where(KanbanTaskRow.column_id == column_id)
            )
            session.delete(row)
            session.commit()
            return True

    def list_tasks(self, column_id: Optional[str] = None) -> list[KanbanTaskRecord]:
        with self.Session() as session:
            stmt = select(KanbanTaskRow).order_by(KanbanTaskRow.order_index.asc())
            if column_id is not None:
                stmt = stmt.where(KanbanTaskRow.column_id == column_id)
            return [self._to_task(row) for row in session.execute(stmt).scalars()]

    def get_task(self, task_id: str) -> Optional[KanbanTaskRecord]:
        with self.Session() as session:
            row = session.get(KanbanTaskRow, task_id)
            return self._to_task(row) if row else None

    def create_task(
        self,
        *,
        title: str,
        task_type: TaskType,
        priority: Priority,
        column_id: str,
        order_index: int,
        description: Optional[str] = None,
        client_name: Optional[str] = None,
        deadline: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> KanbanTaskRecord:
        now = time.time()
        with self.Session() as session:
            row = KanbanTaskRow(
                id=_new_id(),
                title=title,
                task_type=TaskType(task_type).value,
                priority=Priority(priority).value,
                column_id=column_id,
                order_index=order_index,
                description=description,
                client_name=client_name,
                deadline=deadline,
                assigned_to=assigned_to,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            return self._to_task(row)

    def update_task(self, task_id: str, **fields) -> Optional[KanbanTaskRecord]:
        _checked_fields(fields, TASK_FIELDS)
        with self.Session() as session:
            row = session.get(KanbanTaskRow, task_id)
            if not row:
                return None
            for key, value in fields.items():
                if key == "task_type":
                    value = TaskType(value).value
                elif key == "priority":
                    value = Priority(value).value
                setattr(row, key, value)
            row.updated_at = time.time()
            session.commit()
            return self._to_task(row)

    def set_task_position(
        self, task_id: str, column_id: str, order_index: int
    ) -> Optional[KanbanTaskRecord]:
        return self.update_task(task_id, column_id=column_id, order_index=order_index)

    def delete_task(self, task_id: str) -> bool:
        with self.Session() as session:
            row = session.get(KanbanTaskRow, task_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    # Profiles

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        with self.Session() as session:
            row = session.get(ProfileRow, user_id)
            return self._to_profile(row) if row else None

    def list_profiles(self) -> list[ProfileRecord]:
        with self.Session() as session:
            stmt = select(ProfileRow).order_by(ProfileRow.created_at.asc())
            return [self._to_profile(row) for row in session.execute(stmt).scalars()]

    def save_profile(self, profile: ProfileRecord) -> ProfileRecord:
        now = time.time()
        with self.Session() as session:
            row = session.get(ProfileRow, profile.id)
            if row is None:
                row = ProfileRow(id=profile.id, created_at=profile.created_at)
                session.add(row)
            row.role = UserRole(profile.role).value
            row.email = profile.email
            row.username = profile.username
            row.full_name = profile.full_name
            row.avatar_url = profile.avatar_url
            row.updated_at = now
            session.commit()
            return self._to_profile(row)

    def update_profile_role(
        self, user_id: str, role: UserRole
    ) -> Optional[ProfileRecord]:
        with self.Session() as session:
            row = session.get(ProfileRow, user_id)
            if not row:
                return None
            row.role = UserRole(role).value
            row.updated_at = time.time()
            session.commit()
            return self._to_profile(row)


Base = declarative_base()


class ClientRow(Base):
    __tablename__ = CLIENTS_TABLE

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    company = Column(String, nullable=False)
    email = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=False)
    address = Column(String, nullable=True)
    tax_id = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    client_since = Column(String, nullable=True)
    last_activity = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class MessageRow(Base):
    __tablename__ = MESSAGES_TABLE

    id = Column(String, primary_key=True)
    client_id = Column(
        String, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content = Column(Text, nullable=False)
    sender_is_user = Column(Boolean, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(Float, nullable=False, index=True)


class FileRow(Base):
    __tablename__ = FILES_TABLE

    id = Column(String, primary_key=True)
    client_id = Column(
        String, ForeignKey("clients.id", ondelete="CASCADE"), nullable=True, index=True
    )
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)
    size = Column(Integer, nullable=False)
    storage_path = Column(String, nullable=True)
    uploaded_by = Column(String, nullable=False)
    uploaded_at = Column(Float, nullable=False, index=True)


class KanbanColumnRow(Base):
    __tablename__ = COLUMNS_TABLE

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    order_index = Column(Integer, nullable=False)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class KanbanTaskRow(Base):
    __tablename__ = TASKS_TABLE

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    task_type = Column(String, nullable=False)
    client_name = Column(String, nullable=True)
    deadline = Column(String, nullable=True)
    priority = Column(String, nullable=False)
    assigned_to = Column(String, nullable=True)
    column_id = Column(
        String,
        ForeignKey("kanban_columns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order_index = Column(Integer, nullable=False)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class ProfileRow(Base):
    __tablename__ = PROFILES_TABLE

    id = Column(String, primary_key=True)
    role = Column(String, nullable=False, default=UserRole.CLIENT.value)
    email = Column(String, nullable=True)
    username = Column(String, nullable=True)
    full_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)
