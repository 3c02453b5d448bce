"""
Client file uploads, listings and deletion.

Object bytes live in the storage bucket; the ``client_files`` table holds the
metadata and the storage path of each object.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from accountify.db import FILES_TABLE, DbClient, FileRecord, iso_timestamp
from accountify.enums import ChangeType, FileKind, file_extension, file_kind
from accountify.realtime import ChangeFeed, publish_change
from accountify.storage import StorageClient, StorageError

logger = logging.getLogger(__name__)

_NON_ASCII = re.compile(r"[^\x00-\x7F]")


@dataclass
class FileItem:
    id: str
    name: str
    kind: FileKind
    content_type: str
    size: int
    uploaded_at: Optional[str]
    uploaded_by: str
    client_id: Optional[str] = None
    storage_path: Optional[str] = None


@dataclass
class ClientFileGroup:
    client_id: str
    client_name: str
    files: list[FileItem] = field(default_factory=list)


def to_file_item(record: FileRecord) -> FileItem:
    return FileItem(
        id=record.id,
        name=record.name,
        kind=file_kind(record.name),
        content_type=record.type,
        size=record.size,
        uploaded_at=iso_timestamp(record.uploaded_at),
        uploaded_by=record.uploaded_by,
        client_id=record.client_id,
        storage_path=record.storage_path,
    )


def sanitize_file_name(name: str) -> str:
    """Drop non-ASCII characters, which some object stores reject in keys."""
    return _NON_ASCII.sub("", name or "")


def build_storage_path(
    file_name: str,
    client_id: Optional[str] = None,
    *,
    stamp: Optional[int] = None,
) -> str:
    """
    Build the object key for an upload.

    Client uploads are grouped under the client id and named by upload time in
    milliseconds; other uploads get a random name at the bucket root.
    """
    ext = file_extension(sanitize_file_name(file_name))
    suffix = f".{ext}" if ext else ""
    if client_id:
        if stamp is None:
            stamp = int(time.time() * 1000)
        return f"{client_id}/{stamp}{suffix}"
    return f"{uuid.uuid4()}{suffix}"


def list_all_files(db: DbClient) -> list[FileItem]:
    return [to_file_item(record) for record in db.list_files()]


def list_client_files(db: DbClient, client_id: str) -> list[FileItem]:
    return [to_file_item(record) for record in db.list_files(client_id=client_id)]


def list_files_by_client(db: DbClient) -> list[ClientFileGroup]:
    groups = {
        client.id: ClientFileGroup(client_id=client.id, client_name=client.name)
        for client in db.list_clients()
    }
    for record in db.list_files():
        group = groups.get(record.client_id)
        if group is not None:
            group.files.append(to_file_item(record))
    return list(groups.values())


def upload_file(
    db: DbClient,
    storage: StorageClient,
    *,
    file_name: str,
    data: bytes,
    content_type: Optional[str],
    uploaded_by: str,
    client_id: Optional[str] = None,
    storage_path: Optional[str] = None,
    feed: ChangeFeed | None = None,
) -> FileRecord:
    """
    Store the bytes and record their metadata.

    Raises ``StorageError`` when the object cannot be stored. When the metadata
    insert fails the stored object is removed again before re-raising.
    """
    path = storage_path or build_storage_path(file_name, client_id)
    content_type = content_type or "application/octet-stream"
    storage.upload_bytes(path, data, content_type)
    try:
        record = db.create_file(
            name=file_name,
            type=content_type,
            size=len(data),
            uploaded_by=uploaded_by,
            client_id=client_id,
            storage_path=path,
        )
    except Exception:
        logger.exception("Failed to save metadata for %s; removing object", path)
        try:
            storage.remove([path])
        except StorageError:
            logger.exception("Failed to remove orphaned object %s", path)
        raise
    logger.info("Stored %s (%d bytes) at %s", file_name, len(data), path)
    publish_change(feed, FILES_TABLE, ChangeType.INSERT, record=record.as_dict())
    return record


def delete_file(
    db: DbClient,
    storage: StorageClient,
    file_id: str,
    feed: ChangeFeed | None = None,
) -> bool:
    """Delete the object and its metadata; False when the file is unknown."""
    record = db.get_file(file_id)
    if record is None:
        return False
    if record.storage_path:
        try:
            storage.remove([record.storage_path])
        except StorageError:
            # The metadata row is deleted even when the object removal fails.
            logger.exception("Error deleting %s from storage", record.storage_path)
    if not db.delete_file(file_id):
        return False
    publish_change(feed, FILES_TABLE, ChangeType.DELETE, old_record=record.as_dict())
    return True


def remove_client_objects(db: DbClient, storage: StorageClient, client_id: str) -> None:
    """Remove the stored objects of every file attached to a client."""
    paths = [f.storage_path for f in db.list_files(client_id=client_id) if f.storage_path]
    if not paths:
        return
    try:
        storage.remove(paths)
    except StorageError:
        logger.exception("Error deleting files of client %s from storage", client_id)
