"""
Enumerations shared by the database, routes and services.
"""

from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "Admin"
    COLLABORATOR = "Collaborator"
    CLIENT = "Client"

    @property
    def is_staff(self) -> bool:
        return self in (UserRole.ADMIN, UserRole.COLLABORATOR)


class TaskType(str, Enum):
    TAX_FILING = "Tax Filing"
    AUDIT = "Audit"
    CONSULTATION = "Consultation"
    BOOKKEEPING = "Bookkeeping"
    PAYROLL = "Payroll"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class FileKind(str, Enum):
    PDF = "pdf"
    IMAGE = "image"
    DOCUMENT = "document"
    SPREADSHEET = "spreadsheet"
    ARCHIVE = "archive"
    OTHER = "other"


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


_EXTENSION_KINDS = {
    "pdf": FileKind.PDF,
    "jpg": FileKind.IMAGE,
    "jpeg": FileKind.IMAGE,
    "png": FileKind.IMAGE,
    "gif": FileKind.IMAGE,
    "webp": FileKind.IMAGE,
    "doc": FileKind.DOCUMENT,
    "docx": FileKind.DOCUMENT,
    "txt": FileKind.DOCUMENT,
    "rtf": FileKind.DOCUMENT,
    "xls": FileKind.SPREADSHEET,
    "xlsx": FileKind.SPREADSHEET,
    "csv": FileKind.SPREADSHEET,
    "zip": FileKind.ARCHIVE,
    "rar": FileKind.ARCHIVE,
    "7z": FileKind.ARCHIVE,
    "tar": FileKind.ARCHIVE,
    "gz": FileKind.ARCHIVE,
}


def file_extension(name: str) -> str:
    """Return the text after the last dot, or "" when there is none."""
    if "." not in (name or ""):
        return ""
    return name.rsplit(".", 1)[1]


def file_kind(name: str) -> FileKind:
    """Classify a file by the extension of its name."""
    return _EXTENSION_KINDS.get(file_extension(name).lower(), FileKind.OTHER)
