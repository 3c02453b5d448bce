"""
Pydantic schemas for the Accountify API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from accountify.enums import FileKind, Priority, TaskType, UserRole


class StatusResponse(BaseModel):
    status: Literal["ok"]


# Clients


class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    company: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    phone: str = Field(..., min_length=1, max_length=64)
    address: Optional[str] = None
    tax_id: Optional[str] = None
    notes: Optional[str] = None
    client_since: Optional[str] = None


class ClientUpdate(BaseModel):
    # Omitted fields are left alone; required columns reject an explicit null.
    name: str = Field(None, min_length=1, max_length=200)
    company: str = Field(None, min_length=1, max_length=200)
    email: str = Field(None, min_length=3, max_length=320)
    phone: str = Field(None, min_length=1, max_length=64)
    address: Optional[str] = None
    tax_id: Optional[str] = None
    notes: Optional[str] = None
    client_since: Optional[str] = None
    last_activity: Optional[str] = None


class ClientResponse(BaseModel):
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
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# Messages


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)


class MessageSender(BaseModel):
    id: str
    name: str
    is_accountant: bool


class MessageResponse(BaseModel):
    id: str
    content: str
    timestamp: Optional[str] = None
    sender: MessageSender
    read: bool


class ConversationResponse(BaseModel):
    client_id: str
    client_name: str
    unread_count: int
    last_message: Optional[str] = None
    last_message_time: Optional[str] = None
    messages: list[MessageResponse] = []


class MarkReadResponse(BaseModel):
    client_id: str
    marked_read: int


# Files


class FileItemResponse(BaseModel):
    id: str
    name: str
    kind: FileKind
    content_type: str
    size: int
    uploaded_at: Optional[str] = None
    uploaded_by: str
    client_id: Optional[str] = None
    storage_path: Optional[str] = None


class ClientFileGroupResponse(BaseModel):
    client_id: str
    client_name: str
    files: list[FileItemResponse]


class UploadFileResponse(BaseModel):
    message: str
    file: FileItemResponse


class UploadClientFileResponse(BaseModel):
    message: str
    file_path: str
    file_name: str


class DownloadUrlResponse(BaseModel):
    url: str


# Kanban


class KanbanColumnCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    order_index: Optional[int] = Field(None, ge=0)


class KanbanColumnUpdate(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    order_index: int = Field(..., ge=0)


class KanbanTaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    task_type: TaskType
    priority: Priority
    column_id: str
    order_index: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    client_name: Optional[str] = None
    deadline: Optional[str] = None
    assigned_to: Optional[str] = None


class KanbanTaskUpdate(BaseModel):
    title: str = Field(None, min_length=1, max_length=200)
    task_type: TaskType = None
    priority: Priority = None
    column_id: str = None
    order_index: int = Field(None, ge=0)
    description: Optional[str] = None
    client_name: Optional[str] = None
    deadline: Optional[str] = None
    assigned_to: Optional[str] = None


class MoveTaskRequest(BaseModel):
    column_id: str
    order_index: Optional[int] = Field(None, ge=0)


class TaskPosition(BaseModel):
    id: str
    order_index: int = Field(..., ge=0)


class ReorderTasksRequest(BaseModel):
    tasks: list[TaskPosition]


class KanbanTaskResponse(BaseModel):
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
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class KanbanColumnResponse(BaseModel):
    id: str
    title: str
    order_index: int
    tasks: list[KanbanTaskResponse] = []


class KanbanBoardResponse(BaseModel):
    columns: list[KanbanColumnResponse]


# Profiles


class ProfileResponse(BaseModel):
    id: str
    role: UserRole
    email: Optional[str] = None
    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class RoleUpdateRequest(BaseModel):
    role: UserRole


# Client portal


class ClientPortalResponse(BaseModel):
    client: ClientResponse
    messages: list[MessageResponse]
    files: list[FileItemResponse]
