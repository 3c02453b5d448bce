"""
HTTP and websocket routes for the Accountify API.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    UploadFile,
    WebSocket,
)
from fastapi.concurrency import run_in_threadpool
from starlette.websockets import WebSocketState

from accountify import files as file_ops
from accountify import kanban
from accountify import messaging
from accountify.auth import (
    CurrentUser,
    get_current_user,
    require_admin,
    require_staff,
    resolve_user,
)
from accountify.config import get_settings
from accountify.db import (
    CLIENTS_TABLE,
    PROFILES_TABLE,
    ClientRecord,
    DbClient,
)
from accountify.dependencies import get_change_feed, get_db_client, get_storage_client
from accountify.enums import ChangeType
from accountify.realtime import ChangeFeed, publish_change
from accountify.schemas import (
    ClientCreate,
    ClientFileGroupResponse,
    ClientPortalResponse,
    ClientResponse,
    ClientUpdate,
    ConversationResponse,
    DownloadUrlResponse,
    FileItemResponse,
    KanbanBoardResponse,
    KanbanColumnCreate,
    KanbanColumnResponse,
    KanbanColumnUpdate,
    KanbanTaskCreate,
    KanbanTaskResponse,
    KanbanTaskUpdate,
    MarkReadResponse,
    MessageCreate,
    MessageResponse,
    MoveTaskRequest,
    ProfileResponse,
    ReorderTasksRequest,
    RoleUpdateRequest,
    StatusResponse,
    UploadClientFileResponse,
    UploadFileResponse,
)
from accountify.storage import StorageClient, StorageError

logger = logging.getLogger(__name__)

router = APIRouter()

REALTIME_POLL_SECONDS = 0.5


def _client_response(client: ClientRecord) -> ClientResponse:
    return ClientResponse(**client.as_dict())


def _file_response(item: file_ops.FileItem) -> FileItemResponse:
    return FileItemResponse(**asdict(item))


def _message_response(message: messaging.Message) -> MessageResponse:
    return MessageResponse(**asdict(message))


def _get_client_or_404(db: DbClient, client_id: str) -> ClientRecord:
    client = db.get_client(client_id)
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


def _own_client(db: DbClient, user: CurrentUser) -> ClientRecord:
    client = db.get_client_by_email(user.email) if user.email else None
    if not client:
        raise HTTPException(status_code=404, detail="No client record for this user")
    return client


async def _read_upload(file: UploadFile) -> bytes:
    data = await file.read()
    limit = get_settings().max_upload_bytes
    if len(data) > limit:
        raise HTTPException(
            status_code=413, detail=f"File exceeds the {limit} byte upload limit"
        )
    return data


# Clients


@router.get("/clients", response_model=list[ClientResponse])
def list_clients(
    db: DbClient = Depends(get_db_client),
    user: CurrentUser = Depends(require_staff),
):
    return [_client_response(client) for client in db.list_clients()]


@router.post("/clients", response_model=ClientResponse, status_code=201)
def create_client(
    payload: ClientCreate,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    client = db.create_client(**payload.model_dump())
    logger.info("Client %s created by %s", client.id, user.id)
    publish_change(feed, CLIENTS_TABLE, ChangeType.INSERT, record=client.as_dict())
    return _client_response(client)


@router.get("/clients/{client_id}", response_model=ClientResponse)
def get_client(
    client_id: str,
    db: DbClient = Depends(get_db_client),
    user: CurrentUser = Depends(require_staff),
):
    return _client_response(_get_client_or_404(db, client_id))


@router.patch("/clients/{client_id}", response_model=ClientResponse)
def update_client(
    client_id: str,
    payload: ClientUpdate,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    old_record = _get_client_or_404(db, client_id).as_dict()
    client = db.update_client(client_id, **payload.model_dump(exclude_unset=True))
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    publish_change(
        feed,
        CLIENTS_TABLE,
        ChangeType.UPDATE,
        record=client.as_dict(),
        old_record=old_record,
    )
    return _client_response(client)


@router.delete("/clients/{client_id}", response_model=StatusResponse)
def delete_client(
    client_id: str,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    client = _get_client_or_404(db, client_id)
    file_ops.remove_client_objects(db, storage, client_id)
    if not db.delete_client(client_id):
        raise HTTPException(status_code=404, detail="Client not found")
    logger.info("Client %s deleted by %s", client_id, user.id)
    publish_change(feed, CLIENTS_TABLE, ChangeType.DELETE, old_record=client.as_dict())
    return StatusResponse(status="ok")


@router.get("/clients/{client_id}/files", response_model=list[FileItemResponse])
def list_client_files(
    client_id: str,
    db: DbClient = Depends(get_db_client),
    user: CurrentUser = Depends(require_staff),
):
    _get_client_or_404(db, client_id)
    return [_file_response(item) for item in file_ops.list_client_files(db, client_id)]


# Messages


@router.get("/conversations", response_model=list[ConversationResponse])
def list_conversations(
    db: DbClient = Depends(get_db_client),
    user: CurrentUser = Depends(require_staff),
):
    return [
        ConversationResponse(**asdict(conversation))
        for conversation in messaging.get_conversations(db)
    ]


@router.get(
    "/conversations/{client_id}/messages", response_model=list[MessageResponse]
)
def list_messages(
    client_id: str,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    _get_client_or_404(db, client_id)
    messages = messaging.get_messages_for_client(db, client_id, feed=feed)
    return [_message_response(message) for message in messages]


@router.post(
    "/conversations/{client_id}/messages",
    response_model=MessageResponse,
    status_code=201,
)
def send_message(
    client_id: str,
    payload: MessageCreate,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    _get_client_or_404(db, client_id)
    try:
        record = messaging.send_message(
            db, client_id, payload.content, is_accountant=True, feed=feed
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _message_response(messaging.staff_view(record))


@router.post("/conversations/{client_id}/read", response_model=MarkReadResponse)
def mark_conversation_read(
    client_id: str,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    _get_client_or_404(db, client_id)
    changed = messaging.mark_messages_as_read(db, client_id, feed=feed)
    return MarkReadResponse(client_id=client_id, marked_read=changed)


# Files


@router.get("/files", response_model=list[FileItemResponse])
def list_files(
    db: DbClient = Depends(get_db_client),
    user: CurrentUser = Depends(require_staff),
):
    return [_file_response(item) for item in file_ops.list_all_files(db)]


@router.get("/files/by-client", response_model=list[ClientFileGroupResponse])
def list_files_by_client(
    db: DbClient = Depends(get_db_client),
    user: CurrentUser = Depends(require_staff),
):
    return [
        ClientFileGroupResponse(
            client_id=group.client_id,
            client_name=group.client_name,
            files=[_file_response(item) for item in group.files],
        )
        for group in file_ops.list_files_by_client(db)
    ]


@router.get("/files/{file_id}/download-url", response_model=DownloadUrlResponse)
def file_download_url(
    file_id: str,
    expires_in: int = Query(3600, ge=60, le=86400),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    user: CurrentUser = Depends(get_current_user),
):
    record = db.get_file(file_id)
    if not record or not record.storage_path:
        raise HTTPException(status_code=404, detail="File not found")
    if not user.is_staff and record.client_id != _own_client(db, user).id:
        raise HTTPException(status_code=404, detail="File not found")
    return DownloadUrlResponse(
        url=storage.presign_get(record.storage_path, expires_in=expires_in)
    )


@router.delete("/files/{file_id}", response_model=StatusResponse)
def delete_file(
    file_id: str,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    if not file_ops.delete_file(db, storage, file_id, feed=feed):
        raise HTTPException(status_code=404, detail="File not found")
    return StatusResponse(status="ok")


@router.post("/upload-file", response_model=UploadFileResponse)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    client_id: Optional[str] = Form(None, alias="clientId"),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    """
    Upload a file from the accountant's file manager, optionally attached to a client.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if client_id:
        _get_client_or_404(db, client_id)
    data = await _read_upload(file)
    try:
        record = file_ops.upload_file(
            db,
            storage,
            file_name=file_ops.sanitize_file_name(file.filename),
            data=data,
            content_type=file.content_type,
            uploaded_by=user.profile.display_name,
            client_id=client_id or None,
            feed=feed,
        )
    except StorageError:
        logger.exception("Storage upload error")
        raise HTTPException(
            status_code=500, detail="Failed to upload file to storage"
        )
    return UploadFileResponse(
        message="File uploaded successfully",
        file=_file_response(file_ops.to_file_item(record)),
    )


@router.post("/upload-client-file", response_model=UploadClientFileResponse)
async def upload_client_file(
    file: Optional[UploadFile] = File(None),
    client_id: Optional[str] = Form(None, alias="clientId"),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Upload a file into a client's folder. Clients may only upload to their own record.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not client_id:
        raise HTTPException(status_code=400, detail="No client ID provided")
    client = _get_client_or_404(db, client_id)
    if not user.is_staff and _own_client(db, user).id != client.id:
        raise HTTPException(status_code=403, detail="Cannot upload for another client")
    data = await _read_upload(file)
    try:
        record = file_ops.upload_file(
            db,
            storage,
            file_name=file.filename,
            data=data,
            content_type=file.content_type,
            uploaded_by="You",
            client_id=client.id,
            feed=feed,
        )
    except StorageError:
        logger.exception("Storage upload error for client %s", client.id)
        raise HTTPException(status_code=500, detail="Failed to upload file")
    return UploadClientFileResponse(
        message="File uploaded successfully",
        file_path=record.storage_path,
        file_name=record.name,
    )


# Kanban


def _column_response(column: kanban.BoardColumn) -> KanbanColumnResponse:
    return KanbanColumnResponse(**column.as_dict())


@router.get("/kanban/board", response_model=KanbanBoardResponse)
def get_kanban_board(
    db: DbClient = Depends(get_db_client),
    user: CurrentUser = Depends(require_staff),
):
    return KanbanBoardResponse(
        columns=[_column_response(column) for column in kanban.get_board(db)]
    )


@router.post("/kanban/columns", response_model=KanbanColumnResponse, status_code=201)
def create_kanban_column(
    payload: KanbanColumnCreate,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    column = kanban.create_column(db, payload.title, payload.order_index, feed=feed)
    return KanbanColumnResponse(
        id=column.id, title=column.title, order_index=column.order_index
    )


@router.put("/kanban/columns/{column_id}", response_model=KanbanColumnResponse)
def update_kanban_column(
    column_id: str,
    payload: KanbanColumnUpdate,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    try:
        column = kanban.update_column(
            db, column_id, payload.title, payload.order_index, feed=feed
        )
    except kanban.BoardError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return KanbanColumnResponse(
        id=column.id,
        title=column.title,
        order_index=column.order_index,
        tasks=[KanbanTaskResponse(**t.as_dict()) for t in db.list_tasks(column.id)],
    )


@router.delete("/kanban/columns/{column_id}", response_model=StatusResponse)
def delete_kanban_column(
    column_id: str,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    try:
        kanban.delete_column(db, column_id, feed=feed)
    except kanban.BoardError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return StatusResponse(status="ok")


@router.post("/kanban/tasks", response_model=KanbanTaskResponse, status_code=201)
def create_kanban_task(
    payload: KanbanTaskCreate,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    try:
        task = kanban.add_task(db, feed=feed, **payload.model_dump())
    except kanban.BoardError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return KanbanTaskResponse(**task.as_dict())


@router.post("/kanban/tasks/reorder", response_model=list[KanbanTaskResponse])
def reorder_kanban_tasks(
    payload: ReorderTasksRequest,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    try:
        tasks = kanban.reorder_tasks(
            db, [(p.id, p.order_index) for p in payload.tasks], feed=feed
        )
    except kanban.BoardError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return [KanbanTaskResponse(**task.as_dict()) for task in tasks]


@router.patch("/kanban/tasks/{task_id}", response_model=KanbanTaskResponse)
def update_kanban_task(
    task_id: str,
    payload: KanbanTaskUpdate,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    fields = payload.model_dump(exclude_unset=True)
    try:
        task = kanban.update_task(db, task_id, feed=feed, **fields)
    except kanban.BoardError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return KanbanTaskResponse(**task.as_dict())


@router.post("/kanban/tasks/{task_id}/move", response_model=KanbanTaskResponse)
def move_kanban_task(
    task_id: str,
    payload: MoveTaskRequest,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    try:
        task = kanban.move_task(
            db, task_id, payload.column_id, payload.order_index, feed=feed
        )
    except kanban.BoardError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return KanbanTaskResponse(**task.as_dict())


@router.delete("/kanban/tasks/{task_id}", response_model=StatusResponse)
def delete_kanban_task(
    task_id: str,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_staff),
):
    try:
        kanban.delete_task(db, task_id, feed=feed)
    except kanban.BoardError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return StatusResponse(status="ok")


# Profiles


@router.get("/profiles/me", response_model=ProfileResponse)
def get_my_profile(user: CurrentUser = Depends(get_current_user)):
    return ProfileResponse(**user.profile.as_dict())


@router.get("/profiles", response_model=list[ProfileResponse])
def list_profiles(
    db: DbClient = Depends(get_db_client),
    user: CurrentUser = Depends(require_admin),
):
    return [ProfileResponse(**profile.as_dict()) for profile in db.list_profiles()]


@router.patch("/profiles/{user_id}/role", response_model=ProfileResponse)
def update_profile_role(
    user_id: str,
    payload: RoleUpdateRequest,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(require_admin),
):
    if user_id == user.id:
        raise HTTPException(status_code=400, detail="Cannot change your own role")
    profile = db.update_profile_role(user_id, payload.role)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    logger.info("User %s set role of %s to %s", user.id, user_id, payload.role.value)
    publish_change(feed, PROFILES_TABLE, ChangeType.UPDATE, record=profile.as_dict())
    return ProfileResponse(**profile.as_dict())


# Client portal


@router.get("/me/client", response_model=ClientPortalResponse)
def get_client_portal(
    db: DbClient = Depends(get_db_client),
    user: CurrentUser = Depends(get_current_user),
):
    client = _own_client(db, user)
    return ClientPortalResponse(
        client=_client_response(client),
        messages=[
            _message_response(messaging.client_view(record))
            for record in db.list_messages(client.id)
        ],
        files=[_file_response(item) for item in file_ops.list_client_files(db, client.id)],
    )


@router.post("/me/messages", response_model=MessageResponse, status_code=201)
def send_client_message(
    payload: MessageCreate,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    user: CurrentUser = Depends(get_current_user),
):
    client = _own_client(db, user)
    try:
        record = messaging.send_message(
            db, client.id, payload.content, is_accountant=False, feed=feed
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _message_response(messaging.client_view(record))


# Realtime


@router.websocket("/realtime")
async def realtime_changes(
    websocket: WebSocket,
    token: str = Query(...),
    table: Optional[list[str]] = Query(None),
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Stream table changes as JSON objects until the socket closes.

    Pass ``table`` one or more times to narrow the feed; staff only.
    """
    try:
        user = resolve_user(token, db)
    except HTTPException:
        await websocket.close(code=1008)
        return
    if not user.is_staff:
        await websocket.close(code=1008)
        return

    subscription = feed.subscribe(table)
    await websocket.accept()

    async def pump() -> None:
        while True:
            event = await run_in_threadpool(subscription.get, REALTIME_POLL_SECONDS)
            if event is not None:
                await websocket.send_json(event.as_dict())

    async def wait_for_disconnect() -> None:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

    sender = asyncio.create_task(pump())
    receiver = asyncio.create_task(wait_for_disconnect())
    try:
        await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        sender.cancel()
        receiver.cancel()
        await asyncio.gather(sender, receiver, return_exceptions=True)
        subscription.close()

    failure = None if sender.cancelled() else sender.exception()
    if (
        failure is not None
        and receiver.cancelled()
        and websocket.client_state == WebSocketState.CONNECTED
    ):
        # The client is still connected but no more events can reach it.
        logger.error("Realtime stream for %s failed: %r", user.id, failure)
        await websocket.close(code=1011)
    else:
        logger.debug("Realtime subscriber %s disconnected", user.id)
