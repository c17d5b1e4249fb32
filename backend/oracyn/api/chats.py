# oracyn/api/chats.py
"""
Chat, message and document endpoints.

Responsibilities:
- Chat CRUD for the authenticated user
- Message exchange with the AI service (reply inline, or deferred to a
  background continuation depending on MESSAGE_MODE)
- Document upload into a chat, listing and deletion
"""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile, status

from oracyn.api.deps import (
    get_ai_client,
    get_chat_locks,
    get_chat_service,
    get_current_user,
    get_session_factory,
    get_settings,
    get_storage,
    get_task_tracker,
    get_upload_service,
)
from oracyn.core.config import Settings
from oracyn.db.models import MessageType, User
from oracyn.schemas.pydantic_schemas import (
    ChatCreate,
    ChatMessageResponse,
    ChatMessagesResponse,
    ChatRequest,
    ChatResponse,
    ChatSummaryResponse,
    ChatUpdate,
    DocumentResponse,
    MessageResponse,
    QueryRequest,
    QueryResponse,
    SendMessageResponse,
)
from oracyn.services.background import ChatLocks, TaskTracker
from oracyn.services.chat_service import ChatService, Exchange, reply_in_background
from oracyn.services.upload_service import UploadService, ingest_in_background

router = APIRouter(prefix="/api/chats", tags=["chats"])


# ----------------------------
# CHATS
# ----------------------------
@router.get("", response_model=List[ChatSummaryResponse])
def list_chats(
    current_user: User = Depends(get_current_user),
    chats: ChatService = Depends(get_chat_service),
):
    """Chats newest first, with a last-message preview and their documents."""
    summaries = []
    for entry in chats.list_chats(current_user.id):
        last_message = entry["last_message"]
        summaries.append(ChatSummaryResponse(
            **ChatResponse.model_validate(entry["chat"]).model_dump(),
            last_message=ChatMessageResponse.model_validate(last_message) if last_message else None,
            documents=[DocumentResponse.model_validate(doc) for doc in entry["documents"]],
        ))
    return summaries


@router.post("", response_model=ChatResponse, status_code=status.HTTP_201_CREATED)
def create_chat(
    data: ChatCreate,
    current_user: User = Depends(get_current_user),
    chats: ChatService = Depends(get_chat_service),
):
    return chats.create_chat(current_user.id, data.title)


@router.get("/{chat_id}", response_model=ChatResponse)
def get_chat(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    chats: ChatService = Depends(get_chat_service),
):
    return chats.get_owned_chat(chat_id, current_user.id)


@router.put("/{chat_id}", response_model=ChatResponse)
def update_chat(
    chat_id: int,
    data: ChatUpdate,
    current_user: User = Depends(get_current_user),
    chats: ChatService = Depends(get_chat_service),
):
    return chats.update_chat(
        chat_id,
        current_user.id,
        title=data.title,
        status=data.status,
        state=data.state,
    )


@router.delete("/{chat_id}", response_model=MessageResponse)
def delete_chat(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    chats: ChatService = Depends(get_chat_service),
):
    chats.delete_chat(chat_id, current_user.id)
    return MessageResponse(message="Chat deleted successfully")


# ----------------------------
# MESSAGES
# ----------------------------
@router.get("/{chat_id}/messages", response_model=ChatMessagesResponse)
def list_messages(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    chats: ChatService = Depends(get_chat_service),
):
    chat, messages, documents = chats.list_messages(chat_id, current_user.id)
    return ChatMessagesResponse(
        messages=[ChatMessageResponse.model_validate(m) for m in messages],
        documents=[DocumentResponse.model_validate(d) for d in documents],
        chat_state=chat.state,
    )


def _exchange(chat_id: int, caller_id: int, content: str, message_type: MessageType,
              chats: ChatService, settings: Settings, tracker: TaskTracker,
              background_tasks: BackgroundTasks, session_factory, ai_client,
              locks: ChatLocks) -> Exchange:
    """Run the exchange in the configured mode."""
    if settings.MESSAGE_MODE == "sync":
        return chats.send_message(chat_id, caller_id, content, message_type)

    exchange = chats.accept_message(chat_id, caller_id, content, message_type)
    tracker.submit(
        background_tasks,
        "assistant_reply",
        reply_in_background,
        session_factory,
        ai_client,
        locks,
        settings.CHAT_HISTORY_LIMIT,
        exchange.user_message.chat_id,
        exchange.user_message.id,
    )
    return exchange


def _reply_or_none(exchange: Exchange):
    if exchange.assistant_message is None:
        return None
    return ChatMessageResponse.model_validate(exchange.assistant_message)


@router.post("/{chat_id}/messages", response_model=SendMessageResponse)
def send_message(
    chat_id: int,
    data: ChatRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    chats: ChatService = Depends(get_chat_service),
    settings: Settings = Depends(get_settings),
    tracker: TaskTracker = Depends(get_task_tracker),
    session_factory=Depends(get_session_factory),
    ai_client=Depends(get_ai_client),
    locks: ChatLocks = Depends(get_chat_locks),
):
    """
    Send a message and get the assistant's reply.

    When the AI service fails the reply is a fixed apology and `degraded`
    is true; the request itself still succeeds.
    """
    exchange = _exchange(chat_id, current_user.id, data.content, data.type, chats, settings,
                         tracker, background_tasks, session_factory, ai_client, locks)
    return SendMessageResponse(
        user_message=ChatMessageResponse.model_validate(exchange.user_message),
        assistant_message=_reply_or_none(exchange),
        degraded=exchange.degraded,
        mode=exchange.mode,
    )


@router.post("/{chat_id}/query", response_model=QueryResponse)
def submit_query(
    chat_id: int,
    data: QueryRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    chats: ChatService = Depends(get_chat_service),
    settings: Settings = Depends(get_settings),
    tracker: TaskTracker = Depends(get_task_tracker),
    session_factory=Depends(get_session_factory),
    ai_client=Depends(get_ai_client),
    locks: ChatLocks = Depends(get_chat_locks),
):
    exchange = _exchange(chat_id, current_user.id, data.prompt, MessageType.QUERY, chats, settings,
                         tracker, background_tasks, session_factory, ai_client, locks)
    return QueryResponse(
        query=ChatMessageResponse.model_validate(exchange.user_message),
        response=_reply_or_none(exchange),
        degraded=exchange.degraded,
        mode=exchange.mode,
    )


# ----------------------------
# DOCUMENTS
# ----------------------------
@router.get("/{chat_id}/files", response_model=List[DocumentResponse])
def list_files(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    chats: ChatService = Depends(get_chat_service),
):
    chat = chats.get_owned_chat(chat_id, current_user.id)
    return [DocumentResponse.model_validate(d) for d in chats.documents.list_for_chat(chat.id)]


@router.post("/{chat_id}/upload", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
def upload_file(
    chat_id: int,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    uploads: UploadService = Depends(get_upload_service),
    settings: Settings = Depends(get_settings),
    tracker: TaskTracker = Depends(get_task_tracker),
    session_factory=Depends(get_session_factory),
    ai_client=Depends(get_ai_client),
    storage=Depends(get_storage),
):
    """
    Upload one document into a chat.

    The multipart parser has already spooled the part to a temporary file;
    at most MAX_UPLOAD_BYTES + 1 bytes of it are read into memory, enough to
    tell that a file is over the limit.
    """
    file_bytes = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    document = uploads.upload_document(
        chat_id,
        current_user.id,
        file_bytes,
        file.filename,
        file.content_type,
    )

    if settings.INGESTION_MODE == "async":
        tracker.submit(
            background_tasks,
            "document_ingestion",
            ingest_in_background,
            session_factory,
            ai_client,
            storage,
            settings,
            document.id,
            file_bytes,
        )
    return DocumentResponse.model_validate(document)


@router.delete("/{chat_id}/files/{document_id}", response_model=MessageResponse)
def delete_file(
    chat_id: int,
    document_id: int,
    current_user: User = Depends(get_current_user),
    uploads: UploadService = Depends(get_upload_service),
):
    uploads.delete_document(chat_id, current_user.id, document_id)
    return MessageResponse(message="File deleted successfully")
