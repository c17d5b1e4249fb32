# oracyn/services/upload_service.py
"""
Upload orchestration.

Responsibilities:
- Enforce the MIME allow-list and the size limit before anything is stored
- Write the bytes to the storage backend and record a Document row
- Remove the stored object again whenever the upload fails after the write
  (ownership check, database error), so no orphaned files remain
- Trigger AI-side ingestion either inline or as a background continuation,
  and flip `Document.processed` once the AI service confirms it
"""

from typing import Optional

from sqlalchemy.orm import Session

from oracyn.core.errors import (
    NotFound,
    PayloadTooLarge,
    UnsupportedMediaType,
    ValidationFailed,
)
from oracyn.core.logging import get_logger
from oracyn.db.models import Document
from oracyn.repositories.chat_repository import ChatRepository
from oracyn.repositories.document_repository import DocumentRepository
from oracyn.services.ai_client import AIServiceError
from oracyn.services.storage import build_object_key

LOGGER = get_logger(__name__)


class UploadService:
    def __init__(self, db: Session, ai_client, storage, settings):
        self.db = db
        self.ai_client = ai_client
        self.storage = storage
        self.settings = settings
        self.chats = ChatRepository(db)
        self.documents = DocumentRepository(db)

    def validate(self, file_bytes: bytes, file_name: Optional[str], mime_type: Optional[str]) -> None:
        """Reject bad uploads before any byte is written or row created."""
        if not file_name:
            raise ValidationFailed("File name is required")
        if not file_bytes:
            raise ValidationFailed("File is empty")
        if mime_type not in self.settings.ALLOWED_UPLOAD_TYPES:
            LOGGER.info(f"Rejected upload '{file_name}': type {mime_type} not allowed")
            raise UnsupportedMediaType("Invalid file type")
        if len(file_bytes) > self.settings.MAX_UPLOAD_BYTES:
            LOGGER.info(f"Rejected upload '{file_name}': larger than {self.settings.MAX_UPLOAD_BYTES} bytes")
            raise PayloadTooLarge(
                f"File too large (limit {self.settings.MAX_UPLOAD_BYTES} bytes)"
            )

    def upload_document(self, chat_id: int, caller_id: int, file_bytes: bytes,
                        file_name: str, mime_type: str) -> Document:
        """
        Store an uploaded file and record its metadata.

        With INGESTION_MODE=sync the AI service is called before returning;
        otherwise the caller schedules `ingest_in_background`.
        """
        self.validate(file_bytes, file_name, mime_type)

        locator = self.storage.save(build_object_key(caller_id, chat_id, file_name), file_bytes)
        try:
            chat = self.chats.get_owned(chat_id, caller_id)
            if chat is None:
                raise NotFound("Chat not found", code="CHAT_NOT_FOUND")

            document = self.documents.create(
                chat_id=chat.id,
                user_id=caller_id,
                name=file_name,
                storage_key=locator,
                mime_type=mime_type,
                size_bytes=len(file_bytes),
                processed=False,
            )
        except Exception:
            # Nothing references the stored object yet; remove it
            self.db.rollback()
            self.storage.delete(locator)
            raise

        self.chats.touch(chat)
        LOGGER.info(f"Stored document {document.id} '{file_name}' ({len(file_bytes)} bytes) in chat {chat.id}")

        if self.settings.INGESTION_MODE == "sync":
            self.ingest(document, file_bytes)
        return document

    def ingest(self, document: Document, file_bytes: bytes) -> bool:
        """
        Ask the AI service to ingest `document`.

        An AI failure leaves the document unprocessed; the upload itself
        still stands.
        """
        try:
            self.ai_client.process_document(document.name, file_bytes, document.chat_id)
        except AIServiceError as e:
            LOGGER.warning(f"Ingestion of document {document.id} failed ({e.kind}): {e}")
            return False

        self.documents.set_processed(document, True)
        return True

    def mark_processed(self, document_id: int, processed: bool = True) -> Document:
        """Callback path: the AI service reports ingestion finished."""
        document = self.documents.get(document_id)
        if document is None:
            raise NotFound("Document not found", code="DOCUMENT_NOT_FOUND")
        return self.documents.set_processed(document, processed)

    def delete_document(self, chat_id: int, caller_id: int, document_id: int) -> None:
        chat = self.chats.get_owned(chat_id, caller_id)
        if chat is None:
            raise NotFound("Chat not found", code="CHAT_NOT_FOUND")
        document = self.documents.get_in_chat(document_id, chat.id)
        if document is None:
            raise NotFound("Document not found", code="DOCUMENT_NOT_FOUND")

        locator = document.storage_key
        self.documents.delete(document)
        self.storage.delete(locator)

        try:
            self.ai_client.delete_document(chat.id, document_id)
        except AIServiceError as e:
            LOGGER.warning(f"AI service kept embeddings for document {document_id}: {e}")

        self.chats.touch(chat)


def ingest_in_background(session_factory, ai_client, storage, settings,
                         document_id: int, file_bytes: bytes) -> None:
    """
    Background continuation for INGESTION_MODE=async. Opens its own session
    because the request's session is closed by the time it runs.
    """
    db = session_factory()
    try:
        service = UploadService(db, ai_client, storage, settings)
        document = service.documents.get(document_id)
        if document is None:
            LOGGER.info(f"Document {document_id} was removed before ingestion")
            return
        service.ingest(document, file_bytes)
    finally:
        db.close()
