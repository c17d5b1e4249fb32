"""Repository for uploaded document metadata."""

from typing import List, Optional

from sqlalchemy.orm import Session

from oracyn.db.models import Document


class DocumentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, document_id: int) -> Optional[Document]:
        return self.db.query(Document).filter(Document.id == document_id).first()

    def get_in_chat(self, document_id: int, chat_id: int) -> Optional[Document]:
        return (
            self.db.query(Document)
            .filter(Document.id == document_id, Document.chat_id == chat_id)
            .first()
        )

    def list_for_chat(self, chat_id: int) -> List[Document]:
        return (
            self.db.query(Document)
            .filter(Document.chat_id == chat_id)
            .order_by(Document.uploaded_at, Document.id)
            .all()
        )

    def create(self, **fields) -> Document:
        document = Document(**fields)
        self.db.add(document)
        self.db.commit()
        self.db.refresh(document)
        return document

    def set_processed(self, document: Document, processed: bool = True) -> Document:
        document.processed = processed
        self.db.commit()
        self.db.refresh(document)
        return document

    def delete(self, document: Document) -> None:
        self.db.delete(document)
        self.db.commit()
