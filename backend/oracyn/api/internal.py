# oracyn/api/internal.py
"""
Endpoints called by the AI service, not by end users.
Requests carry a short-lived service token signed with the shared secret.
"""

from fastapi import APIRouter, Depends

from oracyn.api.deps import get_upload_service, require_service_token
from oracyn.core.logging import get_logger
from oracyn.schemas.pydantic_schemas import DocumentResponse, ProcessedCallback
from oracyn.services.upload_service import UploadService

LOGGER = get_logger(__name__)

router = APIRouter(prefix="/api/internal", tags=["internal"])


@router.post("/documents/{document_id}/processed", response_model=DocumentResponse)
def document_processed(
    document_id: int,
    data: ProcessedCallback,
    claims: dict = Depends(require_service_token),
    uploads: UploadService = Depends(get_upload_service),
):
    document = uploads.mark_processed(document_id, data.processed)
    LOGGER.info(f"{claims.get('service')} marked document {document_id} processed={data.processed}")
    return DocumentResponse.model_validate(document)
