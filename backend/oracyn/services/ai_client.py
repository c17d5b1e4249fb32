# oracyn/services/ai_client.py

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from oracyn.core.logging import get_logger
from oracyn.core.security import create_service_token

"""
HTTP client for the external AI service.

Responsibilities:
- Attach a short-lived service-to-service token to every request
- Serialize requests as JSON and parse JSON responses
- Map every transport failure (timeout, connection error, non-2xx,
  malformed body) to a single `AIServiceError` the orchestrators can catch

Requests are made once: no retry or backoff.
"""

LOGGER = get_logger(__name__)


class AIServiceError(Exception):
    """
    Uniform failure raised by `AIServiceClient`.

    `kind` is one of "timeout", "connection", "http" or "protocol".
    """

    def __init__(self, message: str, kind: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


@dataclass
class AIAnswer:
    answer: str
    tokens_used: Optional[int] = None
    sources: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class AIChart:
    type: str
    data: Any
    config: Dict[str, Any]
    tokens_used: Optional[int] = None


class AIServiceClient:
    """
    Request/response pass-through to the AI service.

    A `requests.Session` may be injected (tests pass a mock); otherwise one
    is created and reused for connection pooling.
    """

    def __init__(
        self,
        base_url: str,
        secret: str,
        token_ttl_minutes: int = 5,
        timeout: float = 30,
        document_timeout: float = 300,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.secret = secret
        self.token_ttl_minutes = token_ttl_minutes
        self.timeout = timeout
        self.document_timeout = document_timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings) -> "AIServiceClient":
        return cls(
            base_url=settings.AI_SERVICE_URL,
            secret=settings.ai_service_secret,
            token_ttl_minutes=settings.AI_SERVICE_TOKEN_EXPIRE_MINUTES,
            timeout=settings.AI_SERVICE_TIMEOUT,
            document_timeout=settings.AI_DOCUMENT_TIMEOUT,
        )

    # ----------------------------
    # Transport
    # ----------------------------
    def _headers(self) -> Dict[str, str]:
        token = create_service_token(self.secret, self.token_ttl_minutes)
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, payload: Optional[dict] = None,
                 timeout: Optional[float] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(),
                json=payload,
                timeout=timeout or self.timeout,
            )
        except requests.exceptions.Timeout as e:
            LOGGER.warning(f"AI service timed out: {method} {path}")
            raise AIServiceError(f"AI service request timed out: {path}", "timeout") from e
        except requests.exceptions.RequestException as e:
            # Connection refused, DNS failure, broken pipe...
            LOGGER.warning(f"AI service unreachable: {method} {path}: {e}")
            raise AIServiceError(f"AI service unreachable: {e}", "connection") from e

        if not 200 <= response.status_code < 300:
            detail = _error_detail(response)
            LOGGER.warning(f"AI service returned {response.status_code} for {method} {path}: {detail}")
            raise AIServiceError(
                f"AI service error ({response.status_code}): {detail}",
                "http",
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as e:
            raise AIServiceError("AI service returned invalid JSON", "protocol",
                                 status_code=response.status_code) from e
        if not isinstance(body, dict):
            raise AIServiceError("AI service returned an unexpected payload", "protocol",
                                 status_code=response.status_code)
        return body

    # ----------------------------
    # Operations
    # ----------------------------
    def process_document(self, file_name: str, file_content: bytes, chat_id: int) -> Dict[str, Any]:
        """
        Hand a document to the AI service for ingestion. The bytes travel
        base64-encoded in the JSON body, so no shared filesystem is needed.
        """
        payload = {
            "file_name": file_name,
            "file_content_base64": base64.b64encode(file_content).decode("ascii"),
            "chat_id": chat_id,
        }
        body = self._request("POST", "/process-document", payload, timeout=self.document_timeout)
        if not body.get("success"):
            raise AIServiceError("AI service did not confirm document processing", "protocol")
        return body

    def answer_query(self, query_text: str, chat_id: int,
                     history: Optional[List[Dict[str, str]]] = None) -> AIAnswer:
        """
        Ask the AI service to answer `query_text` in the context of a chat.
        `history` is the preceding conversation, oldest first.
        """
        payload = {
            "query_text": query_text,
            "chat_id": chat_id,
            "history": history or [],
        }
        body = self._request("POST", "/answer-query", payload)

        answer = body.get("answer")
        if not isinstance(answer, str) or not answer.strip():
            raise AIServiceError("AI service returned an empty answer", "protocol")
        return AIAnswer(
            answer=answer,
            tokens_used=_as_int(body.get("tokens_used")),
            sources=body.get("sources") or [],
        )

    def generate_chart(self, prompt: str, chat_id: int, chart_type: str) -> AIChart:
        payload = {"prompt": prompt, "chat_id": chat_id, "chart_type": chart_type}
        body = self._request("POST", "/generate-chart", payload)

        chart_json = body.get("chart_json")
        if not isinstance(chart_json, dict) or "data" not in chart_json:
            raise AIServiceError("AI service returned no chart", "protocol")
        return AIChart(
            type=chart_json.get("type") or chart_type,
            data=chart_json["data"],
            config=chart_json.get("config") or {},
            tokens_used=_as_int(body.get("tokens_used")),
        )

    def delete_document(self, chat_id: int, document_id: int) -> Dict[str, Any]:
        return self._request("DELETE", f"/documents/{chat_id}/{document_id}")

    def health_check(self) -> Dict[str, Any]:
        """Never raises; an unreachable service is reported as unhealthy."""
        try:
            return self._request("GET", "/health", timeout=5)
        except AIServiceError as e:
            return {"status": "unhealthy", "error": str(e)}


def _error_detail(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or body)
    return str(body)


def _as_int(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
