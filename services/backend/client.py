"""Client for the invoicing backend REST API.

Fetches finalized invoice and receipt payloads on behalf of a caller
Session. Transient transport failures are retried; HTTP error responses are
surfaced as BackendError with the backend's status code and message.
"""

import logging
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from services.billing.schema import DocumentKind
from services.shared.config import Settings
from services.shared.session import Session

logger = logging.getLogger(__name__)

DOCUMENT_PATHS = {
    DocumentKind.INVOICE: "/invoices",
    DocumentKind.RECEIPT: "/receipts",
}


class BackendError(Exception):
    """Backend API call failed.

    Attributes:
        status_code: HTTP status returned by the backend (None when unreachable)
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BackendClient:
    """Thin wrapper over httpx for backend document endpoints."""

    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        """Initialize backend client.

        Args:
            settings: Application settings with backend URL and timeout
            client: Optional preconfigured HTTP client
        """
        self.settings = settings
        self._client = client or httpx.Client(
            base_url=settings.backend_api_url,
            timeout=settings.backend_timeout,
        )

    def fetch_document(self, kind: DocumentKind, document_id: str, session: Session) -> Any:
        """Fetch the raw JSON payload of an invoice or receipt.

        Args:
            kind: Document type
            document_id: Backend identifier
            session: Caller whose credentials and tenant scope are forwarded

        Returns:
            Decoded JSON body

        Raises:
            BackendError: If the backend is unreachable or answers with an error
        """
        path = f"{DOCUMENT_PATHS[kind]}/{document_id}"
        try:
            response = self._get_with_retry(path, session.backend_headers())
        except httpx.HTTPError as e:
            logger.error(f"Backend unreachable for {path}: {e}")
            raise BackendError(f"Backend unreachable: {e}") from e

        if response.is_error:
            message = self._error_message(response) or f"Failed to load {kind.value}"
            logger.warning(f"Backend returned {response.status_code} for {path}: {message}")
            raise BackendError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"Backend returned invalid JSON for {path}") from e

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
        wait=wait_exponential_jitter(initial=1, max=10),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _get_with_retry(self, path: str, headers: dict[str, str]) -> httpx.Response:
        return self._client.get(path, headers=headers)

    @staticmethod
    def _error_message(response: httpx.Response) -> str | None:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and isinstance(body.get("message"), str):
            return body["message"]
        return None

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()
