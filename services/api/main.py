"""FastAPI application for invoice and receipt documents.

Production-ready API with:
- Health and readiness checks for Kubernetes
- Live financial summaries for draft editors
- Synchronous PDF/text rendering and backend-backed downloads
- Background rendering through the arq queue
- Prometheus metrics for monitoring

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Literal
from urllib.parse import quote

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, Field

from services.api import metrics
from services.backend.client import BackendClient, BackendError
from services.billing.calculator import compute_summary
from services.billing.errors import InvalidDocumentError
from services.billing.money import format_money
from services.billing.parsing import parse_document
from services.billing.schema import DocumentKind, FinalizedDocument, FinancialSummary, LineItem
from services.queue.tasks import (
    JobResult,
    JobStatus,
    job_key,
    redis_settings_from_url,
    save_job,
)
from services.rendering.assets import AssetFetcher
from services.rendering.base import DocumentRenderer, RenderedDocument, render_async
from services.rendering.factory import create_renderer
from services.rendering.share import build_share_message
from services.shared.config import get_settings
from services.shared.session import Session
from services.storage.service import StorageService

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Invoice Document Service",
    description="Financial summaries and invoice/receipt rendering",
    version=settings.service_version,
)

asset_fetcher = AssetFetcher(settings)
storage_service = StorageService(settings)
backend_client = BackendClient(settings)
renderers: dict[str, DocumentRenderer] = {}

_arq_pool: Any = None


def get_renderer(name: str | None = None) -> DocumentRenderer:
    """Get a renderer by name (configured renderer when None), created once."""
    name = name or settings.document_renderer
    if name not in renderers:
        renderers[name] = create_renderer(settings, asset_fetcher, name=name)
    return renderers[name]


async def get_arq_pool() -> Any:
    """Get or create the arq Redis pool."""
    global _arq_pool
    if _arq_pool is None:
        from arq import create_pool

        _arq_pool = await create_pool(redis_settings_from_url(settings.redis_url))
    return _arq_pool


def get_session(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
    x_tenant_id: int | None = Header(None),
    authorization: str | None = Header(None),
) -> Session:
    """Resolve the caller Session from gateway-provided headers."""
    token = None
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        token = credentials.strip() if scheme.lower() == "bearer" else authorization.strip()
    return Session(
        user_id=x_user_id,
        role=x_user_role,
        tenant_id=x_tenant_id,
        access_token=token or None,
    )


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request count and duration metrics."""
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code,
    ).inc()
    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=request.url.path,
    ).observe(duration)

    return response


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    renderer: str
    storage: bool


class SummaryRequest(BaseModel):
    """Draft values entered in an invoice/receipt editor."""

    items: list[LineItem] = Field(default_factory=list)
    discount_percentage: Any = Field(0, description="Discount percentage (blank -> 0)")
    tax_percentage: Any = Field(0, description="Tax percentage (blank -> 0)")
    amount_paid: Any = Field(0, description="Amount already paid (blank -> 0)")
    currency_symbol: str | None = None


class SummaryResponse(BaseModel):
    """Financial summary with display strings for each total."""

    summary: FinancialSummary
    formatted: dict[str, str]


class ShareMessageRequest(BaseModel):
    """Document plus the link the recipient should open."""

    document: FinalizedDocument
    link: str


class ShareMessageResponse(BaseModel):
    """Share text for chat/social apps."""

    message: str


class RenderJobResponse(BaseModel):
    """Background render job handle."""

    job_id: str
    status: str


class JobStatusResponse(BaseModel):
    """Background render job state."""

    job: JobResult
    download_url: str | None = None


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Health check endpoint for liveness probe."""
    return HealthResponse(
        status="healthy", version=settings.service_version, service=settings.service_name
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
def readiness_check() -> ReadinessResponse:
    """Readiness check endpoint for Kubernetes readiness probe.

    Storage is optional, so its state is reported but does not gate readiness.
    """
    renderer = get_renderer()
    return ReadinessResponse(
        ready=renderer.is_available(),
        renderer=renderer.renderer_name,
        storage=storage_service.health_check(),
    )


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint."""
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


@app.post("/api/v1/summaries", response_model=SummaryResponse, tags=["Billing"])
def create_summary(request: SummaryRequest) -> SummaryResponse:
    """Compute the live financial summary of a draft.

    Malformed numbers count as zero; this endpoint never rejects a draft for
    its amounts.
    """
    summary = compute_summary(
        request.items,
        discount_percentage=request.discount_percentage,
        tax_percentage=request.tax_percentage,
        amount_paid=request.amount_paid,
    )
    metrics.summaries_computed_total.inc()

    symbol = request.currency_symbol or settings.default_currency_symbol
    formatted = {
        name: format_money(getattr(summary, name), symbol)
        for name in (
            "sub_total",
            "discount_amount",
            "sub_total_after_discount",
            "tax_amount",
            "grand_total",
            "amount_paid",
            "balance_due",
        )
    }
    return SummaryResponse(summary=summary, formatted=formatted)


async def _render(document: FinalizedDocument, renderer: DocumentRenderer) -> RenderedDocument:
    """Render a document, recording metrics and mapping errors to HTTP codes."""
    kind = document.kind.value
    start_time = time.time()
    try:
        rendered = await render_async(renderer, document, timeout=settings.render_timeout_seconds)
    except InvalidDocumentError as e:
        metrics.documents_rendered_total.labels(kind=kind, status="invalid").inc()
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except TimeoutError as e:
        metrics.documents_rendered_total.labels(kind=kind, status="failed").inc()
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="Document render timed out"
        ) from e

    metrics.document_render_duration_seconds.labels(renderer=renderer.renderer_name).observe(
        time.time() - start_time
    )
    metrics.document_size_bytes.observe(rendered.size)
    metrics.documents_rendered_total.labels(kind=kind, status="success").inc()
    for asset in rendered.omitted_assets:
        metrics.asset_fetch_failures_total.labels(asset=asset).inc()
    return rendered


def _attachment(rendered: RenderedDocument) -> Response:
    headers = {"Content-Disposition": f'attachment; filename="{quote(rendered.filename)}"'}
    if rendered.omitted_assets:
        headers["X-Omitted-Assets"] = ",".join(rendered.omitted_assets)
    return Response(content=rendered.content, media_type=rendered.media_type, headers=headers)


@app.post("/api/v1/documents/render", tags=["Documents"])
async def render_document(
    document: FinalizedDocument,
    output_format: Literal["pdf", "text"] | None = Query(
        None, alias="format", description="Output format (defaults to the configured renderer)"
    ),
) -> Response:
    """Render a finalized invoice or receipt for download.

    A missing or broken logo/signature does not fail the render; the omitted
    assets are listed in the X-Omitted-Assets response header.

    Raises:
        HTTPException: 422 if the document is structurally invalid
    """
    rendered = await _render(document, get_renderer(output_format))
    return _attachment(rendered)


@app.post(
    "/api/v1/documents/share-message", response_model=ShareMessageResponse, tags=["Documents"]
)
def share_message(request: ShareMessageRequest) -> ShareMessageResponse:
    """Build the share text for a document link."""
    return ShareMessageResponse(message=build_share_message(request.document, request.link))


async def _download(kind: DocumentKind, document_id: str, session: Session) -> Response:
    """Fetch a document from the backend as the caller and render it as PDF."""
    try:
        raw = await asyncio.to_thread(backend_client.fetch_document, kind, document_id, session)
    except BackendError as e:
        code = (
            status.HTTP_404_NOT_FOUND if e.status_code == 404 else status.HTTP_502_BAD_GATEWAY
        )
        raise HTTPException(status_code=code, detail=str(e)) from e

    try:
        document = parse_document(raw, kind, settings)
    except InvalidDocumentError as e:
        metrics.documents_rendered_total.labels(kind=kind.value, status="invalid").inc()
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    rendered = await _render(document, get_renderer("pdf"))
    return _attachment(rendered)


@app.get("/api/v1/invoices/{document_id}/pdf", tags=["Documents"])
async def download_invoice(
    document_id: str,
    session: Session = Depends(get_session),  # noqa: B008
) -> Response:
    """Download an issued invoice as PDF."""
    return await _download(DocumentKind.INVOICE, document_id, session)


@app.get("/api/v1/receipts/{document_id}/pdf", tags=["Documents"])
async def download_receipt(
    document_id: str,
    session: Session = Depends(get_session),  # noqa: B008
) -> Response:
    """Download an issued receipt as PDF."""
    return await _download(DocumentKind.RECEIPT, document_id, session)


@app.post(
    "/api/v1/documents/render/async", response_model=RenderJobResponse, tags=["Documents"]
)
async def render_document_async(document: FinalizedDocument) -> RenderJobResponse:
    """Queue a document for background rendering.

    The artifact is stored in object storage when enabled; poll
    GET /api/v1/jobs/{job_id} for the outcome.

    Raises:
        HTTPException: 503 if the queue is not enabled
    """
    if not settings.queue_enabled:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Background rendering is not enabled",
        )

    pool = await get_arq_pool()
    job_id = str(uuid.uuid4())
    pending = JobResult(
        job_id=job_id,
        status=JobStatus.PENDING,
        document_id=document.id,
        kind=document.kind.value,
        created_at=datetime.now(timezone.utc).isoformat(),
    )
    await save_job(pool, pending)
    await pool.enqueue_job(
        "render_document",
        job_id=job_id,
        document=document.model_dump(mode="json"),
        created_at=pending.created_at,
        _job_id=job_id,
    )
    logger.info(f"Queued render job {job_id} for {document.kind.value} {document.display_id}")
    return RenderJobResponse(job_id=job_id, status=JobStatus.PENDING)


@app.get("/api/v1/jobs/{job_id}", response_model=JobStatusResponse, tags=["Documents"])
async def get_job_status(job_id: str) -> JobStatusResponse:
    """Get the status of a background render job.

    Raises:
        HTTPException: 503 if the queue is not enabled, 404 if the job is unknown
    """
    if not settings.queue_enabled:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Background rendering is not enabled",
        )

    pool = await get_arq_pool()
    raw = await pool.get(job_key(job_id))
    if raw is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")

    job = JobResult.model_validate_json(raw)
    download_url = None
    if job.status == JobStatus.COMPLETED and job.storage_path:
        _, _, object_name = job.storage_path.partition("/")
        presigned = storage_service.get_presigned_url(object_name)
        if presigned.success:
            download_url = presigned.url
    return JobStatusResponse(job=job, download_url=download_url)
