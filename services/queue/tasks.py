"""Async task definitions for background document rendering.

Uses arq (async Redis queue) for background task processing. A job renders
one finalized document, stores the artifact when storage is configured and
records its outcome in Redis under ``job:<id>``.

Based on arq documentation:
https://arq-docs.helpmanual.io/
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from services.api import metrics
from services.billing.errors import InvalidDocumentError
from services.billing.schema import FinalizedDocument
from services.rendering.assets import AssetFetcher
from services.rendering.base import DocumentRenderer, render_async
from services.rendering.factory import create_renderer
from services.shared.config import Settings, get_settings
from services.storage.service import StorageService

logger = logging.getLogger(__name__)

JOB_TTL_SECONDS = 86400


class JobStatus:
    """Job lifecycle states stored in JobResult.status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobResult(BaseModel):
    """Result of a background render job.

    Attributes:
        job_id: Unique job identifier
        status: pending, processing, completed, failed or cancelled
        document_id: Identifier of the document being rendered
        kind: Document kind
        storage_path: Path in object storage (if stored)
        filename: Artifact filename (if rendered)
        omitted_assets: Images left out of the artifact
        error: Error message (if failed)
        created_at: Job creation timestamp
        completed_at: Job completion timestamp
    """

    job_id: str
    status: str
    document_id: str
    kind: str | None = None
    storage_path: str | None = None
    filename: str | None = None
    omitted_assets: list[str] = Field(default_factory=list)
    error: str | None = None
    created_at: str
    completed_at: str | None = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def job_key(job_id: str) -> str:
    """Redis key holding a job's JobResult."""
    return f"job:{job_id}"


async def save_job(redis: Any, result: JobResult) -> None:
    """Persist a job result with the standard TTL."""
    await redis.set(job_key(result.job_id), result.model_dump_json(), ex=JOB_TTL_SECONDS)


async def render_document(
    ctx: dict[str, Any],
    job_id: str,
    document: dict[str, Any],
    created_at: str | None = None,
) -> dict[str, Any]:
    """Render a finalized document in the background.

    Steps:
    1. Validate the payload into a FinalizedDocument
    2. Render with the configured renderer (bounded by render_timeout_seconds)
    3. Store the artifact in object storage (if enabled)
    4. Record the JobResult in Redis

    A cancelled job is recorded as cancelled and stores nothing; the
    cancellation is then re-raised to arq.

    Args:
        ctx: arq context (contains redis connection and shared services)
        job_id: Unique job identifier
        document: FinalizedDocument as JSON-compatible dict
        created_at: Time the job was queued (defaults to now)

    Returns:
        JobResult as dict
    """
    settings: Settings = ctx.get("settings") or get_settings()
    renderer: DocumentRenderer = ctx.get("renderer") or create_renderer(settings)
    storage_service: StorageService = ctx.get("storage_service") or StorageService(settings)
    redis = ctx["redis"]

    result = JobResult(
        job_id=job_id,
        status=JobStatus.PROCESSING,
        document_id=str(document.get("id", "")),
        kind=document.get("kind"),
        created_at=created_at or _now(),
    )
    await save_job(redis, result)
    logger.info(f"Rendering job {job_id} for document {result.document_id}")

    try:
        try:
            finalized = FinalizedDocument.model_validate(document)
        except ValidationError as e:
            raise InvalidDocumentError(f"Invalid document payload: {e}") from e

        rendered = await render_async(
            renderer, finalized, timeout=settings.render_timeout_seconds
        )
        result.filename = rendered.filename
        result.omitted_assets = rendered.omitted_assets
        for asset in rendered.omitted_assets:
            metrics.asset_fetch_failures_total.labels(asset=asset).inc()

        if storage_service.is_available():
            stored = storage_service.store_rendered(
                kind=finalized.kind.value,
                document_id=finalized.id,
                filename=rendered.filename,
                content=rendered.content,
                media_type=rendered.media_type,
            )
            if stored.success:
                result.storage_path = stored.path
            else:
                logger.warning(f"Job {job_id} rendered but not stored: {stored.error}")

        result.status = JobStatus.COMPLETED

    except asyncio.CancelledError:
        logger.warning(f"Job {job_id} cancelled; no artifact stored")
        result.status = JobStatus.CANCELLED
        result.completed_at = _now()
        await save_job(redis, result)
        raise
    except (InvalidDocumentError, TimeoutError) as e:
        logger.warning(f"Job {job_id} failed: {e}")
        result.status = JobStatus.FAILED
        result.error = str(e) or "Render timed out"
    except Exception as e:
        logger.exception(f"Job {job_id} failed with error: {e}")
        result.status = JobStatus.FAILED
        result.error = str(e)

    result.completed_at = _now()
    await save_job(redis, result)
    logger.info(f"Job {job_id} finished with status: {result.status}")
    return result.model_dump()


async def startup(ctx: dict[str, Any]) -> None:
    """Worker startup hook: build services shared by all jobs."""
    logger.info("Initializing worker services...")
    settings = get_settings()
    ctx["settings"] = settings
    ctx["asset_fetcher"] = AssetFetcher(settings)
    ctx["renderer"] = create_renderer(settings, ctx["asset_fetcher"])
    ctx["storage_service"] = StorageService(settings)
    logger.info("Worker services initialized")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Worker shutdown hook: release HTTP connections."""
    logger.info("Worker shutting down...")
    fetcher: AssetFetcher | None = ctx.get("asset_fetcher")
    if fetcher is not None:
        fetcher.close()


def redis_settings_from_url(url: str) -> Any:
    """Build arq RedisSettings from a redis:// URL."""
    from arq.connections import RedisSettings

    return RedisSettings.from_dsn(url)


class WorkerSettings:
    """arq worker settings.

    Values are refreshed from Settings by services.queue.worker before the
    worker starts.
    """

    functions = [render_document]
    on_startup = startup
    on_shutdown = shutdown

    redis_settings = None
    max_jobs = 10
    job_timeout = 300
    allow_abort_jobs = True

    @classmethod
    def get_redis_settings(cls) -> Any:
        """Get Redis settings from configuration."""
        return redis_settings_from_url(get_settings().redis_url)
