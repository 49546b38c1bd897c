"""Abstract base class for document renderers.

Enables switching between output formats (PDF, plain text) while keeping
one layout and one money formatter behind all of them.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from services.billing.schema import FinalizedDocument
from services.rendering.assets import AssetFetcher
from services.rendering.layout import (
    DocumentLayout,
    build_layout,
    load_assets,
    validate_document,
)
from services.shared.config import Settings

logger = logging.getLogger(__name__)


class RenderedDocument(BaseModel):
    """Finished document artifact.

    Attributes:
        content: Rendered bytes
        media_type: MIME type of the content
        filename: Suggested download filename
        renderer: Name of renderer that produced the artifact
        omitted_assets: Configured images that could not be loaded
    """

    content: bytes
    media_type: str
    filename: str
    renderer: str
    omitted_assets: list[str] = Field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.content)


class DocumentRenderer(ABC):
    """Abstract base class for document renderers.

    Subclasses turn a DocumentLayout into bytes; render() takes care of
    validation, asset loading and layout so every format shows the same
    sections in the same order.
    """

    media_type: str = "application/octet-stream"
    file_extension: str = "bin"

    def __init__(self, settings: Settings, asset_fetcher: AssetFetcher | None = None) -> None:
        """Initialize renderer with settings.

        Args:
            settings: Application settings
            asset_fetcher: Fetcher for logo/signature images; None skips images
        """
        self.settings = settings
        self.asset_fetcher = asset_fetcher

    def render(self, document: FinalizedDocument) -> RenderedDocument:
        """Render a finalized document.

        Args:
            document: Validated invoice or receipt

        Returns:
            RenderedDocument with the complete artifact

        Raises:
            InvalidDocumentError: If the document lacks tenant identity
        """
        validate_document(document)
        assets = load_assets(document, self.asset_fetcher)
        layout = build_layout(document, assets)
        content = self.render_layout(layout)
        return RenderedDocument(
            content=content,
            media_type=self.media_type,
            filename=f"{document.file_stem}.{self.file_extension}",
            renderer=self.renderer_name,
            omitted_assets=layout.omitted_assets,
        )

    @abstractmethod
    def render_layout(self, layout: DocumentLayout) -> bytes:
        """Serialize a laid-out document.

        Args:
            layout: Ordered document sections

        Returns:
            Document bytes
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this renderer's dependencies are usable.

        Returns:
            True if renderer can be used, False otherwise
        """
        pass

    @property
    @abstractmethod
    def renderer_name(self) -> str:
        """Get renderer name for logging/metrics.

        Returns:
            Renderer identifier (e.g., 'pdf', 'text')
        """
        pass


async def render_async(
    renderer: DocumentRenderer,
    document: FinalizedDocument,
    timeout: float | None = None,
) -> RenderedDocument:
    """Render in a worker thread without blocking the event loop.

    If the caller cancels or the timeout expires, the pending result is
    dropped: no partial artifact is ever returned.

    Args:
        renderer: Renderer to use
        document: Document to render
        timeout: Optional caller-imposed timeout in seconds

    Returns:
        Complete RenderedDocument

    Raises:
        asyncio.CancelledError: If the caller cancelled the render
        TimeoutError: If the render did not finish within the timeout
        InvalidDocumentError: If the document is structurally invalid
    """
    task = asyncio.to_thread(renderer.render, document)
    try:
        return await asyncio.wait_for(task, timeout=timeout)
    except (asyncio.CancelledError, TimeoutError):
        logger.warning(
            f"Render of {document.kind.value} {document.display_id} abandoned; "
            "discarding partial output"
        )
        raise
