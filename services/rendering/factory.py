"""Factory for creating document renderers based on configuration.

Implements Factory Pattern for renderer selection with registry pattern for extensibility.

Based on:
- Factory Pattern: https://refactoring.guru/design-patterns/factory-method/python
- Registry Pattern: Python Cookbook 3rd Edition, Recipe 9.22
"""

import logging

from services.rendering.assets import AssetFetcher
from services.rendering.base import DocumentRenderer
from services.rendering.pdf_renderer import PdfDocumentRenderer
from services.rendering.text_renderer import TextDocumentRenderer
from services.shared.config import Settings

logger = logging.getLogger(__name__)


class RendererRegistry:
    """Registry of available document renderers.

    Maintains a mapping of renderer names to their implementation classes.
    Supports runtime registration of new renderers.
    """

    _renderers: dict[str, type[DocumentRenderer]] = {
        "pdf": PdfDocumentRenderer,
        "text": TextDocumentRenderer,
    }

    @classmethod
    def register(cls, name: str, renderer_class: type[DocumentRenderer]) -> None:
        """Register a new renderer.

        Args:
            name: Renderer identifier
            renderer_class: Class implementing DocumentRenderer interface
        """
        cls._renderers[name] = renderer_class
        logger.info(f"Registered document renderer: {name}")

    @classmethod
    def get_renderer_class(cls, name: str) -> type[DocumentRenderer]:
        """Get renderer class by name.

        Args:
            name: Renderer identifier

        Returns:
            Renderer class implementing DocumentRenderer

        Raises:
            ValueError: If renderer not found in registry
        """
        if name not in cls._renderers:
            available = ", ".join(cls._renderers.keys())
            raise ValueError(
                f"Unknown document renderer: '{name}'. " f"Available renderers: {available}"
            )
        return cls._renderers[name]

    @classmethod
    def list_renderers(cls) -> list[str]:
        """List all registered renderer names."""
        return list(cls._renderers.keys())


def create_renderer(
    settings: Settings,
    asset_fetcher: AssetFetcher | None = None,
    name: str | None = None,
) -> DocumentRenderer:
    """Create a document renderer.

    Args:
        settings: Application settings with document_renderer field
        asset_fetcher: Fetcher for logo/signature images
        name: Renderer to use instead of settings.document_renderer

    Returns:
        Configured renderer instance

    Raises:
        ValueError: If renderer name is unknown

    Example:
        >>> renderer = create_renderer(Settings(document_renderer="pdf"))
        >>> rendered = renderer.render(document)
    """
    renderer_name = name or settings.document_renderer
    renderer_class = RendererRegistry.get_renderer_class(renderer_name)
    renderer = renderer_class(settings, asset_fetcher)

    if not renderer.is_available():
        logger.warning(f"Document renderer '{renderer_name}' is not fully available")

    logger.info(f"Created document renderer: {renderer_name}")
    return renderer
