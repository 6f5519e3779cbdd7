"""Arke MCP: semantic search over NARA archives for AI assistants."""

__version__ = "0.1.0"

from .config import NamespaceCatalog, Settings, get_settings
from .errors import (
    ArkeError,
    ComponentFetchError,
    GatewayUnavailable,
    ManifestFetchError,
    ValidationError,
)
from .gateway import ArkeGateway, OCRGateway, load_catalog
from .render import (
    RenderMode,
    render_entities,
    render_ocr_batch,
    render_ocr_result,
    render_search_results,
)
from .resolver import EntityResolver
from .text_extract import extract_text
from .tools import ArkeTools, ToolResult

__all__ = [
    "__version__",
    "Settings",
    "NamespaceCatalog",
    "get_settings",
    "ArkeError",
    "GatewayUnavailable",
    "ManifestFetchError",
    "ComponentFetchError",
    "ValidationError",
    "ArkeGateway",
    "OCRGateway",
    "load_catalog",
    "EntityResolver",
    "extract_text",
    "RenderMode",
    "render_search_results",
    "render_entities",
    "render_ocr_result",
    "render_ocr_batch",
    "ArkeTools",
    "ToolResult",
]
