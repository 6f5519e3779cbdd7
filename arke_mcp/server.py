"""MCP server exposing the Arke tools over fastmcp."""

import logging
from typing import Annotated, List, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from . import __version__
from .config import Settings, get_settings
from .gateway import ArkeGateway, OCRGateway, load_catalog
from .tools import ArkeTools, ToolResult

logger = logging.getLogger(__name__)

SERVER_NAME = "Arke Institute Search"
INSTRUCTIONS = (
    "Semantic search across NARA archives and presidential libraries held by "
    "the Arke Institute. Search first, then fetch full entities by PI, and run "
    "OCR on digital objects that have no extracted text."
)
READ_ONLY = {
    "readOnlyHint": True,
    "destructiveHint": False,
    "idempotentHint": True,
    "openWorldHint": True,
}


def _unwrap(result: ToolResult) -> str:
    if result.is_error:
        raise ToolError(result.text)
    return result.text


def build_server(tools: ArkeTools) -> FastMCP:
    """Register the three Arke tools on a new FastMCP instance."""
    s = tools.settings
    namespace_help = tools.catalog.describe() or "none reported"
    mcp = FastMCP(name=SERVER_NAME, version=__version__, instructions=INSTRUCTIONS)

    @mcp.tool(name="search_arke", title="Search Arke Archives", annotations=READ_ONLY)
    async def search_arke(
        query: Annotated[str, Field(
            description=(
                "Natural language search query. Supports semantic search across "
                "NARA records, presidential libraries, historical documents, and "
                "digitized materials."
            ),
        )],
        topK: Annotated[Optional[int], Field(
            description=(
                f"Number of results (1-{s.concise_max_results}, or "
                f"1-{s.verbose_max_results} when verbose). Default: {s.default_top_k}."
            ),
        )] = None,
        namespaces: Annotated[Optional[List[str]], Field(
            description=(
                "Optional entity type filter. Available namespaces: "
                f"{namespace_help}. Omit to search all types."
            ),
        )] = None,
        verbose: Annotated[bool, Field(
            description="Return complete JSON for each result instead of a summary.",
        )] = False,
    ) -> str:
        return _unwrap(await tools.search_arke(query, topK, namespaces, verbose))

    @mcp.tool(name="get_arke_entities", title="Get Arke Entities", annotations=READ_ONLY)
    async def get_arke_entities(
        pis: Annotated[List[str], Field(
            description=(
                f"1-{s.max_entities} PIs (Persistent Identifiers) from search results. "
                "Returns the manifest, metadata and every component of each entity."
            ),
        )],
    ) -> str:
        return _unwrap(await tools.get_arke_entities(pis))

    @mcp.tool(name="extract_text_ocr", title="Extract Text (OCR)", annotations=READ_ONLY)
    async def extract_text_ocr(
        pi: Annotated[Optional[str], Field(
            description="A single digital object PI. Use either pi or pis, not both.",
        )] = None,
        pis: Annotated[Optional[List[str]], Field(
            description=f"Up to {s.max_ocr_batch} digital object PIs for batch OCR.",
        )] = None,
        force_reprocess: Annotated[bool, Field(
            description="Ignore cached OCR text and process the document again.",
        )] = False,
    ) -> str:
        return _unwrap(await tools.extract_text_ocr(pi, pis, force_reprocess))

    logger.info("Registered tools on %s %s", SERVER_NAME, __version__)
    return mcp


async def create_tools(settings: Optional[Settings] = None) -> ArkeTools:
    """Load the namespace catalog and bind the tool surface to it."""
    s = settings or get_settings()
    arke = ArkeGateway(s)
    catalog = await load_catalog(arke)
    return ArkeTools(s, catalog, arke=arke, ocr=OCRGateway(s))


async def create_server(settings: Optional[Settings] = None) -> FastMCP:
    """Initialization step plus server construction."""
    return build_server(await create_tools(settings))
