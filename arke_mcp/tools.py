"""Tool operations exposed to AI assistants: validate, dispatch, render.

Every operation returns a :class:`ToolResult`; failures become error payloads
with remediation hints instead of propagating.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import httpx
from pydantic import BaseModel

from .config import NamespaceCatalog, Settings
from .errors import ArkeError, ValidationError
from .gateway import ArkeGateway, OCRGateway
from .models import OCRBatchResponse, SearchRequest
from .render import (
    RenderMode,
    render_entities,
    render_ocr_batch,
    render_ocr_result,
    render_search_results,
)
from .resolver import EntityResolver

logger = logging.getLogger(__name__)

SEARCH_HINTS = (
    "Simplifying your query",
    "Using different search terms",
    "Checking your namespace filters",
    "Reducing the topK value",
)
ENTITY_HINTS = (
    "Verifying the PIs were copied from search results",
    "Requesting fewer PIs at once",
    "Retrying in a moment if the archive API is unavailable",
)
OCR_HINTS = (
    "Checking that each PI refers to a digital object",
    "Processing fewer PIs per request",
    "Retrying without force_reprocess to use cached text",
)


class ToolResult(BaseModel):
    """Rendered text plus an error flag for the transport."""

    text: str
    is_error: bool = False

    @classmethod
    def error(cls, action: str, exc: Exception, hints: Sequence[str]) -> "ToolResult":
        lines = [f"Error {action}: {exc}"]
        if hints:
            lines.append("")
            lines.append("Please try:")
            lines.extend(f"- {hint}" for hint in hints)
        return cls(text="\n".join(lines), is_error=True)


def _clean_pis(pis: Sequence[str], limit: int, what: str) -> List[str]:
    if isinstance(pis, str):
        pis = [pis]
    cleaned = [pi.strip() for pi in pis if isinstance(pi, str) and pi.strip()]
    if len(cleaned) != len(pis):
        raise ValidationError(f"{what} must not contain empty PIs")
    if not 1 <= len(cleaned) <= limit:
        raise ValidationError(
            f"{what} accepts between 1 and {limit} PIs, got {len(cleaned)}",
            hints=[f"Split the request into groups of at most {limit} PIs"],
        )
    return cleaned


class ArkeTools:
    """The three Arke tools, bound to a fixed namespace catalog."""

    def __init__(
        self,
        settings: Settings,
        catalog: NamespaceCatalog,
        arke: Optional[ArkeGateway] = None,
        ocr: Optional[OCRGateway] = None,
    ) -> None:
        self.settings = settings
        self.catalog = catalog
        self.arke = arke or ArkeGateway(settings)
        self.ocr = ocr or OCRGateway(settings)
        self.resolver = EntityResolver(self.arke)

    # -- validation -------------------------------------------------------

    def _validate_search(
        self,
        query: str,
        top_k: int,
        namespaces: Optional[Sequence[str]],
        verbose: bool,
    ) -> None:
        if not query or not query.strip():
            raise ValidationError("query must not be empty")
        ceiling = (
            self.settings.verbose_max_results if verbose
            else self.settings.concise_max_results
        )
        if not 1 <= top_k <= ceiling:
            mode = "verbose" if verbose else "concise"
            raise ValidationError(
                f"topK must be between 1 and {ceiling} in {mode} mode, got {top_k}",
                hints=["Reduce topK", "Turn off verbose mode to see more results"]
                if verbose else ["Reduce topK"],
            )
        unknown = [ns for ns in namespaces or [] if ns not in self.catalog]
        if unknown:
            raise ValidationError(
                f"Unknown namespace(s): {', '.join(unknown)}",
                hints=[f"Available namespaces: {self.catalog.describe()}"],
            )

    # -- operations -------------------------------------------------------

    async def search_arke(
        self,
        query: str,
        top_k: Optional[int] = None,
        namespaces: Optional[Sequence[str]] = None,
        verbose: bool = False,
    ) -> ToolResult:
        """Semantic search; concise summaries or full JSON when ``verbose``."""
        if top_k is None:
            top_k = min(
                self.settings.default_top_k,
                self.settings.verbose_max_results if verbose
                else self.settings.concise_max_results,
            )
        try:
            self._validate_search(query, top_k, namespaces, verbose)
            request = SearchRequest(
                query=query.strip(),
                topK=top_k,
                namespaces=list(namespaces) if namespaces else None,
            )
            response = await self.arke.search(request)
        except ValidationError as exc:
            logger.warning("Rejected search: %s", exc)
            return ToolResult.error("performing search", exc, exc.hints)
        except (ArkeError, httpx.HTTPError) as exc:
            logger.error("Search error - %s", exc)
            return ToolResult.error("performing search", exc, SEARCH_HINTS)
        except Exception as exc:
            logger.exception("Unexpected search failure")
            return ToolResult.error("performing search", exc, SEARCH_HINTS)

        mode = RenderMode.VERBOSE if verbose else RenderMode.CONCISE
        return ToolResult(
            text=render_search_results(response, mode, view_url=self.settings.view_url)
        )

    async def get_arke_entities(self, pis: Sequence[str]) -> ToolResult:
        """Resolve 1..max_entities PIs and dump each entity in full."""
        try:
            cleaned = _clean_pis(pis, self.settings.max_entities, "get_arke_entities")
            entities = await self.resolver.resolve_many(cleaned)
        except ValidationError as exc:
            logger.warning("Rejected entity request: %s", exc)
            return ToolResult.error("fetching entities", exc, exc.hints)
        except (ArkeError, httpx.HTTPError) as exc:
            logger.error("Entity fetch error - %s", exc)
            return ToolResult.error("fetching entities", exc, ENTITY_HINTS)
        except Exception as exc:
            logger.exception("Unexpected entity fetch failure")
            return ToolResult.error("fetching entities", exc, ENTITY_HINTS)

        return ToolResult(text=render_entities(entities, view_url=self.settings.view_url))

    async def extract_text_ocr(
        self,
        pi: Optional[str] = None,
        pis: Optional[Sequence[str]] = None,
        force_reprocess: bool = False,
    ) -> ToolResult:
        """OCR one PI or a batch; exactly one of ``pi`` / ``pis`` is required."""
        try:
            if (pi is None) == (pis is None):
                raise ValidationError(
                    "Provide exactly one of 'pi' or 'pis'",
                    hints=[
                        "Use 'pi' for a single document",
                        f"Use 'pis' for up to {self.settings.max_ocr_batch} documents",
                    ],
                )
            if pi is not None:
                target = _clean_pis([pi], 1, "pi")[0]
                result = await self.ocr.process(target, force_reprocess=force_reprocess)
            else:
                targets = _clean_pis(pis, self.settings.max_ocr_batch, "pis")
                result = await self.ocr.process(targets, force_reprocess=force_reprocess)
        except ValidationError as exc:
            logger.warning("Rejected OCR request: %s", exc)
            return ToolResult.error("extracting text", exc, exc.hints)
        except (ArkeError, httpx.HTTPError) as exc:
            logger.error("OCR error - %s", exc)
            return ToolResult.error("extracting text", exc, OCR_HINTS)
        except Exception as exc:
            logger.exception("Unexpected OCR failure")
            return ToolResult.error("extracting text", exc, OCR_HINTS)

        if isinstance(result, OCRBatchResponse):
            return ToolResult(text=render_ocr_batch(result))
        return ToolResult(text=render_ocr_result(result))
