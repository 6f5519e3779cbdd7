"""Markdown rendering of search results, entities and OCR output for AI consumption.

All functions here are pure: they read the models they are given and return
text. Optional fields that are missing or malformed are skipped, never raised.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from .models import (
    OCRBatchResponse,
    OCRFailure,
    OCRResult,
    OCRSuccess,
    RankedHit,
    ResolvedEntity,
    SearchResponse,
)
from .text_extract import extract_text

DEFAULT_VIEW_URL = "https://arke.institute"

TEXT_PREVIEW_CHARS = 2000
TEXT_SEPARATOR = "\n\n---\n\n"
OCR_PAGE_LISTING = 5
OCR_BATCH_PREVIEW_CHARS = 200

NO_RESULTS = (
    "No results found. Try adjusting your query or searching different namespaces."
)
DIGITAL_OBJECT = "digitalObject"


class RenderMode(str, Enum):
    """Search output profiles.

    CONCISE: field-by-field summary with a bounded extracted-text preview.
    VERBOSE: complete JSON of every result; callers must request fewer items.
    """

    CONCISE = "concise"
    VERBOSE = "verbose"


def view_link(pi: str, view_url: str = DEFAULT_VIEW_URL) -> str:
    return f"{view_url.rstrip('/')}/{pi}"


def _dig(value: Any, *keys: Union[str, int]) -> Any:
    """Walk nested dicts/lists, returning None at the first missing step."""
    for key in keys:
        if isinstance(key, int):
            if not isinstance(value, list) or len(value) <= key:
                return None
        elif not isinstance(value, dict):
            return None
        value = value[key] if isinstance(key, int) else value.get(key)
    return value


def _year(packed: Any) -> str:
    """First four digits of a YYYYMMDD-packed date, or ``?``."""
    if not packed:
        return "?"
    return str(packed)[:4]


def _json_block(data: Any) -> str:
    return "```json\n" + json.dumps(data, indent=2, ensure_ascii=False) + "\n```"


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _cost(value: Any) -> str:
    amount = _number(value)
    return f"${amount:.4f}" if amount is not None else "n/a"


def truncate_text(text: str, limit: int = TEXT_PREVIEW_CHARS) -> str:
    """Cut ``text`` to ``limit`` characters and note how much was dropped."""
    if len(text) <= limit:
        return text
    omitted = len(text) - limit
    return f"{text[:limit]}\n\n... [truncated: {omitted} more characters available]"


# ---------------------------------------------------------------------------
# Search results
# ---------------------------------------------------------------------------

def _concise_result(hit: RankedHit, rank: int, view_url: str) -> str:
    meta = hit.metadata if isinstance(hit.metadata, dict) else {}
    ranking = hit.pinecone_metadata
    manifest = hit.manifest

    lines = [
        f"## Result {rank} (Score: {hit.score:.3f})",
        f"- **Type**: {hit.namespace}",
        f"- **PI**: {hit.pi}",
        f"- **View**: {view_link(hit.pi, view_url)}",
    ]

    if meta.get("title"):
        lines.append(f"- **Title**: {meta['title']}")
    if meta.get("level"):
        lines.append(f"- **Level**: {meta['level']}")
    if hit.na_id:
        lines.append(f"- **NARA ID**: {hit.na_id}")

    if ranking.date_start or ranking.date_end:
        lines.append(
            f"- **Date Range**: {_year(ranking.date_start)} - {_year(ranking.date_end)}"
        )

    record_types = meta.get("record_types")
    if isinstance(record_types, list) and record_types:
        lines.append(f"- **Record Types**: {', '.join(str(t) for t in record_types)}")

    if hit.namespace == DIGITAL_OBJECT:
        if meta.get("filename"):
            lines.append(f"- **Filename**: {meta['filename']}")
        size = _number(meta.get("file_size"))
        if size:
            lines.append(f"- **File Size**: {size / 1024 / 1024:.2f} MB")

    if meta.get("digital_object_count"):
        lines.append(f"- **Digital Objects**: {meta['digital_object_count']}")

    if manifest is not None:
        if manifest.parent_pi:
            lines.append(f"- **Parent PI**: {manifest.parent_pi}")
        if manifest.children_pi:
            lines.append(f"- **Children**: {len(manifest.children_pi)} entities")

    access = _dig(meta, "access_restriction", "status")
    if access:
        lines.append(f"- **Access**: {access}")

    location = _dig(meta, "physical_location", "referenceUnits", 0)
    if isinstance(location, dict) and location.get("name"):
        lines.append(f"- **Location**: {location['name']}")
        if location.get("city") and location.get("state"):
            lines.append(f"  {location['city']}, {location['state']}")

    if manifest is not None and manifest.manifest_cid:
        lines.append(f"- **Manifest CID**: {manifest.manifest_cid}")
    if hit.metadata_cid and (manifest is None or hit.metadata_cid != manifest.manifest_cid):
        lines.append(f"- **Metadata CID**: {hit.metadata_cid}")

    texts = list(extract_text(hit.dump()))
    if texts:
        preview = truncate_text(TEXT_SEPARATOR.join(texts))
        lines.append(f"\n**Extracted Text Preview:**\n```\n{preview}\n```")

    return "\n".join(lines)


def _verbose_result(hit: RankedHit, rank: int, view_url: str) -> str:
    return "\n".join([
        f"## Result {rank} (Score: {hit.score:.3f})",
        f"- **PI**: {hit.pi}",
        f"- **View**: {view_link(hit.pi, view_url)}",
        "",
        _json_block(hit.dump()),
    ])


def _notes() -> List[str]:
    return [
        "**Notes:**",
        "- PI (Persistent Identifier) can be passed to get_arke_entities for full entity data",
        "- CIDs (Content Identifiers) reference IPFS content for manifest and metadata",
        "- Similarity scores range from 0-1, with higher scores indicating better matches",
        "- Digital objects without extracted text can be processed with extract_text_ocr",
    ]


def render_search_results(
    response: SearchResponse,
    mode: RenderMode = RenderMode.CONCISE,
    *,
    view_url: str = DEFAULT_VIEW_URL,
) -> str:
    """Format a search response as Markdown in the requested mode."""
    mode = RenderMode(mode)
    output: List[str] = [
        f'# Search Results for: "{response.query}"',
        "",
        f"**Total Results**: {response.total_results}",
        f"**Namespaces Searched**: {', '.join(response.namespaces)}",
    ]
    if response.took_ms:
        output.append(f"**Search Time**: {response.took_ms}ms")
    if mode is RenderMode.VERBOSE:
        output.append("**Mode**: verbose (complete result data)")
    output.append("")

    if not response.results:
        output.append(NO_RESULTS)
    else:
        render_one = _verbose_result if mode is RenderMode.VERBOSE else _concise_result
        output.extend(["---", ""])
        for i, hit in enumerate(response.results):
            output.append(render_one(hit, i + 1, view_url))
            if i < len(response.results) - 1:
                output.extend(["", "---", ""])

    if mode is RenderMode.CONCISE:
        output.extend(["", "---", ""])
        output.extend(_notes())

    return "\n".join(output)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

def render_entities(
    entities: Sequence[ResolvedEntity], *, view_url: str = DEFAULT_VIEW_URL
) -> str:
    """Full JSON dump of each resolved entity, with a view link."""
    noun = "entity" if len(entities) == 1 else "entities"
    output: List[str] = [f"# Entity Details ({len(entities)} {noun})", ""]
    for i, entity in enumerate(entities, 1):
        failed = [
            name for name, o in entity.component_data.items() if o.status == "failed"
        ]
        output.extend([
            "---",
            "",
            f"## Entity {i}: {entity.pi}",
            f"- **View**: {view_link(entity.pi, view_url)}",
            f"- **Components**: {len(entity.component_data)}",
        ])
        if failed:
            output.append(f"- **Unavailable Components**: {', '.join(failed)}")
        output.extend(["", _json_block(entity.dump()), ""])
    return "\n".join(output).rstrip() + "\n"


# ---------------------------------------------------------------------------
# OCR
# ---------------------------------------------------------------------------

def _ms(value: Optional[int]) -> str:
    return f"{value}ms" if value is not None else "unknown"


def render_ocr_result(result: OCRResult) -> str:
    """Format a single OCR outcome."""
    if isinstance(result, OCRFailure):
        lines = ["# OCR Failed"]
        if result.pi:
            lines.append(f"- **PI**: {result.pi}")
        lines.extend([
            f"- **Error Code**: {result.code}",
            f"- **Message**: {result.error}",
            f"- **Processing Time**: {_ms(result.processing_time_ms)}",
        ])
        return "\n".join(lines)

    lines = ["# OCR Result"]
    if result.pi:
        lines.append(f"- **PI**: {result.pi}")
    lines.extend([
        f"- **Status**: {result.status}",
        f"- **Source**: {result.source}",
        f"- **Processing Time**: {_ms(result.processing_time_ms)}",
    ])

    pages = result.pages or []
    if pages:
        lines.append(f"- **Pages**: {len(pages)}")
    if result.total_tokens is not None:
        lines.append(f"- **Total Tokens**: {result.total_tokens}")
    if result.total_cost is not None:
        lines.append(f"- **Total Cost**: {_cost(result.total_cost)}")

    if pages:
        lines.extend(["", "## Pages"])
        for page in pages[:OCR_PAGE_LISTING]:
            number = page.page_number if page.page_number is not None else "?"
            lines.append(
                f"- Page {number}: {page.source or 'unknown file'}"
                f" (tokens: {page.tokens if page.tokens is not None else 'n/a'},"
                f" cost: {_cost(page.cost)})"
            )
        if len(pages) > OCR_PAGE_LISTING:
            lines.append(f"- +{len(pages) - OCR_PAGE_LISTING} more pages")

    if result.metadata is not None:
        lines.extend(["", "## Provenance"])
        if result.metadata.model:
            lines.append(f"- **Model**: {result.metadata.model}")
        if result.metadata.processed_at:
            lines.append(f"- **Processed At**: {result.metadata.processed_at}")

    text = result.text.strip()
    lines.append("")
    if text:
        lines.append(
            f"## Extracted Text ({len(text.split())} words, {len(text)} characters)"
        )
        lines.append(f"```\n{text}\n```")
    else:
        lines.append("## Extracted Text")
        lines.append("_No text was extracted from this document._")
    return "\n".join(lines)


def _batch_summary(batch: OCRBatchResponse) -> Dict[str, Any]:
    results = batch.results
    successful = sum(1 for r in results if isinstance(r, OCRSuccess))
    computed: Dict[str, Any] = {
        "total": len(results),
        "successful": successful,
        "failed": len(results) - successful,
        "total_cost": sum(
            r.total_cost or 0.0 for r in results if isinstance(r, OCRSuccess)
        ),
        "total_time_ms": sum(r.processing_time_ms or 0 for r in results),
    }
    if batch.summary is not None:
        for key, value in batch.summary.dump().items():
            if key in computed and value is not None:
                computed[key] = value
    return computed


def _batch_item(result: OCRResult, index: int, total: int) -> List[str]:
    label = result.pi or f"item {index}"
    if isinstance(result, OCRFailure):
        return [
            f"### ❌ {label} ({index}/{total})",
            f"- **Error Code**: {result.code}",
            f"- **Message**: {result.error}",
            f"- **Processing Time**: {_ms(result.processing_time_ms)}",
        ]

    lines = [
        f"### ✅ {label} ({index}/{total})",
        f"- **Source**: {result.source}",
    ]
    if result.pages:
        lines.append(f"- **Pages**: {len(result.pages)}")
    if result.total_tokens is not None:
        lines.append(f"- **Tokens**: {result.total_tokens}")
    if result.total_cost is not None:
        lines.append(f"- **Cost**: {_cost(result.total_cost)}")
    text = result.text.strip()
    if text:
        preview = text[:OCR_BATCH_PREVIEW_CHARS]
        if len(text) > OCR_BATCH_PREVIEW_CHARS:
            preview += "..."
        lines.append(f"- **Text Preview** ({len(text)} characters): {preview}")
    else:
        lines.append("- **Text Preview**: _no text extracted_")
    return lines


def render_ocr_batch(batch: OCRBatchResponse) -> str:
    """Aggregate summary followed by a condensed block per entity."""
    summary = _batch_summary(batch)
    output: List[str] = [
        "# OCR Batch Results",
        "",
        f"- **Total**: {summary['total']}",
        f"- **Successful**: {summary['successful']}",
        f"- **Failed**: {summary['failed']}",
        f"- **Total Cost**: {_cost(summary['total_cost'])}",
        f"- **Total Time**: {_ms(summary['total_time_ms'])}",
    ]
    total = len(batch.results)
    for i, result in enumerate(batch.results, 1):
        output.extend(["", "---", ""])
        output.extend(_batch_item(result, i, total))
    return "\n".join(output)
