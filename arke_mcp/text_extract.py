"""Collect embedded extracted-text fields from arbitrarily nested payloads.

Component payloads and search hits carry OCR output under keys such as
``extracted_text`` at unpredictable depths. :func:`extract_text` walks the
whole value depth-first and yields every non-blank string stored under one of
those keys.

Inputs are assumed to be tree-shaped (parsed JSON or ``model_dump`` output),
so no visited-set is kept. A producer that starts sharing or cycling nodes
must add one here.
"""

from __future__ import annotations

from typing import Any, FrozenSet, Iterator

EXTRACTED_TEXT_KEYS: FrozenSet[str] = frozenset({"extractedtext", "extracted_text"})


def _is_text_key(key: Any) -> bool:
    return isinstance(key, str) and key.lower() in EXTRACTED_TEXT_KEYS


def extract_text(value: Any) -> Iterator[str]:
    """Yield trimmed extracted-text strings in depth-first pre-order.

    At each mapping, matching keys are reported before descending into the
    mapping's values. Strings are leaves; ``None`` is skipped.
    """
    if isinstance(value, dict):
        for key, item in value.items():
            if _is_text_key(key) and isinstance(item, str) and item.strip():
                yield item.strip()
        for item in value.values():
            yield from extract_text(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from extract_text(item)
