"""Shared test fixtures for Arke MCP tests."""

from typing import Any, Callable, Dict, Tuple

import httpx
import pytest

from arke_mcp.config import NamespaceCatalog, Settings

Route = Tuple[str, str]


@pytest.fixture
def settings() -> Settings:
    """Settings pointing at fake hosts, with a single attempt per call."""
    return Settings(
        search_url="https://search.test",
        api_url="https://api.test",
        ipfs_url="https://ipfs.test",
        ocr_url="https://ocr.test",
        view_url="https://view.test",
        max_attempts=1,
    )


@pytest.fixture
def catalog() -> NamespaceCatalog:
    return NamespaceCatalog(
        namespaces=("collection", "series", "fileUnit", "digitalObject"),
        description={
            "collection": "Top-level archival collections",
            "series": "Record series",
            "fileUnit": "Archival file units",
            "digitalObject": "Scanned documents",
        },
    )


@pytest.fixture
def make_transport() -> Callable[[Dict[Route, Any]], httpx.MockTransport]:
    """Build a MockTransport from ``{(method, path): reply}``.

    A reply is a JSON payload (200), a ``(status, payload)`` tuple, an
    exception class raised as a transport error, or a callable taking the
    request. Unrouted requests get 404. Requests are recorded on ``.calls``.
    """

    def _make(routes: Dict[Route, Any]) -> httpx.MockTransport:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            reply = routes.get((request.method, request.url.path))
            if reply is None:
                return httpx.Response(404, json={"error": "not found"})
            if isinstance(reply, type) and issubclass(reply, httpx.TransportError):
                raise reply("connection refused", request=request)
            if callable(reply):
                return reply(request)
            if isinstance(reply, tuple):
                status, payload = reply
                if isinstance(payload, str):
                    return httpx.Response(status, text=payload)
                return httpx.Response(status, json=payload)
            return httpx.Response(200, json=reply)

        transport = httpx.MockTransport(handler)
        transport.calls = calls
        return transport

    return _make


@pytest.fixture
def manifest() -> Dict[str, Any]:
    """Entity manifest with a catalog record and an OCR text component."""
    return {
        "pi": "01PI-FILEUNIT",
        "ver": 3,
        "ts": "2025-01-10T12:00:00Z",
        "manifest_cid": "bafy-manifest",
        "prev_cid": "bafy-manifest-v2",
        "components": {
            "catalog_record": "bafy-catalog",
            "ocr_text": "bafy-ocr",
        },
        "children_pi": ["01PI-CHILD-A", "01PI-CHILD-B"],
        "parent_pi": "01PI-SERIES",
        "note": "re-ingested",
    }


@pytest.fixture
def search_hit() -> Dict[str, Any]:
    """A digital object hit carrying resolved metadata with extracted text."""
    return {
        "score": 0.91234,
        "pi": "01PI-DIGITAL",
        "namespace": "digitalObject",
        "pinecone_metadata": {
            "pi": "01PI-DIGITAL",
            "schema": "nara-digitalObject@v1",
            "nara_naId": 111,
            "date_start": 19690716,
            "date_end": 19690724,
            "parent_ancestry": ["01PI-SERIES", "01PI-FILEUNIT"],
            "last_updated": "2025-01-10T12:00:00Z",
            "source_collection": "NASA",
        },
        "manifest": {
            "pi": "01PI-DIGITAL",
            "ver": 1,
            "ts": "2025-01-10T12:00:00Z",
            "manifest_cid": "bafy-digital-manifest",
            "components": {"catalog_record": "bafy-digital-catalog"},
            "parent_pi": "01PI-FILEUNIT",
        },
        "metadata": {
            "title": "Apollo 11 Flight Plan, page 1",
            "level": "item",
            "nara_naId": 4567,
            "record_types": ["Textual Records", "Technical Reports"],
            "filename": "apollo11-p1.jpg",
            "file_size": 2621440,
            "extracted_text": "  Launch at 09:32 EDT.  ",
            "access_restriction": {"status": "Unrestricted"},
            "physical_location": {
                "referenceUnits": [
                    {"name": "National Archives at College Park", "city": "College Park", "state": "MD"}
                ]
            },
        },
        "metadata_cid": "bafy-digital-catalog",
    }


@pytest.fixture
def search_payload(search_hit: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "query": "apollo 11 flight plan",
        "namespaces": ["digitalObject", "fileUnit"],
        "total_results": 1,
        "results": [search_hit],
        "took_ms": 87,
    }
