"""Async HTTP clients for the Arke search, entity, IPFS and OCR services.

Each boundary call opens its own client, is retried on transport errors and
retryable statuses, and surfaces any final failure as GatewayUnavailable.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence, Type, TypeVar, Union

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import NamespaceCatalog, Settings, get_settings
from .errors import GatewayUnavailable
from .models import (
    NamespaceInfo,
    OCRBatchResponse,
    OCRResult,
    SearchRequest,
    SearchResponse,
    ocr_result_from,
)

logger = logging.getLogger(__name__)

RETRY_STATUS = frozenset({408, 429, 500, 502, 503, 504})


M = TypeVar("M", bound=BaseModel)


def _raise_for_retryable_status(resp: httpx.Response) -> None:
    if resp.status_code in RETRY_STATUS:
        raise httpx.HTTPStatusError(
            f"Retryable HTTP {resp.status_code} for {resp.request.url}",
            request=resp.request,
            response=resp,
        )


def _retry_decorator(settings: Settings):
    return retry(
        stop=stop_after_attempt(max(1, settings.max_attempts)),
        wait=wait_exponential(
            multiplier=settings.backoff_multiplier,
            min=settings.backoff_min,
            max=settings.backoff_max,
        ),
        retry=retry_if_exception_type((httpx.TransportError, httpx.HTTPStatusError)),
        reraise=True,
    )


def _decode_json(resp: httpx.Response, what: str) -> Any:
    try:
        return resp.json()
    except (ValueError, RecursionError) as exc:
        raise GatewayUnavailable(
            f"Invalid JSON in {what} response: {exc}",
            status_code=resp.status_code,
            body=resp.text[:500],
        ) from exc


def _parse(model: Type[M], data: Any, what: str) -> M:
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise GatewayUnavailable(f"Unexpected {what} response shape: {exc}") from exc


class _HttpGateway:
    """Shared request plumbing: client construction, retry, error mapping."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport
        self._timeout = timeout if timeout is not None else self.settings.timeout_total

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=True,
            transport=self._transport,
            headers={
                "user-agent": self.settings.user_agent,
                "accept": "application/json",
            },
        )

    async def _send(
        self, method: str, url: str, *, json: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        """Issue one logical request; returns the final response, any status."""

        @_retry_decorator(self.settings)
        async def _do_request() -> httpx.Response:
            async with self._client() as client:
                resp = await client.request(method, url, json=json)
                _raise_for_retryable_status(resp)
                return resp

        try:
            return await _do_request()
        except httpx.HTTPStatusError as exc:
            return exc.response
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise GatewayUnavailable(f"{method} {url} failed: {exc}") from exc

    async def _request_json(
        self,
        method: str,
        url: str,
        what: str,
        *,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        resp = await self._send(method, url, json=json)
        if resp.status_code >= 400:
            logger.error("HTTP %d for %s %s", resp.status_code, method, url)
            raise GatewayUnavailable(
                f"{what} failed: {resp.status_code} {resp.reason_phrase} - {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )
        return _decode_json(resp, what)


class ArkeGateway(_HttpGateway):
    """Search service, entity manifests and the IPFS content store."""

    async def get_namespaces(self) -> NamespaceInfo:
        url = f"{self.settings.search_url}/namespaces"
        logger.info("Fetching namespaces: %s", url)
        data = await self._request_json("GET", url, "Namespace request")
        return _parse(NamespaceInfo, data, "namespace")

    async def search(self, request: SearchRequest) -> SearchResponse:
        logger.info(
            "Searching for %r (topK=%s, namespaces=%s)",
            request.query,
            request.topK,
            ", ".join(request.namespaces or []) or "all",
        )
        data = await self._request_json(
            "POST",
            self.settings.search_url,
            "Search request",
            json=request.model_dump(exclude_none=True),
        )
        response = _parse(SearchResponse, data, "search")
        logger.info(
            "Found %d results in %sms", response.total_results, response.took_ms
        )
        return response

    async def get_manifest(self, pi: str) -> Dict[str, Any]:
        url = f"{self.settings.api_url}/entities/{pi}"
        logger.debug("Fetching manifest: %s", url)
        data = await self._request_json("GET", url, f"Entity {pi} request")
        if not isinstance(data, dict):
            raise GatewayUnavailable(f"Entity {pi} response is not an object")
        return data

    async def get_component(self, cid: str) -> Any:
        url = f"{self.settings.ipfs_url}/ipfs/{cid}"
        logger.debug("Fetching component: %s", url)
        return await self._request_json("GET", url, f"IPFS {cid} request")


class OCRGateway(_HttpGateway):
    """Text extraction for digitized documents."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        s = settings or get_settings()
        super().__init__(s, transport=transport, timeout=s.ocr_timeout)

    async def process(
        self,
        pi_or_pis: Union[str, Sequence[str]],
        *,
        force_reprocess: bool = False,
    ) -> Union[OCRResult, OCRBatchResponse]:
        """Run OCR for one PI (``/ocr/{pi}``) or a batch (``/ocr``)."""
        is_batch = not isinstance(pi_or_pis, str)
        body: Dict[str, Any] = {
            "force_reprocess": force_reprocess,
            "update_metadata": True,
        }
        if is_batch:
            body["pis"] = list(pi_or_pis)
            url = f"{self.settings.ocr_url}/ocr"
        else:
            body["pi"] = pi_or_pis
            url = f"{self.settings.ocr_url}/ocr/{pi_or_pis}"

        logger.info(
            "Requesting OCR for %s (force_reprocess=%s)",
            ", ".join(body["pis"]) if is_batch else pi_or_pis,
            force_reprocess,
        )
        resp = await self._send("POST", url, json=body)
        if resp.status_code >= 400:
            message = _ocr_error_message(resp)
            logger.error("OCR API error (%d): %s", resp.status_code, message)
            raise GatewayUnavailable(
                f"OCR API error ({resp.status_code}): {message}",
                status_code=resp.status_code,
                body=resp.text,
            )

        data = _decode_json(resp, "OCR")
        if is_batch:
            return _parse(OCRBatchResponse, data, "OCR batch")
        if not isinstance(data, dict):
            raise GatewayUnavailable("OCR response is not an object")
        try:
            return ocr_result_from(data)
        except PydanticValidationError as exc:
            raise GatewayUnavailable(f"Unexpected OCR response shape: {exc}") from exc


def _ocr_error_message(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except (ValueError, RecursionError):
        return resp.reason_phrase
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return resp.reason_phrase


async def load_catalog(gateway: ArkeGateway) -> NamespaceCatalog:
    """Fetch the namespace list once and freeze it for the tool surface."""
    info = await gateway.get_namespaces()
    catalog = NamespaceCatalog(
        namespaces=tuple(info.namespaces),
        description={ns: info.description.get(ns, "") for ns in info.namespaces},
    )
    logger.info("Loaded %d namespaces", len(catalog.namespaces))
    return catalog

