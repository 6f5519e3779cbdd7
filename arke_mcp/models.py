"""Pydantic models for search hits, manifests, resolved entities and OCR results.

Field names follow the remote services' JSON so that passthrough fields
survive a parse/dump cycle unchanged.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ModelWrapValidatorHandler,
    PrivateAttr,
    field_validator,
    model_validator,
)

CATALOG_RECORD = "catalog_record"


class RemoteModel(BaseModel):
    """Base for payloads whose schema the remote side may extend.

    The mapping a model was validated from is kept as received, so a dump
    reproduces the service's own values rather than their coerced form.
    """

    model_config = ConfigDict(extra="allow")

    _raw: Optional[Dict[str, Any]] = PrivateAttr(default=None)

    @model_validator(mode="wrap")
    @classmethod
    def _keep_raw(cls, data: Any, handler: ModelWrapValidatorHandler) -> Any:
        model = handler(data)
        if isinstance(data, dict) and isinstance(model, RemoteModel):
            model._raw = copy.deepcopy(data)
        return model

    def dump(self) -> Dict[str, Any]:
        """Return the received payload, or the assigned fields if built locally."""
        if self._raw is not None:
            return copy.deepcopy(self._raw)
        return self.model_dump(mode="json", exclude_unset=True, by_alias=True)



class NamespaceInfo(RemoteModel):
    namespaces: List[str]
    count: int = 0
    description: Dict[str, str] = Field(default_factory=dict)


class SearchRequest(BaseModel):
    query: str
    topK: Optional[int] = None
    namespaces: Optional[List[str]] = None


class RankingMetadata(RemoteModel):
    """Vector-index metadata attached to a hit."""

    pi: Optional[str] = None
    schema_: Optional[str] = Field(default=None, alias="schema")
    nara_naId: Optional[int] = None
    date_start: Optional[int] = None
    date_end: Optional[int] = None
    parent_ancestry: Optional[List[str]] = None
    last_updated: Optional[str] = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Manifest(RemoteModel):
    """Versioned descriptor of an entity's components and relationships."""

    pi: str
    ver: int = 0
    ts: Optional[str] = None
    manifest_cid: Optional[str] = None
    prev_cid: Optional[str] = None
    components: Dict[str, str] = Field(default_factory=dict)
    children_pi: Optional[List[str]] = None
    parent_pi: Optional[str] = None
    note: Optional[str] = None


class RankedHit(RemoteModel):
    """One search match, in the order the search service ranked it."""

    score: float
    pi: str
    namespace: str
    pinecone_metadata: RankingMetadata = Field(default_factory=RankingMetadata)
    manifest: Optional[Manifest] = None
    metadata: Optional[Dict[str, Any]] = None
    metadata_cid: Optional[str] = None

    @property
    def na_id(self) -> Optional[Any]:
        """NARA id, preferring the resolved metadata over the index metadata."""
        if isinstance(self.metadata, dict) and self.metadata.get("nara_naId"):
            return self.metadata["nara_naId"]
        return self.pinecone_metadata.nara_naId


class SearchResponse(RemoteModel):
    query: str
    namespaces: List[str] = Field(default_factory=list)
    total_results: int = 0
    results: List[RankedHit] = Field(default_factory=list)
    took_ms: Optional[int] = None


class ComponentOk(BaseModel):
    status: Literal["ok"] = "ok"
    cid: str
    value: Any = None


class ComponentFailed(BaseModel):
    status: Literal["failed"] = "failed"
    cid: str
    error: str


ComponentOutcome = Union[ComponentOk, ComponentFailed]


class ResolvedEntity(Manifest):
    """A manifest plus the fetched data of each of its components."""

    metadata: Any = None
    metadata_cid: Optional[str] = None
    component_data: Dict[str, ComponentOutcome] = Field(default_factory=dict)

    def merge_canonical(self, name: str, cid: str, value: Any) -> bool:
        """Adopt a fetched catalog record as metadata unless one is already set."""
        if name != CATALOG_RECORD or self.metadata is not None or value is None:
            return False
        self.metadata = value
        self.metadata_cid = cid
        return True

    def raw_component_data(self) -> Dict[str, Any]:
        """Component values as fetched; failures as ``{"error", "cid"}``."""
        raw: Dict[str, Any] = {}
        for name, outcome in self.component_data.items():
            if isinstance(outcome, ComponentOk):
                raw[name] = outcome.value
            else:
                raw[name] = {"error": outcome.error, "cid": outcome.cid}
        return raw

    def dump(self) -> Dict[str, Any]:
        data = super().dump()
        data.pop("component_data", None)
        if self.metadata is not None:
            data["metadata"] = self.metadata
            data["metadata_cid"] = self.metadata_cid
        data["component_data"] = self.raw_component_data()
        return data



class OCRPage(RemoteModel):
    page_number: Optional[int] = None
    source: Optional[str] = None
    text: Optional[str] = None
    tokens: Optional[int] = None
    cost: Optional[float] = None


class OCRProvenance(RemoteModel):
    model: Optional[str] = None
    processed_at: Optional[str] = None


class OCRSuccess(RemoteModel):
    success: Literal[True] = True
    pi: Optional[str] = None
    status: str = "completed"
    source: str = "processed"
    processing_time_ms: Optional[int] = None
    text: str = ""
    pages: Optional[List[OCRPage]] = None
    total_tokens: Optional[int] = None
    total_cost: Optional[float] = None
    metadata: Optional[OCRProvenance] = None


class OCRFailure(RemoteModel):
    success: Literal[False] = False
    pi: Optional[str] = None
    code: str = "OCR_FAILED"
    error: str
    processing_time_ms: Optional[int] = None


OCRResult = Union[OCRSuccess, OCRFailure]


def ocr_result_from(data: Any) -> OCRResult:
    """Pick the OCR variant from the ``success`` tag, or from ``error`` if untagged."""
    if isinstance(data, (OCRSuccess, OCRFailure)):
        return data
    if data.get("success") is False or ("success" not in data and data.get("error")):
        return OCRFailure.model_validate(data)
    return OCRSuccess.model_validate(data)


class OCRBatchSummary(RemoteModel):
    total: Optional[int] = None
    successful: Optional[int] = None
    failed: Optional[int] = None
    total_cost: Optional[float] = None
    total_time_ms: Optional[int] = None


class OCRBatchResponse(RemoteModel):
    results: List[OCRResult] = Field(default_factory=list)
    summary: Optional[OCRBatchSummary] = None

    @field_validator("results", mode="before")
    @classmethod
    def _tag_results(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [ocr_result_from(item) if isinstance(item, dict) else item for item in value]
        return value
