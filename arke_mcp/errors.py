"""Exception taxonomy shared by the gateway, resolver and tool surface."""

from __future__ import annotations

from typing import List, Optional, Sequence


class ArkeError(Exception):
    """Base class for every failure this package raises."""


class GatewayUnavailable(ArkeError):
    """A remote call (search, manifest, component, OCR) failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ManifestFetchError(ArkeError):
    """The manifest for an entity could not be retrieved."""

    def __init__(self, pi: str, cause: BaseException) -> None:
        super().__init__(f"Failed to fetch entity {pi}: {cause}")
        self.pi = pi
        self.cause = cause


class ComponentFetchError(ArkeError):
    """One named component of an entity could not be fetched or decoded."""

    def __init__(self, name: str, cid: str, cause: BaseException) -> None:
        super().__init__(f"Failed to fetch component {name} ({cid}): {cause}")
        self.name = name
        self.cid = cid
        self.cause = cause


class ValidationError(ArkeError):
    """Caller-supplied tool parameters are out of bounds or inconsistent."""

    def __init__(self, message: str, hints: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.hints: List[str] = list(hints)
