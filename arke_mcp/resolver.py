"""Entity resolution: manifest fetch, component fan-out and metadata merge."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, List, Sequence, TypeVar, Union

from .errors import ArkeError, ComponentFetchError, ManifestFetchError
from .gateway import ArkeGateway
from .models import ComponentFailed, ComponentOk, ResolvedEntity

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def settle_all(aws: Sequence[Awaitable[T]]) -> List[Union[T, BaseException]]:
    """Await every branch; failures come back as values, siblings keep running."""
    return await asyncio.gather(*aws, return_exceptions=True)


async def all_or_nothing(aws: Sequence[Awaitable[T]]) -> List[T]:
    """Await every branch in order; the first failure fails the whole call.

    Branches still in flight when one fails are cancelled.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class EntityResolver:
    """Assemble a :class:`ResolvedEntity` for a PI from manifest and components."""

    def __init__(self, gateway: ArkeGateway) -> None:
        self.gateway = gateway

    async def resolve(self, pi: str) -> ResolvedEntity:
        """Fetch the manifest of ``pi`` and every component it names.

        Raises:
            ManifestFetchError: if the manifest itself cannot be retrieved.
        """
        try:
            data = await self.gateway.get_manifest(pi)
            entity = ResolvedEntity.model_validate(data)
        except (ArkeError, ValueError) as exc:
            logger.error("Manifest fetch failed for %s: %s", pi, exc)
            raise ManifestFetchError(pi, exc) from exc

        names = list(entity.components)
        outcomes = await settle_all(
            [self._fetch_component(entity, name, entity.components[name]) for name in names]
        )
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, ComponentFetchError):
                logger.warning("%s", outcome)
                entity.component_data[name] = ComponentFailed(
                    cid=outcome.cid, error=str(outcome.cause)
                )
            elif isinstance(outcome, Exception):
                cid = entity.components[name]
                logger.warning("Component %s (%s) failed: %r", name, cid, outcome)
                entity.component_data[name] = ComponentFailed(cid=cid, error=repr(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                entity.component_data[name] = outcome

        failed = sum(1 for o in entity.component_data.values() if isinstance(o, ComponentFailed))
        logger.info(
            "Resolved %s: %d components (%d failed)", pi, len(names), failed
        )
        return entity

    async def _fetch_component(
        self, entity: ResolvedEntity, name: str, cid: str
    ) -> ComponentOk:
        try:
            value: Any = await self.gateway.get_component(cid)
        except ArkeError as exc:
            raise ComponentFetchError(name, cid, exc) from exc
        if entity.merge_canonical(name, cid, value):
            logger.debug("Adopted %s as metadata for %s", cid, entity.pi)
        return ComponentOk(cid=cid, value=value)

    async def resolve_many(self, pis: Sequence[str]) -> List[ResolvedEntity]:
        """Resolve every PI concurrently, preserving input order.

        Any :class:`ManifestFetchError` fails the whole batch.
        """
        logger.info("Resolving %d entities", len(pis))
        return await all_or_nothing([self.resolve(pi) for pi in pis])
