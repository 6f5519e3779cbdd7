"""Tests for entity resolution and the fan-in combinators."""

import asyncio
from typing import Any, Dict

import httpx
import pytest

from arke_mcp.errors import ManifestFetchError
from arke_mcp.gateway import ArkeGateway
from arke_mcp.models import ComponentFailed, ComponentOk
from arke_mcp.resolver import EntityResolver, all_or_nothing, settle_all

CATALOG: Dict[str, Any] = {
    "title": "Apollo 11 Mission Files",
    "level": "fileUnit",
    "nara_naId": 999,
}


def _resolver(settings, transport) -> EntityResolver:
    return EntityResolver(ArkeGateway(settings, transport=transport))


class TestCombinators:
    """Tests for settle_all and all_or_nothing."""

    def test_settle_all_collects_failures(self) -> None:
        async def ok(v):
            return v

        async def boom():
            raise ValueError("boom")

        async def run():
            return await settle_all([ok(1), boom(), ok(3)])

        results = asyncio.run(run())
        assert results[0] == 1
        assert isinstance(results[1], ValueError)
        assert results[2] == 3

    def test_all_or_nothing_propagates(self) -> None:
        finished = []

        async def slow():
            await asyncio.sleep(0.5)
            finished.append("slow")
            return "slow"

        async def boom():
            raise ValueError("boom")

        async def run():
            return await all_or_nothing([slow(), boom()])

        with pytest.raises(ValueError, match="boom"):
            asyncio.run(run())
        assert finished == []

    def test_all_or_nothing_preserves_order(self) -> None:
        async def delayed(v, d):
            await asyncio.sleep(d)
            return v

        async def run():
            return await all_or_nothing([delayed("a", 0.03), delayed("b", 0.0), delayed("c", 0.01)])

        assert asyncio.run(run()) == ["a", "b", "c"]


class TestResolve:
    """Tests for EntityResolver.resolve."""

    def test_all_components_fetched(self, settings, make_transport, manifest) -> None:
        transport = make_transport({
            ("GET", "/entities/01PI-FILEUNIT"): manifest,
            ("GET", "/ipfs/bafy-catalog"): CATALOG,
            ("GET", "/ipfs/bafy-ocr"): {"pages": [{"extracted_text": "page one"}]},
        })
        entity = asyncio.run(_resolver(settings, transport).resolve("01PI-FILEUNIT"))

        assert set(entity.component_data) == {"catalog_record", "ocr_text"}
        assert all(isinstance(o, ComponentOk) for o in entity.component_data.values())
        assert entity.component_data["ocr_text"].value == {"pages": [{"extracted_text": "page one"}]}
        assert entity.ver == 3
        assert entity.children_pi == ["01PI-CHILD-A", "01PI-CHILD-B"]

    def test_catalog_record_becomes_metadata(self, settings, make_transport) -> None:
        manifest = {"pi": "P", "ver": 1, "components": {"catalog_record": "bafy-cat"}}
        transport = make_transport({
            ("GET", "/entities/P"): manifest,
            ("GET", "/ipfs/bafy-cat"): CATALOG,
        })
        entity = asyncio.run(_resolver(settings, transport).resolve("P"))

        assert entity.metadata == CATALOG
        assert entity.metadata_cid == "bafy-cat"

    def test_supplied_metadata_not_overwritten(self, settings, make_transport) -> None:
        manifest = {
            "pi": "P",
            "ver": 1,
            "components": {"catalog_record": "bafy-cat"},
            "metadata": {"title": "already resolved"},
            "metadata_cid": "bafy-earlier",
        }
        transport = make_transport({
            ("GET", "/entities/P"): manifest,
            ("GET", "/ipfs/bafy-cat"): CATALOG,
        })
        entity = asyncio.run(_resolver(settings, transport).resolve("P"))

        assert entity.metadata == {"title": "already resolved"}
        assert entity.metadata_cid == "bafy-earlier"
        assert entity.component_data["catalog_record"].value == CATALOG

    def test_failed_component_recorded_inline(self, settings, make_transport, manifest) -> None:
        transport = make_transport({
            ("GET", "/entities/01PI-FILEUNIT"): manifest,
            ("GET", "/ipfs/bafy-catalog"): CATALOG,
            ("GET", "/ipfs/bafy-ocr"): (500, "ipfs node down"),
        })
        entity = asyncio.run(_resolver(settings, transport).resolve("01PI-FILEUNIT"))

        failed = entity.component_data["ocr_text"]
        assert isinstance(failed, ComponentFailed)
        assert failed.cid == "bafy-ocr"
        assert "500" in failed.error
        assert entity.metadata == CATALOG

    def test_every_component_fails(self, settings, make_transport) -> None:
        components = {f"part_{i}": f"cid-{i}" for i in range(6)}
        routes = {("GET", "/entities/P"): {"pi": "P", "ver": 1, "components": components}}
        routes.update({("GET", f"/ipfs/cid-{i}"): httpx.ConnectError for i in range(3)})
        routes.update({("GET", f"/ipfs/cid-{i}"): (200, "<<garbage") for i in range(3, 6)})
        entity = asyncio.run(_resolver(settings, make_transport(routes)).resolve("P"))

        assert list(entity.component_data) == list(components)
        assert all(isinstance(o, ComponentFailed) for o in entity.component_data.values())
        assert entity.metadata is None

    def test_overly_nested_component_is_contained(self, settings, make_transport) -> None:
        transport = make_transport({
            ("GET", "/entities/P"): {"pi": "P", "components": {"deep": "c1", "ok": "c2"}},
            ("GET", "/ipfs/c1"): (200, "[" * 5000 + "]" * 5000),
            ("GET", "/ipfs/c2"): {"fine": True},
        })
        entity = asyncio.run(_resolver(settings, transport).resolve("P"))

        deep = entity.component_data["deep"]
        assert isinstance(deep, ComponentFailed)
        assert deep.cid == "c1"
        assert "Invalid JSON" in deep.error
        assert entity.component_data["ok"] == ComponentOk(cid="c2", value={"fine": True})

    def test_unexpected_component_error_is_recorded(self, settings, make_transport) -> None:
        class FlakyGateway(ArkeGateway):
            async def get_component(self, cid):
                if cid == "bad":
                    raise RuntimeError("decoder exploded")
                return await super().get_component(cid)

        transport = make_transport({
            ("GET", "/entities/P"): {"pi": "P", "components": {"a": "bad", "b": "good"}},
            ("GET", "/ipfs/good"): [1, 2],
        })
        resolver = EntityResolver(FlakyGateway(settings, transport=transport))
        entity = asyncio.run(resolver.resolve("P"))

        assert isinstance(entity.component_data["a"], ComponentFailed)
        assert "decoder exploded" in entity.component_data["a"].error
        assert entity.component_data["b"].value == [1, 2]

    def test_non_object_catalog_record_is_adopted(self, settings, make_transport) -> None:
        transport = make_transport({
            ("GET", "/entities/P"): {"pi": "P", "components": {"catalog_record": "bafy-cat"}},
            ("GET", "/ipfs/bafy-cat"): ["not", "an", "object"],
        })
        entity = asyncio.run(_resolver(settings, transport).resolve("P"))
        assert entity.metadata == ["not", "an", "object"]
        assert entity.metadata_cid == "bafy-cat"

    def test_failed_catalog_record_leaves_metadata_unset(self, settings, make_transport) -> None:
        transport = make_transport({
            ("GET", "/entities/P"): {"pi": "P", "components": {"catalog_record": "bafy-cat"}},
            ("GET", "/ipfs/bafy-cat"): (404, "gone"),
        })
        entity = asyncio.run(_resolver(settings, transport).resolve("P"))
        assert entity.metadata is None
        assert entity.metadata_cid is None

    def test_no_components(self, settings, make_transport) -> None:
        transport = make_transport({("GET", "/entities/P"): {"pi": "P", "ver": 1}})
        entity = asyncio.run(_resolver(settings, transport).resolve("P"))
        assert entity.component_data == {}
        assert len(transport.calls) == 1

    def test_manifest_failure(self, settings, make_transport) -> None:
        transport = make_transport({("GET", "/entities/P"): (404, "no such entity")})
        with pytest.raises(ManifestFetchError) as excinfo:
            asyncio.run(_resolver(settings, transport).resolve("P"))
        assert excinfo.value.pi == "P"
        assert len(transport.calls) == 1

    def test_manifest_missing_pi(self, settings, make_transport) -> None:
        transport = make_transport({("GET", "/entities/P"): {"ver": 1}})
        with pytest.raises(ManifestFetchError):
            asyncio.run(_resolver(settings, transport).resolve("P"))


class TestResolveMany:
    """Tests for EntityResolver.resolve_many."""

    def _routes(self) -> Dict[Any, Any]:
        return {
            ("GET", f"/entities/{pi}"): {"pi": pi, "ver": 1, "components": {"catalog_record": f"cid-{pi}"}}
            for pi in ("A", "B", "C")
        } | {
            ("GET", f"/ipfs/cid-{pi}"): {"title": f"title {pi}"} for pi in ("A", "B", "C")
        }

    def test_preserves_input_order(self, settings, make_transport) -> None:
        resolver = _resolver(settings, make_transport(self._routes()))
        entities = asyncio.run(resolver.resolve_many(["C", "A", "B"]))
        assert [e.pi for e in entities] == ["C", "A", "B"]
        assert [e.metadata["title"] for e in entities] == ["title C", "title A", "title B"]

    def test_one_manifest_failure_fails_batch(self, settings, make_transport) -> None:
        routes = self._routes()
        routes[("GET", "/entities/B")] = (503, "unavailable")
        resolver = _resolver(settings, make_transport(routes))

        with pytest.raises(ManifestFetchError) as excinfo:
            asyncio.run(resolver.resolve_many(["A", "B", "C"]))
        assert excinfo.value.pi == "B"

    def test_component_failures_do_not_fail_batch(self, settings, make_transport) -> None:
        routes = self._routes()
        routes[("GET", "/ipfs/cid-B")] = (500, "oops")
        resolver = _resolver(settings, make_transport(routes))

        entities = asyncio.run(resolver.resolve_many(["A", "B", "C"]))
        assert isinstance(entities[1].component_data["catalog_record"], ComponentFailed)
        assert entities[1].metadata is None
        assert entities[2].metadata == {"title": "title C"}
