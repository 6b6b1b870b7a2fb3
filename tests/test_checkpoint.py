"""
Checkpoint store and default logger tests.
检查点存储与默认日志协作方测试。
"""

from __future__ import annotations

import logging

import pytest

from dag.checkpoint import InMemoryCheckpointStore
from dag.log import StdLogger
from schema import MISSING


class TestInMemoryCheckpointStore:

    @pytest.mark.asyncio
    async def test_get_missing_returns_default(self):
        store = InMemoryCheckpointStore()
        assert await store.get("A") is MISSING
        assert await store.get("A", None) is None

    @pytest.mark.asyncio
    async def test_stored_none_is_a_value(self):
        store = InMemoryCheckpointStore()
        await store.set("deploy", None)

        assert "deploy" in store
        assert await store.get("deploy") is None

    @pytest.mark.asyncio
    async def test_set_get_clear(self):
        store = InMemoryCheckpointStore({"seed": 1})
        await store.set("A", {"v": 1})

        assert "A" in store and len(store) == 2
        assert await store.get("A") == {"v": 1}

        await store.clear("A")
        assert "A" not in store
        await store.clear()
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_values_are_isolated_from_callers(self):
        store = InMemoryCheckpointStore()
        value = {"items": [1]}
        await store.set("A", value)
        value["items"].append(2)

        loaded = await store.get("A")
        loaded["items"].append(3)

        assert store.snapshot() == {"A": {"items": [1]}}


class TestStdLogger:

    def test_formats_run_id_and_meta(self, caplog):
        log = StdLogger(run_id="r1")
        with caplog.at_level(logging.INFO, logger="dag.run"):
            log.info("DONE A", {"ms": 12})
            log.error("FAIL B", {"error": "boom"})

        assert caplog.messages == ["[r1] DONE A | ms=12", "[r1] FAIL B | error=boom"]
        assert caplog.records[1].levelno == logging.ERROR

    def test_bind_keeps_underlying_logger(self, caplog):
        base = StdLogger(logging.getLogger("dag.custom"))
        with caplog.at_level(logging.INFO, logger="dag.custom"):
            base.bind("r2").info("START A")
        assert caplog.records[0].name == "dag.custom"
        assert caplog.messages == ["[r2] START A"]
