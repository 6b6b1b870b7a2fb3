"""
Demo site graph tests — the four-node pipeline used by the CLI.
演示建站流程测试 —— CLI 使用的四节点流程。

    write_copy ─────┐
                    ├──> build_page ──> deploy_site
    generate_image ─┘
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from dag.checkpoint import InMemoryCheckpointStore
from dag.errors import WorkFailure
from dag.executor import run_graph_detailed
from nodes import build_site_graph
from nodes.generate_image import ImageServiceError
from schema import RunContext, RunOptions


class TestSiteGraph:

    @pytest.mark.asyncio
    async def test_happy_path_deploys(self):
        result = await run_graph_detailed(build_site_graph(), RunContext(logger=MagicMock()))

        assert result.levels == [["write_copy", "generate_image"], ["build_page"], ["deploy_site"]]
        assert result.ok
        html = result.outputs["build_page"]["html"]
        assert "Speak it, see it, ship it." in html
        assert "https://example.com/generated.jpg" in html
        assert result.outputs["deploy_site"] == {"url": "https://demo.navo.local"}

    @pytest.mark.asyncio
    async def test_image_failure_skips_downstream(self):
        ctx = RunContext(logger=MagicMock())

        result = await run_graph_detailed(build_site_graph(fail_image=True), ctx)

        error = result.failed["generate_image"]
        assert isinstance(error, WorkFailure)
        assert isinstance(error.__cause__, ImageServiceError)
        assert result.attempts["generate_image"] == 3
        assert result.succeeded == {"write_copy"}
        assert result.skipped == {"build_page", "deploy_site"}
        ctx.logger.info.assert_any_call("Discarding partial image", {"reason": "failed"})

    @pytest.mark.asyncio
    async def test_partial_mode_has_same_outcome_for_this_shape(self):
        result = await run_graph_detailed(
            build_site_graph(fail_image=True),
            RunContext(logger=MagicMock()),
            RunOptions(allow_partial_success=True),
        )
        assert result.skipped == {"build_page", "deploy_site"}

    @pytest.mark.asyncio
    async def test_resume_reuses_checkpointed_nodes(self):
        store = InMemoryCheckpointStore()
        await run_graph_detailed(build_site_graph(fail_image=True), RunContext(logger=MagicMock(), checkpoint=store))
        assert "write_copy" in store and "generate_image" not in store

        result = await run_graph_detailed(build_site_graph(), RunContext(logger=MagicMock(), checkpoint=store))

        assert result.ok
        assert result.attempts["write_copy"] == 0
        assert result.attempts["generate_image"] == 1
