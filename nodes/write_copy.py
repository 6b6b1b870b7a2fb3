"""
write_copy - Produces the page headline.
write_copy —— 生成页面标题文案。
"""

from __future__ import annotations

import asyncio

from schema import GraphNode, RunContext


async def write_copy(ctx: RunContext) -> dict[str, str]:
    ctx.logger.info("Writing copy...")
    await asyncio.sleep(0.15)
    return {"headline": "Speak it, see it, ship it."}


WRITE_COPY = GraphNode(
    name="write_copy",
    work=write_copy,
    description="Write the landing page headline",
    use_checkpoint=True,
)
