"""
generate_image - Produces the hero image URL.
generate_image —— 生成首屏配图地址。

`fail=True` builds a variant whose work always raises, used by the CLI to
show failure gating and compensation.
`fail=True` 时构造一个总是失败的版本，CLI 用它演示失败门控与补偿。
"""

from __future__ import annotations

import asyncio

from schema import GraphNode, RunContext


class ImageServiceError(RuntimeError):
    pass


async def generate_image(ctx: RunContext) -> dict[str, str]:
    ctx.logger.info("Generating image...")
    await asyncio.sleep(0.2)
    return {"imageUrl": "https://example.com/generated.jpg"}


async def broken_generate_image(ctx: RunContext) -> dict[str, str]:
    ctx.logger.info("Generating image...")
    await asyncio.sleep(0.05)
    raise ImageServiceError("image service unavailable")


async def discard_partial_image(ctx: RunContext, reason: str) -> None:
    ctx.logger.info("Discarding partial image", {"reason": reason})


def make_generate_image(fail: bool = False) -> GraphNode:
    return GraphNode(
        name="generate_image",
        work=broken_generate_image if fail else generate_image,
        description="Generate the hero image",
        max_retries=2,
        retry_delay_ms=50,
        exponential_backoff=True,
        timeout_ms=2_000,
        compensate=discard_partial_image,
        use_checkpoint=True,
    )
