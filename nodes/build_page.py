"""
build_page - Renders HTML from the copy and image outputs.
build_page —— 基于文案与配图结果渲染 HTML。
"""

from __future__ import annotations

from schema import GraphNode, RunContext


async def build_page(ctx: RunContext) -> dict[str, str]:
    ctx.logger.info("Building page...")
    copy = ctx.get_output("write_copy", dict, default={})
    image = ctx.get_output("generate_image", dict, default={})
    return {
        "html": f'<section><h1>{copy.get("headline", "")}</h1><img src="{image.get("imageUrl", "")}" /></section>',
    }


BUILD_PAGE = GraphNode(
    name="build_page",
    dependencies=["write_copy", "generate_image"],
    work=build_page,
    description="Render the page",
)
