"""
deploy_site - Publishes the built page.
deploy_site —— 发布构建好的页面。
"""

from __future__ import annotations

import asyncio

from schema import GraphNode, RunContext


async def deploy_site(ctx: RunContext) -> dict[str, str]:
    ctx.logger.info("Deploying site...")
    if not ctx.has_output("build_page"):
        raise ValueError("nothing to deploy")
    page = ctx.get_output("build_page", dict)
    if not page.get("html"):
        raise ValueError("built page has no html")
    await asyncio.sleep(0.1)
    return {"url": "https://demo.navo.local"}


DEPLOY_SITE = GraphNode(
    name="deploy_site",
    dependencies=["build_page"],
    work=deploy_site,
    description="Deploy the site",
    max_retries=1,
    retry_delay_ms=100,
)
