"""
Demo nodes - a small site-building graph.
演示节点 —— 一个小型建站流程图。

    write_copy ─────┐
                    ├──> build_page ──> deploy_site
    generate_image ─┘
"""

from __future__ import annotations

from schema import GraphNode

from .build_page import BUILD_PAGE
from .deploy_site import DEPLOY_SITE
from .generate_image import make_generate_image
from .write_copy import WRITE_COPY


def build_site_graph(fail_image: bool = False) -> list[GraphNode]:
    """Return a fresh node list for the demo pipeline. 返回演示流程的节点列表。"""
    return [WRITE_COPY, make_generate_image(fail=fail_image), BUILD_PAGE, DEPLOY_SITE]


__all__ = ["build_site_graph", "BUILD_PAGE", "DEPLOY_SITE", "WRITE_COPY", "make_generate_image"]
