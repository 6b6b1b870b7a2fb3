"""
In-memory checkpoint store.
内存检查点存储。

Implements the CheckpointStore protocol from schema.py. Durable stores
(files, databases) plug in through the same three async methods.
实现 schema.py 中的 CheckpointStore 协议；持久化存储可通过相同的三个异步方法接入。
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from schema import MISSING

logger = logging.getLogger(__name__)


class InMemoryCheckpointStore:
    """
    Dict-backed checkpoint store. Reuse one instance across runs to resume.
    基于 dict 的检查点存储。跨多次运行复用同一实例即可实现断点续跑。

    Values are deep-copied on the way in and out so a node mutating its own
    result cannot corrupt the stored marker.
    存取时均做深拷贝，避免节点修改结果后污染已保存的检查点。
    """

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = dict(initial or {})

    async def get(self, node_name: str, default: Any = MISSING) -> Any:
        if node_name not in self._data:
            return default
        return copy.deepcopy(self._data[node_name])

    async def set(self, node_name: str, value: Any) -> None:
        self._data[node_name] = copy.deepcopy(value)
        logger.debug("[Checkpoint] saved %s", node_name)

    async def clear(self, node_name: str | None = None) -> None:
        """Drop one node's checkpoint, or all of them when `node_name` is None."""
        if node_name is None:
            self._data.clear()
            logger.debug("[Checkpoint] cleared all")
        else:
            self._data.pop(node_name, None)
            logger.debug("[Checkpoint] cleared %s", node_name)

    def __contains__(self, node_name: str) -> bool:
        return node_name in self._data

    def __len__(self) -> int:
        return len(self._data)

    def snapshot(self) -> dict[str, Any]:
        """Return a deep copy of everything stored. 返回全部检查点的深拷贝。"""
        return copy.deepcopy(self._data)
