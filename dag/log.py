"""
Default logger collaborator - adapts stdlib logging to the info/error(message, meta) shape.
默认日志协作方 —— 将标准库 logging 适配为 info/error(message, meta) 接口。
"""

from __future__ import annotations

import logging
from typing import Any


class StdLogger:
    """
    GraphLogger backed by a stdlib `logging.Logger`.
    基于标准库 logging.Logger 的 GraphLogger 实现。

    Meta is rendered as `key=value` pairs after the message, and the run id
    (when known) is prefixed so concurrent runs stay distinguishable.
    meta 以 key=value 形式追加在消息后；若有 run_id 则加前缀，便于区分并发运行。
    """

    def __init__(self, logger: logging.Logger | None = None, run_id: str | None = None):
        self._logger = logger or logging.getLogger("dag.run")
        self._run_id = run_id

    def bind(self, run_id: str | None) -> StdLogger:
        """Return a copy tagged with `run_id`."""
        return StdLogger(self._logger, run_id)

    def info(self, message: str, meta: dict[str, Any] | None = None) -> None:
        self._logger.info("%s", self._format(message, meta))

    def error(self, message: str, meta: dict[str, Any] | None = None) -> None:
        self._logger.error("%s", self._format(message, meta))

    def _format(self, message: str, meta: dict[str, Any] | None) -> str:
        text = f"[{self._run_id}] {message}" if self._run_id else message
        if meta:
            text += " | " + ", ".join(f"{k}={v}" for k, v in meta.items())
        return text
