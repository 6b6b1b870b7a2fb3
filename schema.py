"""
Pydantic data models for the graph runner.
Defines the node shape, the shared per-run context, run options and results.
图执行引擎的 Pydantic 数据模型。
定义了节点结构、单次运行共享上下文、运行选项与运行结果。
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator

import config


# ======================================================================
# Collaborator protocols
# 协作方接口
# ======================================================================

class _Missing:
    """Marker for "no checkpoint stored"; `None` is a legitimate stored value."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()  # CheckpointStore.get 在 key 不存在时的默认返回值


class GraphLogger(Protocol):
    """
    Structured log sink owned by the caller.
    调用方提供的结构化日志接口，引擎与节点共同使用。
    """

    def info(self, message: str, meta: dict[str, Any] | None = None) -> None: ...

    def error(self, message: str, meta: dict[str, Any] | None = None) -> None: ...


class CheckpointStore(Protocol):
    """
    Key-value store keyed by node name. Its lifetime is external to a run,
    so the same store can be reused to resume after a crash.
    `get` returns `default` (MISSING) for a node with nothing stored, so a
    stored `None` still counts as a checkpoint.
    以节点名为 key 的检查点存储。生命周期独立于单次运行，可跨运行复用以实现断点续跑。
    get 在无存储值时返回 default（MISSING），因此存储的 None 同样视为有效检查点。
    """

    async def get(self, node_name: str, default: Any = MISSING) -> Any: ...

    async def set(self, node_name: str, value: Any) -> None: ...

    async def clear(self, node_name: str | None = None) -> None: ...


# ======================================================================
# Node lifecycle
# 节点生命周期
# ======================================================================

class NodeStatus(str, Enum):
    """
    Node lifecycle states, managed by NodeStateMachine.
    节点生命周期状态，由 NodeStateMachine 强制管理合法转移。

    Transition graph:
    转移图：
        PENDING -> RUNNING -> SUCCEEDED
                           -> RETRYING -> RUNNING
                           -> FALLING_BACK -> SUCCEEDED | FAILED
                           -> FAILED
        PENDING -> SUCCEEDED   (checkpoint hit / 命中检查点)
        PENDING -> SKIPPED     (upstream failed / 上游失败)
    """
    PENDING = "pending"
    RUNNING = "running"
    RETRYING = "retrying"
    FALLING_BACK = "falling_back"
    SUCCEEDED = "succeeded"  # 终态
    FAILED = "failed"        # 终态
    SKIPPED = "skipped"      # 终态


TERMINAL_STATUSES = frozenset({NodeStatus.SUCCEEDED, NodeStatus.FAILED, NodeStatus.SKIPPED})


class GraphNode(BaseModel):
    """
    A unit of work in the graph.
    图中的一个工作单元。

    The engine never mutates a node, so the same node list can be passed to
    any number of runs. Policy fields left as None fall back to RunOptions.
    引擎不会修改节点对象，同一节点列表可多次运行。策略字段为 None 时使用 RunOptions 中的默认值。
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str = Field(min_length=1, description="Unique node name within a run")               # 节点唯一名称
    dependencies: list[str] = Field(default_factory=list, description="Names of prerequisite nodes")  # 前置节点名称
    work: Callable[..., Any] = Field(description="work(ctx) -> result, usually a coroutine function")  # 节点入口
    description: str = ""

    # --- Resiliency policy / 容错策略 ---
    max_retries: Optional[int] = Field(default=None, ge=0)          # 最大重试次数（不含首次）
    retry_delay_ms: Optional[float] = Field(default=None, ge=0)     # 重试基础间隔
    exponential_backoff: Optional[bool] = None                      # True 时每次重试间隔翻倍
    timeout_ms: Optional[float] = Field(default=None, ge=0)         # 单次尝试超时
    should_retry: Optional[Callable[..., Any]] = None               # should_retry(error)，同步或异步，判断是否值得重试
    fallback: Optional[Callable[..., Any]] = None                   # fallback(ctx, last_error)
    compensate: Optional[Callable[..., Any]] = None                 # compensate(ctx, reason)，失败后的清理
    on_failure: Optional[Callable[..., Any]] = None                 # on_failure(ctx, error)，每次尝试失败时调用
    use_checkpoint: bool = False

    @field_validator("dependencies")
    @classmethod
    def _dedupe_dependencies(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


# ======================================================================
# Run context
# 单次运行的共享上下文
# ======================================================================

class RunContext(BaseModel):
    """
    Shared state visible to every node's work function during one run.
    单次运行期间所有节点可见的共享状态。

    `outputs` is written only by the engine, and only for nodes that have
    succeeded; node bodies read it. Each node writes to its own key, so
    parallel writes never conflict.
    `outputs` 只由引擎写入（且只写成功节点的结果），节点只读。
    每个节点写入自己专属的 key，并行写入天然无冲突。
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    logger: Any = None                                        # GraphLogger；为 None 时由引擎补上默认实现
    outputs: dict[str, Any] = Field(default_factory=dict)     # node name -> 成功结果
    checkpoint: Any = None                                    # CheckpointStore，可选
    run_id: Optional[str] = None                              # 日志关联 ID
    config: dict[str, Any] = Field(default_factory=dict)      # 调用方透传的配置
    services: dict[str, Any] = Field(default_factory=dict)    # 调用方透传的服务对象

    def has_output(self, name: str) -> bool:
        return name in self.outputs

    def get_output(self, name: str, expected_type: type | None = None, default: Any = None) -> Any:
        """
        Typed accessor for a dependency's result.
        类型化读取依赖节点的结果，避免无检查的类型假设。

        Returns `default` when the node has no output yet. Raises TypeError when
        the stored value is not an instance of `expected_type`.
        """
        if name not in self.outputs:
            return default
        value = self.outputs[name]
        if expected_type is not None and not isinstance(value, expected_type):
            raise TypeError(
                f"Output of node '{name}' is {type(value).__name__}, expected {expected_type.__name__}"
            )
        return value


# ======================================================================
# Run options and results
# 运行选项与结果
# ======================================================================

class RunOptions(BaseModel):
    """
    Run-level knobs. Node-level policy fields override the defaults here.
    运行级参数。节点上的策略字段优先于此处的默认值。
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    concurrency: Optional[int] = None                 # 每层最大并行数，None 表示不限制
    timeout_ms: Optional[float] = Field(default=None, ge=0)
    default_retries: int = Field(default=0, ge=0)
    default_retry_delay_ms: float = Field(default=0, ge=0)
    default_exponential_backoff: bool = False
    allow_partial_success: bool = False
    should_retry_global: Optional[Callable[..., Any]] = None  # should_retry_global(error, node)，同步或异步

    # Observability hooks, sync or async. They never influence scheduling.
    # 可观测性回调（同步或异步均可），不影响调度决策。
    on_node_start: Optional[Callable[..., Any]] = None    # (name)
    on_node_success: Optional[Callable[..., Any]] = None  # (name, ms, result)
    on_node_failure: Optional[Callable[..., Any]] = None  # (name, error)
    on_node_skip: Optional[Callable[..., Any]] = None     # (name)

    @field_validator("concurrency")
    @classmethod
    def _clamp_concurrency(cls, value: int | None) -> int | None:
        if value is None:
            return None
        return max(1, value)

    @classmethod
    def from_config(cls, **overrides: Any) -> RunOptions:
        """
        Build options from config.py defaults; keyword arguments win.
        以 config.py 中的默认值构造选项，关键字参数优先。
        """
        values: dict[str, Any] = {
            "concurrency": config.GRAPH_CONCURRENCY or None,
            "timeout_ms": config.NODE_TIMEOUT_MS or None,
            "default_retries": config.DEFAULT_RETRIES,
            "default_retry_delay_ms": config.DEFAULT_RETRY_DELAY_MS,
            "default_exponential_backoff": config.DEFAULT_EXPONENTIAL_BACKOFF,
            "allow_partial_success": config.ALLOW_PARTIAL_SUCCESS,
        }
        values.update(overrides)
        return cls(**values)


class NodeOutcome(BaseModel):
    """Terminal outcome of one node invocation, produced by NodeRunner."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    status: NodeStatus
    result: Any = None
    error: Optional[BaseException] = None
    attempts: int = 0              # work() 实际被调用的次数
    from_checkpoint: bool = False
    used_fallback: bool = False
    elapsed_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == NodeStatus.SUCCEEDED


class RunResult(BaseModel):
    """
    Terminal artifact of one run. `succeeded`, `failed` and `skipped`
    partition the node set.
    单次运行的最终产物。succeeded / failed / skipped 三者恰好划分全部节点。
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    outputs: dict[str, Any] = Field(default_factory=dict)
    succeeded: set[str] = Field(default_factory=set)
    failed: dict[str, BaseException] = Field(default_factory=dict)  # node name -> 最终失败原因
    skipped: set[str] = Field(default_factory=set)
    statuses: dict[str, NodeStatus] = Field(default_factory=dict)
    attempts: dict[str, int] = Field(default_factory=dict)
    levels: list[list[str]] = Field(default_factory=list)
    run_id: Optional[str] = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failed and not self.skipped

    def summary(self) -> str:
        """
        One-line summary for logging, e.g. Run[4 nodes: 3 succeeded, 1 failed, 0 skipped]
        """
        total = len(self.succeeded) + len(self.failed) + len(self.skipped)
        return (
            f"Run[{total} nodes: {len(self.succeeded)} succeeded, "
            f"{len(self.failed)} failed, {len(self.skipped)} skipped]"
        )
