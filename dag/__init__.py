"""
DAG module - Core engine for dependency-aware graph execution.
DAG 模块 —— 依赖感知的图执行核心引擎。

Components:
  - graph.py:         validation and level planning (Kahn's algorithm)
  - state_machine.py: node lifecycle state machine
  - runner.py:        single-node execution (checkpoint/timeout/retry/fallback/compensate)
  - aggregator.py:    RunResult assembly and observability hooks
  - executor.py:      level-by-level execution with bounded concurrency
  - checkpoint.py:    in-memory checkpoint store
  - log.py:           default logger collaborator over stdlib logging
  - errors.py:        exception taxonomy

模块组成：
  - graph.py:         依赖校验与层级规划（Kahn 算法）
  - state_machine.py: 节点生命周期状态机（强制合法状态转移）
  - runner.py:        单节点执行（检查点/超时/重试/fallback/补偿）
  - aggregator.py:    RunResult 汇总与可观测性回调
  - executor.py:      按层执行并限制并发
  - checkpoint.py:    内存检查点存储
  - log.py:           基于标准库 logging 的默认日志协作方
  - errors.py:        异常体系
"""

from dag.checkpoint import InMemoryCheckpointStore
from dag.errors import (
    CompensationFailure,
    CycleDetectedError,
    DuplicateNodeError,
    FallbackFailure,
    GraphError,
    GraphValidationError,
    InvalidTransitionError,
    NodeError,
    NodeTimeoutError,
    UnknownDependencyError,
    WorkFailure,
)
from dag.executor import GraphExecutor, run_graph, run_graph_detailed
from dag.graph import NodeGraph, topological_groups, validate_dag
from dag.log import StdLogger
from dag.runner import NodeRunner
from dag.state_machine import NodeStateMachine
