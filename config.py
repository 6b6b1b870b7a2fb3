"""
Configuration module for the graph runner.
Loads run defaults from environment variables or .env file.
图执行引擎配置模块。
从环境变量或 .env 文件加载运行默认值。
"""

import os
from dotenv import load_dotenv

load_dotenv()  # 自动读取项目根目录的 .env 文件（若存在），优先级低于系统环境变量

# --- Scheduling ---
# --- 调度参数 ---
GRAPH_CONCURRENCY = int(os.getenv("GRAPH_CONCURRENCY", "0"))  # 每个层级最多并行的节点数，0 表示不限制
NODE_TIMEOUT_MS = float(os.getenv("NODE_TIMEOUT_MS", "0"))    # 单节点单次尝试超时（毫秒），0 表示不设超时

# --- Resiliency defaults ---
# --- 重试默认值（节点未显式配置时使用）---
DEFAULT_RETRIES = int(os.getenv("DEFAULT_RETRIES", "0"))                  # 最大重试次数（不含首次尝试）
DEFAULT_RETRY_DELAY_MS = float(os.getenv("DEFAULT_RETRY_DELAY_MS", "0"))  # 重试基础间隔（毫秒）
DEFAULT_EXPONENTIAL_BACKOFF = os.getenv("DEFAULT_EXPONENTIAL_BACKOFF", "false").lower() == "true"  # 是否指数退避

# --- Failure policy ---
# --- 失败策略 ---
ALLOW_PARTIAL_SUCCESS = os.getenv("ALLOW_PARTIAL_SUCCESS", "false").lower() == "true"  # 失败时是否继续执行独立分支

# --- Logging ---
# --- 日志 ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()  # CLI 默认日志级别
