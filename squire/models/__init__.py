"""
Squire 数据模型包

包含制品模型和配置模型定义。
"""

from squire.models.artifact import (
    ALWAYS_FETCH,
    FETCH_IF_MISSING,
    ArtifactDescriptor,
    FetchOutcome,
    FetchStatus,
    MirrorStats,
    OverwriteMode,
    OverwritePolicy,
    to_digest,
)
from squire.models.config import (
    CRATES_INDEX_URL,
    CRATES_ROOT_URL,
    DEFAULT_USER_AGENT,
    RUSTLANG_ROOT_URL,
    MirrorConfig,
    Stage,
)

__all__ = [
    # 制品模型
    "ALWAYS_FETCH",
    "FETCH_IF_MISSING",
    "ArtifactDescriptor",
    "FetchOutcome",
    "FetchStatus",
    "MirrorStats",
    "OverwriteMode",
    "OverwritePolicy",
    "to_digest",
    # 配置模型
    "CRATES_INDEX_URL",
    "CRATES_ROOT_URL",
    "DEFAULT_USER_AGENT",
    "RUSTLANG_ROOT_URL",
    "MirrorConfig",
    "Stage",
]
