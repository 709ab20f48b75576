"""
镜像数据模型

定义待镜像的制品描述、覆盖策略、下载结果与统计。
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

DIGEST_SIZE = 32


def to_digest(value: Union[bytes, str]) -> bytes:
    """
    规范化 SHA-256 摘要

    Args:
        value: 32 字节原始摘要或 64 位十六进制字符串

    Returns:
        32 字节摘要
    """
    if isinstance(value, str):
        try:
            value = bytes.fromhex(value)
        except ValueError as e:
            raise ValueError(f"无效的十六进制摘要: {value!r}") from e
    if len(value) != DIGEST_SIZE:
        raise ValueError(f"摘要长度必须为 {DIGEST_SIZE} 字节，实际为 {len(value)}")
    return bytes(value)


class OverwriteMode(Enum):
    """覆盖模式"""

    ALWAYS = "always"
    MISSING = "missing"
    CHECKSUM = "checksum"


@dataclass(frozen=True)
class OverwritePolicy:
    """
    覆盖策略

    只有 CHECKSUM 模式携带预期摘要。
    """

    mode: OverwriteMode
    digest: Optional[bytes] = None

    def __post_init__(self):
        if self.mode is OverwriteMode.CHECKSUM:
            if self.digest is None:
                raise ValueError("CHECKSUM 策略需要预期摘要")
            object.__setattr__(self, "digest", to_digest(self.digest))
        elif self.digest is not None:
            raise ValueError(f"{self.mode.value} 策略不接受摘要")

    @classmethod
    def checksum(cls, digest: Union[bytes, str]) -> "OverwritePolicy":
        return cls(OverwriteMode.CHECKSUM, to_digest(digest))

    def __str__(self) -> str:
        if self.digest is not None:
            return f"{self.mode.value}:{self.digest.hex()}"
        return self.mode.value


ALWAYS_FETCH = OverwritePolicy(OverwriteMode.ALWAYS)
FETCH_IF_MISSING = OverwritePolicy(OverwriteMode.MISSING)


@dataclass(frozen=True)
class ArtifactDescriptor:
    """
    待镜像的单个制品

    remote_path 是以 "/" 开头的相对 URL 路径，local_path 由输出目录
    与 remote_path 拼接得到。
    """

    remote_path: str
    local_path: str
    expected_checksum: Optional[bytes] = None

    @classmethod
    def for_path(
        cls,
        output_dir: str,
        remote_path: str,
        expected_checksum: Optional[Union[bytes, str]] = None,
    ) -> "ArtifactDescriptor":
        """根据远程路径在输出目录下生成描述"""
        if not remote_path.startswith("/"):
            raise ValueError(f"远程路径必须以 '/' 开头: {remote_path}")
        local_path = os.path.join(output_dir, *remote_path.lstrip("/").split("/"))
        root = os.path.abspath(output_dir)
        resolved = os.path.abspath(local_path)
        if resolved == root or os.path.commonpath([root, resolved]) != root:
            raise ValueError(f"远程路径超出输出目录: {remote_path}")
        checksum = to_digest(expected_checksum) if expected_checksum else None
        return cls(remote_path, local_path, checksum)

    @property
    def name(self) -> str:
        return self.remote_path.rsplit("/", 1)[-1]


class FetchStatus(Enum):
    """下载结果类型"""

    WRITTEN = "written"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchOutcome:
    """单个制品的下载结果（仅用于日志与统计）"""

    status: FetchStatus
    descriptor: ArtifactDescriptor
    cause: Optional[BaseException] = None
    bytes_written: int = 0

    @classmethod
    def written(cls, descriptor: ArtifactDescriptor, size: int) -> "FetchOutcome":
        return cls(FetchStatus.WRITTEN, descriptor, bytes_written=size)

    @classmethod
    def skipped(cls, descriptor: ArtifactDescriptor) -> "FetchOutcome":
        return cls(FetchStatus.SKIPPED, descriptor)

    @classmethod
    def failed(
        cls, descriptor: ArtifactDescriptor, cause: BaseException
    ) -> "FetchOutcome":
        return cls(FetchStatus.FAILED, descriptor, cause=cause)

    @property
    def ok(self) -> bool:
        return self.status is not FetchStatus.FAILED


@dataclass
class MirrorStats:
    """下载统计"""

    total: int = 0
    written: int = 0
    skipped: int = 0
    failed: int = 0
    bytes_downloaded: int = 0

    def record(self, outcome: FetchOutcome) -> None:
        self.total += 1
        if outcome.status is FetchStatus.WRITTEN:
            self.written += 1
            self.bytes_downloaded += outcome.bytes_written
        elif outcome.status is FetchStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
