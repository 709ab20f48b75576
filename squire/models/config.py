"""
配置模型

定义镜像任务的配置项、默认值与校验规则。
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List

from squire.exceptions import ConfigParseError, ConfigValidationError

RUSTLANG_ROOT_URL = "https://static.rust-lang.org"
CRATES_ROOT_URL = "https://static.crates.io"
CRATES_INDEX_URL = "https://github.com/rust-lang/crates.io-index"
DEFAULT_USER_AGENT = "squire (https://github.com/oskarbraten/squire)"

# stable|beta|nightly|<major.minor>|<major.minor.patch>|<YYYY-MM-DD>
CHANNEL_PATTERN = re.compile(
    r"^(stable|beta|nightly|\d+\.\d+(\.\d+)?|\d{4}-\d{2}-\d{2})$"
)


class Stage(Enum):
    """镜像阶段"""

    RUSTUP = "rustup"
    DIST = "dist"
    CRATES = "crates"


def _as_list(value: Any, key: str) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    raise ConfigParseError(f"配置项 '{key}' 必须是字符串或列表", context={key: value})


@dataclass
class MirrorConfig:
    """镜像配置"""

    output_dir: str
    channels: List[str] = field(default_factory=lambda: ["stable"])
    targets: str = "x86_64"
    concurrency: int = 5
    validate_checksums: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    dist_origin: str = RUSTLANG_ROOT_URL
    crates_origin: str = CRATES_ROOT_URL
    index_url: str = CRATES_INDEX_URL
    connect_timeout: float = 30.0
    read_timeout: float = 300.0
    stages: List[Stage] = field(default_factory=lambda: list(Stage))

    @classmethod
    def from_dict(cls, data: dict) -> "MirrorConfig":
        """从字典创建配置，未给出的项使用默认值"""
        if not isinstance(data, dict):
            raise ConfigParseError("配置内容必须是一个映射")

        data = dict(data)
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ConfigParseError(
                f"未知的配置项: {', '.join(sorted(unknown))}",
                context={"unknown": sorted(unknown)},
            )

        if "output_dir" not in data:
            raise ConfigParseError("缺少配置项 'output_dir'")

        if "channels" in data:
            data["channels"] = _as_list(data["channels"], "channels")

        if "stages" in data:
            try:
                data["stages"] = [
                    Stage(s) for s in _as_list(data["stages"], "stages")
                ]
            except ValueError as e:
                raise ConfigParseError(f"无效的阶段: {e}") from e

        try:
            if "concurrency" in data:
                data["concurrency"] = int(data["concurrency"])
            for key in ("connect_timeout", "read_timeout"):
                if key in data:
                    data[key] = float(data[key])
        except (TypeError, ValueError) as e:
            raise ConfigParseError(f"配置项类型错误: {e}") from e

        if "validate_checksums" in data:
            data["validate_checksums"] = bool(data["validate_checksums"])

        return cls(**data)

    def validate(self) -> "MirrorConfig":
        """校验配置，返回自身以便链式调用"""
        if not self.output_dir:
            raise ConfigValidationError("output_dir 不能为空")

        if self.concurrency < 1:
            raise ConfigValidationError(
                "concurrency 必须是正整数",
                context={"concurrency": self.concurrency},
            )

        if not self.channels:
            raise ConfigValidationError("请至少配置一个 channel")

        for channel in self.channels:
            if not CHANNEL_PATTERN.match(channel):
                raise ConfigValidationError(
                    f"无效的 channel: {channel}",
                    context={"channel": channel},
                )

        try:
            re.compile(self.targets)
        except re.error as e:
            raise ConfigValidationError(
                f"targets 不是有效的正则表达式: {e}",
                context={"targets": self.targets},
            ) from e

        for key in ("dist_origin", "crates_origin"):
            origin = getattr(self, key)
            if not origin.startswith(("http://", "https://")) or origin.endswith("/"):
                raise ConfigValidationError(
                    f"{key} 必须是不带结尾 '/' 的 http(s) 源地址",
                    context={key: origin},
                )

        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ConfigValidationError("超时时间必须大于 0")

        return self

    @property
    def target_pattern(self) -> "re.Pattern[str]":
        return re.compile(self.targets)

    def stage_enabled(self, stage: Stage) -> bool:
        return stage in self.stages
