"""
CLI 模块

命令行接口实现。
"""

import asyncio
import json
from pathlib import Path
from typing import Optional, Sequence

import click
import toml
import yaml
from loguru import logger

from squire import __version__
from squire.exceptions import ConfigParseError, SquireError
from squire.logger import setup_logger
from squire.models import MirrorConfig, Stage
from squire.orchestrator import MirrorOrchestrator, MirrorReport


def load_config(config_path: str) -> dict:
    """加载配置文件（toml / json / yaml）"""
    path = Path(config_path)

    if not path.exists():
        raise ConfigParseError(f"配置文件不存在: {config_path}")

    suffix = path.suffix.lower()

    try:
        if suffix == ".toml":
            data = toml.load(config_path)
        elif suffix == ".json":
            data = json.loads(path.read_text())
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(path.read_text())
        else:
            raise ConfigParseError(f"不支持的配置文件格式: {suffix}")
    except (toml.TomlDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(
            f"配置文件解析失败: {e}", context={"path": config_path}
        ) from e

    return data or {}


def build_config(
    output_directory: Optional[str] = None,
    config_path: Optional[str] = None,
    channels: Sequence[str] = (),
    targets: Optional[str] = None,
    concurrency: Optional[int] = None,
    validate_checksums: bool = False,
    user_agent: Optional[str] = None,
    skip_stages: Sequence[Stage] = (),
) -> MirrorConfig:
    """合并配置文件与命令行参数，命令行参数优先"""
    data = load_config(config_path) if config_path else {}

    overrides = {
        "output_dir": output_directory,
        "channels": list(channels) or None,
        "targets": targets,
        "concurrency": concurrency,
        "user_agent": user_agent,
    }
    data.update({k: v for k, v in overrides.items() if v is not None})
    if validate_checksums:
        data["validate_checksums"] = True

    if "output_dir" not in data:
        raise ConfigParseError("请指定输出目录 (OUTPUT_DIRECTORY 或配置文件中的 output_dir)")

    config = MirrorConfig.from_dict(data)
    if skip_stages:
        config.stages = [s for s in config.stages if s not in skip_stages]
    return config.validate()


async def run_async(config: MirrorConfig) -> MirrorReport:
    """异步运行"""
    orchestrator = MirrorOrchestrator(config)
    return await orchestrator.run()


@click.command()
@click.argument("output_directory", type=click.Path(file_okay=False), required=False)
@click.option(
    "-d",
    "--channels",
    multiple=True,
    help="工具链渠道、版本或日期 (stable|beta|nightly|<major.minor>|<major.minor.patch>|<YYYY-MM-DD>)，可多次使用",
)
@click.option(
    "-t",
    "--targets",
    help="只包含匹配该正则表达式的工具链与 rustup 架构 [默认: x86_64]",
)
@click.option(
    "-c",
    "--concurrency",
    type=click.IntRange(min=1),
    help="最大并发 HTTP 请求数 [默认: 5]",
)
@click.option(
    "--validate-checksums",
    is_flag=True,
    help="对已存在的 crate 文件进行 SHA-256 校验",
)
@click.option("--user-agent", help="HTTP 请求的 User-Agent")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="配置文件路径 (toml/json/yaml)",
)
@click.option("--skip-rustup", is_flag=True, help="跳过 rustup 阶段")
@click.option("--skip-dist", is_flag=True, help="跳过工具链阶段")
@click.option("--skip-crates", is_flag=True, help="跳过 crates 阶段")
@click.option("-v", "--verbose", is_flag=True, help="启用调试日志")
@click.version_option(version=__version__)
def main(
    output_directory: Optional[str],
    channels: tuple,
    targets: Optional[str],
    concurrency: Optional[int],
    validate_checksums: bool,
    user_agent: Optional[str],
    config_path: Optional[str],
    skip_rustup: bool,
    skip_dist: bool,
    skip_crates: bool,
    verbose: bool,
):
    """Squire - 下载 Rust 工具链、crates 仓库与 rustup 以供离线使用"""
    setup_logger(verbose=verbose)

    skip_stages = [
        stage
        for stage, skipped in (
            (Stage.RUSTUP, skip_rustup),
            (Stage.DIST, skip_dist),
            (Stage.CRATES, skip_crates),
        )
        if skipped
    ]

    try:
        config = build_config(
            output_directory=output_directory,
            config_path=config_path,
            channels=channels,
            targets=targets,
            concurrency=concurrency,
            validate_checksums=validate_checksums,
            user_agent=user_agent,
            skip_stages=skip_stages,
        )
        report = asyncio.run(run_async(config))
    except SquireError as e:
        logger.error(f"镜像失败: {e}")
        raise click.ClickException(str(e))

    if not report.ok:
        raise click.ClickException(
            f"以下阶段已中止: {', '.join(report.aborted_stages)}"
        )


if __name__ == "__main__":
    main()
