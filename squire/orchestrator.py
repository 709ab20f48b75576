"""
主协调器

按顺序执行架构发现、rustup、工具链渠道与 crates 仓库的镜像阶段。
"""

import os
from dataclasses import dataclass, field
from typing import Awaitable, Iterable, Iterator, List, Optional, Tuple

from loguru import logger

from squire.download import ArtifactFetcher, MirrorScheduler
from squire.exceptions import ArtifactIOError, IndexSyncError, ManifestParseError
from squire.models import (
    ALWAYS_FETCH,
    FETCH_IF_MISSING,
    ArtifactDescriptor,
    FetchOutcome,
    MirrorConfig,
    MirrorStats,
    OverwritePolicy,
    Stage,
)
from squire.services import (
    RegistryIndex,
    extract_architectures,
    extract_package_paths,
    read_manifest,
)

RUSTUP_MANIFEST = "/rustup/release-stable.toml"
SIDE_FILE_SUFFIXES = (".asc", ".sha256")


def channel_manifest_path(channel: str) -> str:
    return f"/dist/channel-rust-{channel}.toml"


def rustup_init_path(arch: str) -> str:
    ext = ".exe" if "windows" in arch else ""
    return f"/rustup/dist/{arch}/rustup-init{ext}"


def with_side_files(path: str) -> List[str]:
    """工具链文件及其签名、校验和文件"""
    return [path] + [f"{path}{suffix}" for suffix in SIDE_FILE_SUFFIXES]


@dataclass
class StageReport:
    """单个阶段的执行结果"""

    name: str
    stats: MirrorStats = field(default_factory=MirrorStats)
    aborted: bool = False
    error: Optional[str] = None


@dataclass
class MirrorReport:
    """一次镜像运行的汇总"""

    architectures: List[str] = field(default_factory=list)
    stages: List[StageReport] = field(default_factory=list)

    @property
    def aborted_stages(self) -> List[str]:
        return [stage.name for stage in self.stages if stage.aborted]

    @property
    def ok(self) -> bool:
        return not self.aborted_stages


class MirrorOrchestrator:
    """Squire 主协调器"""

    def __init__(
        self,
        config: MirrorConfig,
        fetcher: Optional[ArtifactFetcher] = None,
        scheduler: Optional[MirrorScheduler] = None,
        index: Optional[RegistryIndex] = None,
    ):
        self.config = config
        self.fetcher = fetcher or ArtifactFetcher(
            dist_origin=config.dist_origin,
            crates_origin=config.crates_origin,
            user_agent=config.user_agent,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            connection_limit=config.concurrency,
        )
        self.scheduler = scheduler or MirrorScheduler(self.fetcher, config.concurrency)
        self.index = index or RegistryIndex(
            os.path.join(config.output_dir, "index"), config.index_url
        )
        self.report = MirrorReport()

    async def run(self) -> MirrorReport:
        """运行完整的镜像流程"""
        logger.info(f"开始镜像任务，输出目录: {self.config.output_dir}")

        try:
            self._prepare_output_dir()

            if self.config.stage_enabled(Stage.RUSTUP) or self.config.stage_enabled(
                Stage.DIST
            ):
                self.report.architectures = await self.discover_architectures()

            if self.config.stage_enabled(Stage.RUSTUP):
                await self._run_stage(Stage.RUSTUP.value, self.mirror_rustup())

            if self.config.stage_enabled(Stage.DIST):
                for channel in self.config.channels:
                    await self._run_stage(
                        f"{Stage.DIST.value}:{channel}", self.mirror_dist(channel)
                    )

            if self.config.stage_enabled(Stage.CRATES):
                await self._run_stage(Stage.CRATES.value, self.mirror_crates())

        finally:
            await self.fetcher.close()

        total = self.scheduler.get_stats()
        logger.success(
            f"镜像完成: {total.written} 下载, {total.skipped} 跳过, {total.failed} 失败"
        )
        for remote_path in self.scheduler.get_failed():
            logger.warning(f"[失败] {remote_path}")
        return self.report

    def _prepare_output_dir(self):
        """确保输出目录存在且可写"""
        output_dir = self.config.output_dir
        try:
            os.makedirs(output_dir, exist_ok=True)
        except OSError as e:
            raise ArtifactIOError(
                f"无法创建输出目录: {output_dir}", context={"error": str(e)}
            ) from e
        if not os.access(output_dir, os.W_OK):
            raise ArtifactIOError(f"输出目录不可写: {output_dir}")

    def _descriptor(
        self, remote_path: str, checksum: Optional[bytes] = None
    ) -> ArtifactDescriptor:
        return ArtifactDescriptor.for_path(self.config.output_dir, remote_path, checksum)

    def _items(
        self, remote_paths: Iterable[str], policy: OverwritePolicy
    ) -> Iterator[Tuple[ArtifactDescriptor, OverwritePolicy]]:
        """为远程路径生成下载任务，跳过会落到输出目录之外的路径"""
        for remote_path in remote_paths:
            try:
                descriptor = self._descriptor(remote_path)
            except ValueError as e:
                logger.warning(f"[跳过] {e}")
                continue
            yield descriptor, policy

    async def _run_stage(self, name: str, stage: Awaitable[List[FetchOutcome]]):
        """执行一个阶段；清单或索引不可用时只中止该阶段"""
        report = StageReport(name)
        logger.info(f"[阶段] {name} 开始")
        try:
            outcomes = await stage
        except (ManifestParseError, IndexSyncError) as e:
            report.aborted = True
            report.error = str(e)
            logger.error(f"[阶段] {name} 已中止: {e}")
        else:
            for outcome in outcomes:
                report.stats.record(outcome)
            logger.success(
                f"[阶段] {name} 完成: {report.stats.written} 下载, "
                f"{report.stats.skipped} 跳过, {report.stats.failed} 失败"
            )
        self.report.stages.append(report)

    async def discover_architectures(self) -> List[str]:
        """
        从 stable 渠道清单中发现全部架构，并按 targets 正则过滤

        Raises:
            ManifestParseError: 清单下载后仍不可读
        """
        logger.info("获取 Rust 工具链 [channel-stable] 支持的全部架构...")
        descriptor = self._descriptor(channel_manifest_path("stable"))
        await self.scheduler.fetch_one(descriptor, ALWAYS_FETCH)

        text = await read_manifest(descriptor.local_path)
        pattern = self.config.target_pattern
        architectures = sorted(
            arch for arch in extract_architectures(text) if pattern.search(arch)
        )

        if architectures:
            logger.info(f"已选择的架构 [channel-stable]: {', '.join(architectures)}")
        else:
            logger.warning(f"没有与 '{self.config.targets}' 匹配的架构")
        return architectures

    async def mirror_rustup(self) -> List[FetchOutcome]:
        """下载 rustup 清单与各架构的 rustup-init"""
        logger.info("下载 rustup 可执行文件...")
        outcomes = [
            await self.scheduler.fetch_one(self._descriptor(RUSTUP_MANIFEST), ALWAYS_FETCH)
        ]

        items = list(
            self._items(
                (rustup_init_path(arch) for arch in self.report.architectures),
                ALWAYS_FETCH,
            )
        )
        outcomes += await self.scheduler.run(items, total=len(items), label="rustup")
        return outcomes

    async def mirror_dist(self, channel: str) -> List[FetchOutcome]:
        """下载渠道清单，并镜像清单中属于已选架构的安装包"""
        logger.info(f"下载 Rust 工具链 [channel-{channel}]...")
        manifest_path = channel_manifest_path(channel)
        outcomes = await self.scheduler.run(
            (self._descriptor(path), ALWAYS_FETCH)
            for path in with_side_files(manifest_path)
        )

        text = await read_manifest(self._descriptor(manifest_path).local_path)
        package_paths = extract_package_paths(
            text, self.report.architectures, self.config.dist_origin
        )
        logger.info(f"[channel-{channel}] 共 {len(package_paths)} 个安装包")

        items = list(
            self._items(
                (
                    path
                    for package_path in package_paths
                    for path in with_side_files(package_path)
                ),
                FETCH_IF_MISSING,
            )
        )
        outcomes += await self.scheduler.run(
            items, total=len(items), label=f"channel-{channel}"
        )
        return outcomes

    async def mirror_crates(self) -> List[FetchOutcome]:
        """同步 crates.io-index 并镜像 crate 文件"""
        logger.info("获取/更新 crates.io-index...")
        await self.index.retrieve_or_update()

        validate = self.config.validate_checksums

        def items():
            for version in self.index.mirror_versions():
                if validate:
                    policy = OverwritePolicy.checksum(version.checksum)
                else:
                    policy = FETCH_IF_MISSING
                try:
                    descriptor = self._descriptor(
                        version.remote_path, version.checksum
                    )
                except ValueError as e:
                    logger.warning(f"[跳过] {e}")
                    continue
                yield descriptor, policy

        return await self.scheduler.run(items(), label="crates")
