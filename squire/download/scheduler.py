"""
镜像调度器

以有界并发执行一批下载任务，单个任务失败不影响其他任务。
"""

import asyncio
from typing import Dict, Iterable, List, Optional, Set, Tuple

from loguru import logger

from squire.download.fetcher import ArtifactFetcher
from squire.download.queue import MirrorQueue, MirrorTask
from squire.models.artifact import (
    ArtifactDescriptor,
    FetchOutcome,
    MirrorStats,
    OverwritePolicy,
)

MirrorItem = Tuple[ArtifactDescriptor, OverwritePolicy]


class MirrorScheduler:
    """
    镜像调度器

    一个实例对应一次镜像运行：同一本地路径在实例生命周期内只会被处理一次。
    """

    def __init__(self, fetcher: ArtifactFetcher, concurrency_limit: int = 5):
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit 必须是正整数")
        self.fetcher = fetcher
        self.concurrency_limit = concurrency_limit
        self.stats = MirrorStats()
        self._seen_paths: Set[str] = set()
        self._first_outcomes: Dict[str, FetchOutcome] = {}
        self._failed: List[str] = []

    async def run(
        self,
        items: Iterable[MirrorItem],
        total: Optional[int] = None,
        label: Optional[str] = None,
    ) -> List[FetchOutcome]:
        """
        执行一批下载任务，等待全部完成后返回

        Args:
            items: (描述, 策略) 序列，可以是惰性迭代器
            total: 任务总数（仅用于进度日志）
            label: 进度日志前缀，为 None 时不输出进度

        Returns:
            每个输入对应一个结果，顺序不保证与输入一致
        """
        queue = MirrorQueue(maxsize=self.concurrency_limit * 2, seen=self._seen_paths)
        outcomes: List[FetchOutcome] = []

        workers = [
            asyncio.create_task(
                self._worker(queue, outcomes, total, label), name=f"mirror-{i}"
            )
            for i in range(self.concurrency_limit)
        ]

        try:
            for descriptor, policy in items:
                if not await queue.put(descriptor, policy):
                    self._record(self._repeat(descriptor), outcomes, repeated=True)
            await queue.join()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        return outcomes

    async def fetch_one(
        self, descriptor: ArtifactDescriptor, policy: OverwritePolicy
    ) -> FetchOutcome:
        """下载单个制品（同样遵守本次运行的路径去重）"""
        outcomes = await self.run([(descriptor, policy)])
        return outcomes[0]

    async def _worker(
        self,
        queue: MirrorQueue,
        outcomes: List[FetchOutcome],
        total: Optional[int],
        label: Optional[str],
    ):
        """下载工作协程"""
        while True:
            task = await queue.get()
            try:
                if label is not None:
                    progress = f"{task.index}/{total}" if total else str(task.index)
                    logger.info(f"[进度] {label} – {progress}")
                outcome = await self._attempt(task)
                self._record(outcome, outcomes)
            finally:
                queue.task_done()

    async def _attempt(self, task: MirrorTask) -> FetchOutcome:
        try:
            return await self.fetcher.fetch(task.descriptor, task.policy)
        except Exception as e:
            # 工作协程不应该因为单个任务失败而退出
            logger.error(f"[错误] 处理 '{task.descriptor.remote_path}' 时发生意外: {e}")
            return FetchOutcome.failed(task.descriptor, e)

    def _repeat(self, descriptor: ArtifactDescriptor) -> FetchOutcome:
        """
        本次运行中已出现过的路径不再下载

        先前的尝试失败时沿用其失败结果，否则视为跳过。
        """
        first = self._first_outcomes.get(descriptor.local_path)
        if first is not None and not first.ok:
            logger.debug(
                f"[去重] '{descriptor.remote_path}' 本次运行中先前的尝试已失败，不再重试"
            )
            return FetchOutcome.failed(descriptor, first.cause)
        logger.debug(f"[去重] '{descriptor.remote_path}' 本次运行中已尝试过")
        return FetchOutcome.skipped(descriptor)

    def _record(
        self,
        outcome: FetchOutcome,
        outcomes: List[FetchOutcome],
        repeated: bool = False,
    ) -> None:
        outcomes.append(outcome)
        self.stats.record(outcome)
        if repeated:
            return
        self._first_outcomes[outcome.descriptor.local_path] = outcome
        if not outcome.ok:
            self._failed.append(outcome.descriptor.remote_path)

    def get_stats(self) -> MirrorStats:
        """获取累计下载统计"""
        return self.stats

    def get_failed(self) -> List[str]:
        """获取失败的制品列表"""
        return self._failed.copy()
