"""
下载任务队列

按本地路径去重，保证同一次运行中每个路径最多写入一次。
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Set

from squire.models.artifact import ArtifactDescriptor, OverwritePolicy


@dataclass(frozen=True)
class MirrorTask:
    """下载任务"""

    index: int
    descriptor: ArtifactDescriptor
    policy: OverwritePolicy


class MirrorQueue:
    """下载队列"""

    def __init__(self, maxsize: int = 0, seen: Optional[Set[str]] = None):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._paths: Set[str] = seen if seen is not None else set()  # 用于去重
        self._total_queued = 0

    async def put(
        self,
        descriptor: ArtifactDescriptor,
        policy: OverwritePolicy,
    ) -> bool:
        """
        添加任务到队列

        Returns:
            True 如果任务是新添加的，False 如果本地路径已在本次运行中出现
        """
        if descriptor.local_path in self._paths:
            return False

        self._paths.add(descriptor.local_path)
        self._total_queued += 1
        await self._queue.put(MirrorTask(self._total_queued, descriptor, policy))
        return True

    async def get(self) -> MirrorTask:
        """获取下一个任务"""
        return await self._queue.get()

    def task_done(self):
        """标记任务完成"""
        self._queue.task_done()

    async def join(self):
        """等待所有任务完成"""
        await self._queue.join()
