"""
制品下载器

负责单个制品的下载决策、网络请求与原子写入。
"""

import asyncio
import os
from typing import Optional

import aiofiles
import aiohttp
from loguru import logger

from squire.download.policy import should_fetch
from squire.download.verifier import ChecksumVerifier
from squire.exceptions import ArtifactIOError, FetchError, NetworkError
from squire.models.artifact import ArtifactDescriptor, FetchOutcome, OverwritePolicy
from squire.models.config import (
    CRATES_ROOT_URL,
    DEFAULT_USER_AGENT,
    RUSTLANG_ROOT_URL,
)

CRATE_SUFFIX = ".crate"
PART_SUFFIX = ".part"


class ArtifactFetcher:
    """制品下载器"""

    def __init__(
        self,
        dist_origin: str = RUSTLANG_ROOT_URL,
        crates_origin: str = CRATES_ROOT_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[aiohttp.ClientSession] = None,
        verifier=ChecksumVerifier,
        connect_timeout: float = 30.0,
        read_timeout: float = 300.0,
        connection_limit: int = 100,
        chunk_size: int = 64 * 1024,
    ):
        self.dist_origin = dist_origin
        self.crates_origin = crates_origin
        self.user_agent = user_agent
        self.verifier = verifier
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.connection_limit = connection_limit
        self.chunk_size = chunk_size
        self._session = session
        self._owned_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self.user_agent},
                timeout=aiohttp.ClientTimeout(
                    sock_connect=self.connect_timeout,
                    sock_read=self.read_timeout,
                ),
                connector=aiohttp.TCPConnector(limit=self.connection_limit),
            )
        return self._session

    def resolve_url(self, remote_path: str) -> str:
        """.crate 结尾的路径指向包仓库源，其余指向工具链源"""
        if remote_path.endswith(CRATE_SUFFIX):
            return f"{self.crates_origin}{remote_path}"
        return f"{self.dist_origin}{remote_path}"

    async def fetch(
        self, descriptor: ArtifactDescriptor, policy: OverwritePolicy
    ) -> FetchOutcome:
        """
        按策略下载单个制品

        网络错误和本地文件错误都不会抛出，而是返回 Failed 结果。
        """
        path_exists = self.verifier.exists(descriptor.local_path)
        if not await should_fetch(
            path_exists, policy, descriptor.local_path, self.verifier
        ):
            logger.debug(f"[跳过] '{descriptor.remote_path}' 已是最新")
            return FetchOutcome.skipped(descriptor)

        url = self.resolve_url(descriptor.remote_path)
        logger.info(f"[下载] {url}")

        try:
            size = await self._download(url, descriptor.local_path)
        except FetchError as e:
            logger.warning(f"[错误] {descriptor.name} 下载失败: {url}")
            logger.debug(f"[错误] {e.to_dict()}")
            return FetchOutcome.failed(descriptor, e)

        logger.debug(f"[完成] 写入 {descriptor.local_path} ({size} 字节)")
        return FetchOutcome.written(descriptor, size)

    async def _download(self, url: str, file_path: str) -> int:
        """流式写入临时文件，完成后原子替换目标文件"""
        part_path = file_path + PART_SUFFIX
        try:
            async with self.session.get(url) as response:
                if not 200 <= response.status < 300:
                    raise NetworkError(
                        f"HTTP {response.status}",
                        context={"url": url},
                        status=response.status,
                    )

                parent = os.path.dirname(file_path)
                if parent:
                    os.makedirs(parent, exist_ok=True)

                written = 0
                async with aiofiles.open(part_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.chunk_size):
                        await f.write(chunk)
                        written += len(chunk)

            os.replace(part_path, file_path)
            return written

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._discard(part_path)
            raise NetworkError(
                f"请求失败: {e.__class__.__name__}: {e}", context={"url": url}
            ) from e
        except OSError as e:
            self._discard(part_path)
            raise ArtifactIOError(
                f"写入文件失败: {e}", context={"url": url, "path": file_path}
            ) from e

    @staticmethod
    def _discard(part_path: str) -> None:
        """清理不完整的临时文件"""
        try:
            os.remove(part_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug(f"[清理] 无法删除临时文件 {part_path}: {e}")

    async def close(self):
        """关闭下载器"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        """异步上下文管理器入口"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()
