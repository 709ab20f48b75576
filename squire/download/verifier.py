"""
文件校验器

实现 SHA-256 校验与文件存在性检查。
"""

import hashlib
import os
from typing import Union

import aiofiles

from squire.exceptions import ArtifactIOError
from squire.models.artifact import to_digest


class ChecksumVerifier:
    """文件校验器"""

    chunk_size = 64 * 1024

    @staticmethod
    async def digest_file(file_path: str) -> bytes:
        """
        计算文件的 SHA-256 摘要

        Args:
            file_path: 文件路径

        Returns:
            32 字节摘要

        Raises:
            ArtifactIOError: 文件不存在或无法读取
        """
        sha256 = hashlib.sha256()
        try:
            async with aiofiles.open(file_path, "rb") as f:
                while True:
                    data = await f.read(ChecksumVerifier.chunk_size)
                    if not data:
                        break
                    sha256.update(data)
        except OSError as e:
            raise ArtifactIOError(
                f"无法读取文件: {file_path}",
                context={"path": file_path, "error": str(e)},
            ) from e
        return sha256.digest()

    @staticmethod
    async def verify(file_path: str, expected: Union[bytes, str]) -> bool:
        """
        校验文件的 SHA-256 是否与预期一致

        Args:
            file_path: 文件路径
            expected: 预期摘要（32 字节或十六进制字符串）

        Returns:
            是否匹配
        """
        current = await ChecksumVerifier.digest_file(file_path)
        return current == to_digest(expected)

    @staticmethod
    def exists(file_path: str) -> bool:
        """检查文件是否存在"""
        return os.path.exists(file_path)
