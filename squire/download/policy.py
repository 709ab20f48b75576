"""
下载决策

根据本地文件状态与覆盖策略判断是否需要重新下载。
"""

from typing import Optional

from loguru import logger

from squire.download.verifier import ChecksumVerifier
from squire.exceptions import ArtifactIOError
from squire.models.artifact import OverwriteMode, OverwritePolicy


async def should_fetch(
    path_exists: bool,
    policy: OverwritePolicy,
    local_path: Optional[str] = None,
    verifier=ChecksumVerifier,
) -> bool:
    """
    判断是否需要下载

    先检查存在性，只有 CHECKSUM 策略且文件存在时才读取文件内容。

    Args:
        path_exists: 本地文件是否存在
        policy: 覆盖策略
        local_path: 本地文件路径（CHECKSUM 策略必需）
        verifier: 校验器，需提供 ``verify(path, digest)`` 协程

    Returns:
        True 表示需要下载
    """
    if policy.mode is OverwriteMode.ALWAYS:
        return True

    if not path_exists:
        return True

    if policy.mode is OverwriteMode.MISSING:
        return False

    if local_path is None:
        raise ValueError("CHECKSUM 策略需要 local_path")

    try:
        current = await verifier.verify(local_path, policy.digest)
    except ArtifactIOError as e:
        logger.debug(f"[校验] 无法读取 '{local_path}'，将重新下载: {e}")
        return True

    if not current:
        logger.debug(f"[校验] '{local_path}' 校验不匹配，将重新下载")
    return not current
