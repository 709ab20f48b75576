"""
Squire 下载层

包含下载决策、制品下载、任务队列、并发调度与文件校验。
"""

from squire.download.fetcher import ArtifactFetcher
from squire.download.policy import should_fetch
from squire.download.queue import MirrorQueue
from squire.download.scheduler import MirrorScheduler
from squire.download.verifier import ChecksumVerifier

__all__ = [
    "ArtifactFetcher",
    "should_fetch",
    "MirrorQueue",
    "MirrorScheduler",
    "ChecksumVerifier",
]
