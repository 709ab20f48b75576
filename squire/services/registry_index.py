"""
包仓库索引

通过 git 获取或更新 crates.io-index，并枚举需要镜像的 crate 版本。
"""

import asyncio
import json
import os
from dataclasses import dataclass
from typing import Iterator, List, Sequence

from loguru import logger

from squire.exceptions import IndexSyncError
from squire.models.artifact import to_digest
from squire.models.config import CRATES_INDEX_URL

# 索引根目录下不是 crate 元数据的文件
INDEX_METADATA_FILES = {"config.json", "README.md", "LICENSE-APACHE", "LICENSE-MIT"}


@dataclass(frozen=True)
class CrateVersion:
    """索引中的单个 crate 版本"""

    name: str
    version: str
    checksum: bytes
    yanked: bool = False

    @classmethod
    def from_index_line(cls, line: str) -> "CrateVersion":
        data = json.loads(line)
        return cls(
            name=data["name"],
            version=data["vers"],
            checksum=to_digest(data["cksum"]),
            yanked=bool(data.get("yanked", False)),
        )

    @property
    def remote_path(self) -> str:
        return f"/crates/{self.name}/{self.name}-{self.version}.crate"


class RegistryIndex:
    """crates.io-index 的本地副本"""

    def __init__(self, path: str, url: str = CRATES_INDEX_URL, git: str = "git"):
        self.path = path
        self.url = url
        self.git = git

    @property
    def is_cloned(self) -> bool:
        return os.path.isdir(os.path.join(self.path, ".git"))

    async def retrieve_or_update(self) -> None:
        """不存在则克隆，存在则快进更新"""
        if self.is_cloned:
            logger.info(f"[索引] 更新 {self.path}")
            await self._git("-C", self.path, "pull", "--ff-only", "--quiet")
        else:
            logger.info(f"[索引] 克隆 {self.url} -> {self.path}")
            parent = os.path.dirname(os.path.abspath(self.path))
            try:
                os.makedirs(parent, exist_ok=True)
            except OSError as e:
                raise IndexSyncError(
                    f"无法创建索引目录: {e}", context={"path": self.path}
                ) from e
            await self._git("clone", "--quiet", self.url, self.path)

    async def _git(self, *args: str) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                self.git,
                *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise IndexSyncError(
                f"无法执行 git: {e}", context={"git": self.git}
            ) from e

        _, stderr = await process.communicate()
        if process.returncode != 0:
            raise IndexSyncError(
                f"git 命令执行失败 (退出码 {process.returncode})",
                context={
                    "args": list(args),
                    "stderr": stderr.decode(errors="replace").strip(),
                },
            )

    def _crate_files(self) -> Iterator[str]:
        for root, dirs, files in os.walk(self.path):
            # 跳过 .git 等隐藏目录
            dirs[:] = sorted(d for d in dirs if not d.startswith("."))
            for name in sorted(files):
                if name.startswith("."):
                    continue
                if root == self.path and name in INDEX_METADATA_FILES:
                    continue
                yield os.path.join(root, name)

    def _read_versions(self, file_path: str) -> List[CrateVersion]:
        versions = []
        with open(file_path, encoding="utf-8") as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    versions.append(CrateVersion.from_index_line(line))
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning(
                        f"[索引] 跳过无效条目 {file_path}:{lineno}: {e}"
                    )
        return versions

    def crates(self) -> Iterator[Sequence[CrateVersion]]:
        """逐个 crate 返回其全部版本"""
        for file_path in self._crate_files():
            try:
                versions = self._read_versions(file_path)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"[索引] 无法读取 {file_path}: {e}")
                continue
            if versions:
                yield versions

    def mirror_versions(self) -> Iterator[CrateVersion]:
        """只有两个及以上版本的 crate 才会被镜像，已撤回的版本会被跳过"""
        for versions in self.crates():
            if len(versions) < 2:
                continue
            for version in versions:
                if not version.yanked:
                    yield version
