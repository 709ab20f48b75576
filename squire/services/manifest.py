"""
渠道清单解析

按行扫描 channel-rust-*.toml，提取架构列表与安装包路径。
这里只做前缀匹配与引号取值，不是 TOML 解析器。
"""

import posixpath
from typing import Iterable, List, Optional, Set
from urllib.parse import ParseResult, urlparse

import aiofiles
from loguru import logger

from squire.exceptions import ManifestParseError
from squire.models.config import RUSTLANG_ROOT_URL

TARGET_PREFIX = "target = "
URL_PREFIXES = ("url", "xz_url")
DEFAULT_PORTS = {"http": 80, "https": 443}


def _quoted_value(line: str) -> Optional[str]:
    """取第一个双引号之后的内容，并去掉结尾的双引号"""
    _, quote, rest = line.partition('"')
    if not quote:
        return None
    return rest.rstrip('"')


def _origin(parsed: ParseResult) -> str:
    """scheme://host[:port]，scheme 与 host 小写，省略默认端口"""
    scheme = parsed.scheme.lower()
    host = parsed.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = parsed.port
    if port is None or DEFAULT_PORTS.get(scheme) == port:
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def _resolve_path(path: str) -> str:
    """消除 "." 与 ".." 段，结果总是以单个 "/" 开头"""
    resolved = posixpath.normpath("/" + path.lstrip("/"))
    return "/" + resolved.lstrip("/")


def extract_architectures(text: str) -> Set[str]:
    """
    提取清单中出现的全部架构

    Args:
        text: 清单内容

    Returns:
        架构集合（去重，无序）
    """
    architectures = set()
    for line in text.splitlines():
        line = line.strip()
        if not line.startswith(TARGET_PREFIX):
            continue
        value = _quoted_value(line)
        if value:
            architectures.add(value)
    return architectures


def extract_package_paths(
    text: str,
    allowed_architectures: Iterable[str],
    origin: str = RUSTLANG_ROOT_URL,
) -> List[str]:
    """
    提取属于指定架构的安装包路径

    Args:
        text: 清单内容
        allowed_architectures: 允许的架构，URL 包含其中任意一个即保留
        origin: 工具链源地址，源不一致的 URL 会被丢弃

    Returns:
        去掉源地址后的路径列表，保持清单中的出现顺序
    """
    architectures = list(allowed_architectures)
    expected_origin = _origin(urlparse(origin))
    paths = []
    for line in text.splitlines():
        line = line.strip()
        if not line.startswith(URL_PREFIXES):
            continue

        value = _quoted_value(line)
        if not value or not any(arch in value for arch in architectures):
            continue

        try:
            parsed = urlparse(value)
            value_origin = _origin(parsed)
        except ValueError:
            parsed = None
        if parsed is None or not parsed.scheme or not parsed.hostname:
            logger.warning(f"[清单] 跳过无法解析的 URL: {value}")
            continue

        if value_origin != expected_origin:
            logger.warning(
                f"[清单] 跳过源地址不是 {origin} 的 URL: {value}"
            )
            continue

        paths.append(_resolve_path(parsed.path))
    return paths


async def read_manifest(path: str) -> str:
    """
    读取已下载的清单文件

    Raises:
        ManifestParseError: 文件不存在或无法读取
    """
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            return await f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestParseError(
            f"无法读取清单: {path}",
            context={"path": path, "error": str(e)},
        ) from e
