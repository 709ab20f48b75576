"""
Squire 服务层

包含渠道清单解析与包仓库索引。
"""

from squire.services.manifest import (
    extract_architectures,
    extract_package_paths,
    read_manifest,
)
from squire.services.registry_index import CrateVersion, RegistryIndex

__all__ = [
    "extract_architectures",
    "extract_package_paths",
    "read_manifest",
    "CrateVersion",
    "RegistryIndex",
]
