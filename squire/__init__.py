"""
Squire

离线镜像 Rust 工具链、rustup 安装器与 crates.io 包仓库。
"""

__version__ = "0.2.0"
