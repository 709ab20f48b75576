"""
Squire 统一异常体系

提供分层的异常结构，支持错误代码、上下文信息和 JSON 序列化。
"""

from typing import Any, Dict, Optional


class SquireError(Exception):
    """Squire 基础异常类"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self._get_default_code()
        self.context = context or {}

    def _get_default_code(self) -> str:
        """获取默认错误代码"""
        return "E000"

    def to_dict(self) -> Dict[str, Any]:
        """将异常转换为字典格式"""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigError(SquireError):
    """配置相关错误"""

    def _get_default_code(self) -> str:
        return "E100"


class ConfigParseError(ConfigError):
    """配置解析错误"""

    def _get_default_code(self) -> str:
        return "E101"


class ConfigValidationError(ConfigError):
    """配置验证错误"""

    def _get_default_code(self) -> str:
        return "E102"


class FetchError(SquireError):
    """下载相关错误"""

    def _get_default_code(self) -> str:
        return "E300"


class NetworkError(FetchError):
    """网络错误（连接失败、超时、非 2xx 状态码）"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message, code, context)
        self.status = status
        if status is not None:
            self.context["status_code"] = status

    def _get_default_code(self) -> str:
        return "E301"


class ArtifactIOError(FetchError):
    """本地文件读写错误"""

    def _get_default_code(self) -> str:
        return "E303"


class ManifestParseError(SquireError):
    """清单文件缺失或无法读取"""

    def _get_default_code(self) -> str:
        return "E400"


class IndexSyncError(SquireError):
    """仓库索引同步错误"""

    def _get_default_code(self) -> str:
        return "E500"


__all__ = [
    # 基础异常
    "SquireError",
    # 配置异常
    "ConfigError",
    "ConfigParseError",
    "ConfigValidationError",
    # 下载异常
    "FetchError",
    "NetworkError",
    "ArtifactIOError",
    # 清单 / 索引异常
    "ManifestParseError",
    "IndexSyncError",
]
