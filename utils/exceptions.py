"""
Custom Exceptions
自定义异常类
"""
from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced in logs, warnings and metrics."""

    ORACLE_UNAVAILABLE = "oracle_unavailable"
    ORACLE_TRANSIENT = "oracle_transient"
    MALFORMED_ORACLE_OUTPUT = "malformed_oracle_output"
    BUDGET_EXCEEDED = "budget_exceeded"
    QUALITY_EXHAUSTED = "quality_exhausted"
    CONFIGURATION = "configuration"


class DirectorError(Exception):
    """Deck Director 基础异常类"""

    kind: ErrorKind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(DirectorError):
    """配置错误"""
    pass


class OracleError(DirectorError):
    """生成式服务调用错误"""

    def __init__(self, message: str, oracle: str = None, model: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.oracle = oracle
        self.model = model


class OracleUnavailable(OracleError):
    """服务不可用 (缺少凭据或配置), 不重试"""

    kind = ErrorKind.ORACLE_UNAVAILABLE


class OracleTransient(OracleError):
    """瞬时错误 (限流/5xx/超时), 可重试"""

    kind = ErrorKind.ORACLE_TRANSIENT


class MalformedOracleOutput(OracleError):
    """服务返回内容无法解析"""

    kind = ErrorKind.MALFORMED_ORACLE_OUTPUT


class BudgetExceeded(DirectorError):
    """修复循环超出时间或成本预算"""

    kind = ErrorKind.BUDGET_EXCEEDED

    def __init__(self, message: str, budget: str = None, spent: float = 0.0, limit: float = 0.0):
        super().__init__(message, {"budget": budget, "spent": spent, "limit": limit})
        self.budget = budget
        self.spent = spent
        self.limit = limit


_TRANSIENT_MARKERS = (
    "429",
    "500",
    "502",
    "503",
    "504",
    "rate limit",
    "resource_exhausted",
    "resource exhausted",
    "overloaded",
    "unavailable",
    "timeout",
    "timed out",
    "deadline",
    "connection",
)

_UNAVAILABLE_MARKERS = (
    "api key",
    "api_key",
    "credential",
    "unauthorized",
    "401",
    "403",
    "permission",
    "not installed",
)


def classify_oracle_error(exc: BaseException, oracle: str = None, model: str = None) -> OracleError:
    """
    Convert an arbitrary client exception into the oracle error taxonomy.

    Already-classified errors pass through unchanged.
    """
    if isinstance(exc, OracleError):
        return exc
    text = f"{type(exc).__name__}: {exc}".lower()
    status = getattr(exc, "status_code", None) or getattr(getattr(exc, "response", None), "status_code", None)
    if status is not None:
        text = f"{status} {text}"
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return OracleTransient(str(exc) or type(exc).__name__, oracle=oracle, model=model)
    if isinstance(exc, (ValueError, KeyError, TypeError)) and not any(m in text for m in _TRANSIENT_MARKERS):
        return MalformedOracleOutput(str(exc) or type(exc).__name__, oracle=oracle, model=model)
    if any(marker in text for marker in _UNAVAILABLE_MARKERS):
        return OracleUnavailable(str(exc), oracle=oracle, model=model)
    if any(marker in text for marker in _TRANSIENT_MARKERS):
        return OracleTransient(str(exc), oracle=oracle, model=model)
    return OracleTransient(str(exc) or type(exc).__name__, oracle=oracle, model=model)
