"""
Utils Module
通用工具函数
"""
from .logger import setup_logger, setup_project_logging, get_logger
from .exceptions import (
    ErrorKind,
    DirectorError,
    ConfigurationError,
    OracleError,
    OracleUnavailable,
    OracleTransient,
    MalformedOracleOutput,
    BudgetExceeded,
    classify_oracle_error,
)

__all__ = [
    "setup_logger",
    "setup_project_logging",
    "get_logger",
    "ErrorKind",
    "DirectorError",
    "ConfigurationError",
    "OracleError",
    "OracleUnavailable",
    "OracleTransient",
    "MalformedOracleOutput",
    "BudgetExceeded",
    "classify_oracle_error",
]
