"""
코어 모듈
=========

조회 서비스, 설정, 오류 정의를 포함합니다.
"""

from linkintel.core.config import FeedConfig, ServerConfig, ServiceConfig
from linkintel.core.errors import (
    FeedError,
    InvalidURLError,
    RemoteStatusError,
    RemoteTimeoutError,
)
from linkintel.core.service import (
    InspectionResult,
    OsintService,
    SourceResult,
    TextInspectionResult,
)

__all__ = [
    "FeedConfig",
    "ServerConfig",
    "ServiceConfig",
    "FeedError",
    "InvalidURLError",
    "RemoteStatusError",
    "RemoteTimeoutError",
    "InspectionResult",
    "OsintService",
    "SourceResult",
    "TextInspectionResult",
]
