"""
linkintel URL 평판 조회 서비스
==============================

두 공개 위협 인텔리전스 피드의 신호를 모아
URL (직접 입력 또는 텍스트에서 추출) 의 악성 가능성을 판정합니다.

- phish.sinking.yachts: 실시간 피싱 도메인 조회
- URLhaus: 온라인 악성 URL 벌크 피드 (메모리 캐시)
"""

__version__ = "0.1.0"
__description__ = "오픈소스 위협 인텔리전스 기반 URL 평판 조회"

from linkintel.core.config import ServiceConfig
from linkintel.core.service import OsintService

__all__ = [
    "OsintService",
    "ServiceConfig",
    "__version__",
]
