"""
피드 소스 모듈
==============

URL 평판 신호를 제공하는 외부 소스 클라이언트 모음.

- PhishFeedClient: phish.sinking.yachts 실시간 호스트 조회
- UrlhausFeedCache: URLhaus 벌크 피드 캐시
"""

from linkintel.analyzers.phish_feed import PhishFeedClient, PhishFeedVerdict
from linkintel.analyzers.urlhaus_feed import (
    CacheSnapshot,
    FeedEntry,
    MatchResult,
    MatchType,
    UrlhausFeedCache,
    UrlhausVerdict,
)

__all__ = [
    "PhishFeedClient",
    "PhishFeedVerdict",
    "CacheSnapshot",
    "FeedEntry",
    "MatchResult",
    "MatchType",
    "UrlhausFeedCache",
    "UrlhausVerdict",
]
