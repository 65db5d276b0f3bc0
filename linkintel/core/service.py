"""
OSINT 조회 서비스
=================

URL 하나 또는 자유 텍스트에서 찾은 URL들에 대해
두 위협 인텔리전스 소스를 병렬 조회하고 결과를 통합합니다.

- phish.sinking.yachts: 실시간 호스트 조회
- URLhaus: 벌크 피드 캐시 조회

한 소스의 실패는 다른 소스를 중단시키지 않으며, 소스별 오류로 기록됩니다.
잘못된 입력만 ok=False 결과가 됩니다.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from linkintel.analyzers.phish_feed import SOURCE_NAME as PHISH_SOURCE
from linkintel.analyzers.phish_feed import PhishFeedClient
from linkintel.analyzers.urlhaus_feed import ERROR_SOURCE_NAME as URLHAUS_SOURCE
from linkintel.analyzers.urlhaus_feed import UrlhausFeedCache
from linkintel.core.config import FeedConfig
from linkintel.utils.http_client import HttpFetcher
from linkintel.utils.url_tools import extract_urls, host_key, normalize_url

logger = logging.getLogger(__name__)

INVALID_URL_MESSAGE = "Enter a valid URL (example: https://example.com)."
LOOKUP_FAILED_MESSAGE = "Lookup failed"


# ============================================================
# 결과 데이터 클래스
# ============================================================

@dataclass
class SourceResult:
    """
    소스별 조회 결과

    성공 시 value에 소스 결과를, 실패 시 error에 메시지를 담습니다.
    """
    source: str
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def from_outcome(cls, source: str, outcome: Any) -> "SourceResult":
        """gather(return_exceptions=True) 결과 변환"""
        if isinstance(outcome, Exception):
            return cls(source=source, error=str(outcome) or LOOKUP_FAILED_MESSAGE)
        return cls(source=source, value=outcome)

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"source": self.source, "error": self.error}
        return self.value.to_dict()


@dataclass
class InspectionResult:
    """URL 하나의 통합 조회 결과"""
    ok: bool
    host: Optional[str] = None
    normalized_url: Optional[str] = None
    sources: dict[str, SourceResult] = field(default_factory=dict)
    fetched_at: Optional[float] = None
    error: Optional[str] = None
    url: Optional[str] = None

    @property
    def flagged(self) -> bool:
        """어느 한 소스라도 악성으로 판정했는지"""
        phish = self.sources.get("phishFeed")
        urlhaus = self.sources.get("urlhaus")
        return bool(
            (phish is not None and phish.ok and phish.value.flagged)
            or (urlhaus is not None and urlhaus.ok and urlhaus.value.listed)
        )

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            data: dict[str, Any] = {"ok": False, "error": self.error}
            if self.url is not None:
                data["url"] = self.url
            return data
        return {
            "ok": True,
            "host": self.host,
            "normalizedUrl": self.normalized_url,
            "sources": {name: result.to_dict() for name, result in self.sources.items()},
            "fetchedAt": self.fetched_at,
        }


@dataclass
class TextInspectionResult:
    """텍스트 일괄 조회 결과"""
    urls: list[InspectionResult] = field(default_factory=list)
    truncated: bool = False
    found: int = 0
    ok: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "urls": [result.to_dict() for result in self.urls],
            "truncated": self.truncated,
            "found": self.found,
        }


# ============================================================
# 조회 서비스
# ============================================================

class OsintService:
    """
    두 위협 인텔리전스 소스를 통합하는 조회 서비스

    사용 예:
        async with OsintService(FeedConfig()) as service:
            result = await service.inspect_url("example.com/login")
            print(result.to_dict())
    """

    def __init__(
        self,
        config: Optional[FeedConfig] = None,
        phish_client: Optional[PhishFeedClient] = None,
        urlhaus_cache: Optional[UrlhausFeedCache] = None,
        fetcher: Optional[HttpFetcher] = None,
    ) -> None:
        self.config = config or FeedConfig()

        # 두 소스가 하나의 HTTP 세션을 공유
        self._fetcher = fetcher or HttpFetcher(
            timeout=self.config.request_timeout,
            user_agent=self.config.user_agent,
        )
        self.phish_client = phish_client or PhishFeedClient(self.config, self._fetcher)
        self.urlhaus = urlhaus_cache or UrlhausFeedCache(self.config, self._fetcher)

        logger.info(
            "OsintService 초기화: 피드 TTL %.0fs, 타임아웃 %.1fs",
            self.config.feed_ttl_seconds, self.config.request_timeout,
        )

    async def __aenter__(self) -> "OsintService":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """HTTP 세션 종료"""
        await self._fetcher.close()

    # ============================
    # URL 조회
    # ============================

    async def inspect_url(self, raw_url: str) -> InspectionResult:
        """
        URL 하나를 두 소스에서 동시에 조회

        Args:
            raw_url: 사용자가 입력한 URL (스킴 생략 가능)

        Returns:
            InspectionResult. 입력이 URL이 아니면 ok=False.
        """
        normalized = normalize_url(raw_url)
        if normalized is None:
            return InspectionResult(ok=False, error=INVALID_URL_MESSAGE)

        host = host_key(normalized)

        phish_outcome, urlhaus_outcome = await asyncio.gather(
            self.phish_client.check_host(normalized),
            self.urlhaus.check(normalized),
            return_exceptions=True,
        )

        sources = {
            "phishFeed": SourceResult.from_outcome(PHISH_SOURCE, phish_outcome),
            "urlhaus": SourceResult.from_outcome(URLHAUS_SOURCE, urlhaus_outcome),
        }
        for name, result in sources.items():
            if not result.ok:
                logger.warning("[%s] 조회 실패: %s (%s)", name, normalized[:80], result.error)

        result = InspectionResult(
            ok=True,
            host=host,
            normalized_url=normalized,
            sources=sources,
            fetched_at=time.time(),
        )
        logger.info(
            "URL 조회 완료: %s → %s",
            normalized[:80], "악성 의심" if result.flagged else "미탐지",
        )
        return result

    # ============================
    # 텍스트 조회
    # ============================

    async def inspect_text(self, text: str) -> TextInspectionResult:
        """
        텍스트에서 URL을 추출하여 병렬 조회

        최대 max_text_urls 개만 조회하며, 개별 URL의 예외는
        해당 URL의 ok=False 결과로 바뀝니다.

        Args:
            text: 자유 형식 텍스트

        Returns:
            TextInspectionResult (추출 순서 유지)
        """
        urls = extract_urls(text)
        limited = urls[: self.config.max_text_urls]

        logger.info("텍스트 조회 시작: URL %d건 발견, %d건 조회", len(urls), len(limited))

        results = await asyncio.gather(*(self._inspect_guarded(url) for url in limited))

        return TextInspectionResult(
            urls=list(results),
            truncated=len(urls) > len(limited),
            found=len(urls),
        )

    async def _inspect_guarded(self, url: str) -> InspectionResult:
        """개별 URL 조회 (예외를 결과로 변환)"""
        try:
            return await self.inspect_url(url)
        except Exception as e:
            logger.error("URL 조회 오류: %s (%s)", url[:80], e)
            return InspectionResult(
                ok=False,
                error=str(e) or LOOKUP_FAILED_MESSAGE,
                url=url,
            )

    def __repr__(self) -> str:
        return f"OsintService(urlhaus={self.urlhaus!r})"
