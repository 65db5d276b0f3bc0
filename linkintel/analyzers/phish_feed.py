"""
phish.sinking.yachts 실시간 조회
================================

호스트 이름 하나에 대해 피싱 도메인 여부를 묻는 실시간 API 클라이언트.
응답 본문은 "true" 또는 "false" 텍스트입니다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

from linkintel.core.config import FeedConfig
from linkintel.core.errors import InvalidURLError
from linkintel.utils.http_client import HttpFetcher
from linkintel.utils.url_tools import hostname_of, normalize_url

logger = logging.getLogger(__name__)

SOURCE_NAME = "phish.sinking.yachts"


@dataclass(frozen=True)
class PhishFeedVerdict:
    """실시간 조회 결과"""
    source: str
    flagged: bool

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "flagged": self.flagged}


class PhishFeedClient:
    """
    실시간 피싱 도메인 API 클라이언트

    GET {base}/v2/check/{hostname} 을 한 번 호출합니다.
    호스트 이름의 www. 접두사는 그대로 전달합니다. 재시도하지 않습니다.
    """

    def __init__(
        self,
        config: Optional[FeedConfig] = None,
        fetcher: Optional[HttpFetcher] = None,
    ) -> None:
        self.config = config or FeedConfig()
        self._fetcher = fetcher or HttpFetcher(
            timeout=self.config.request_timeout,
            user_agent=self.config.user_agent,
        )
        self._base_url = self.config.phish_api_url.rstrip("/")

    def build_url(self, hostname: str) -> str:
        """조회 엔드포인트 URL"""
        return f"{self._base_url}/v2/check/{quote(hostname, safe='')}"

    async def check_host(self, url: str) -> PhishFeedVerdict:
        """
        URL의 호스트가 피싱 도메인으로 등록되어 있는지 조회

        Args:
            url: 검사할 URL (스킴 생략 가능)

        Returns:
            PhishFeedVerdict

        Raises:
            InvalidURLError: URL 해석 실패
            RemoteTimeoutError / RemoteStatusError: 원격 호출 실패
        """
        normalized = normalize_url(url)
        if normalized is None:
            raise InvalidURLError(url)

        hostname = hostname_of(normalized)
        if hostname is None:
            raise InvalidURLError(url)

        body = await self._fetcher.fetch_text(
            self.build_url(hostname),
            source=SOURCE_NAME,
            timeout=self.config.request_timeout,
        )
        flagged = body.strip().lower() == "true"

        if flagged:
            logger.info("[PhishFeed] 피싱 도메인 탐지: %s", hostname)
        else:
            logger.debug("[PhishFeed] 미등록: %s", hostname)
        return PhishFeedVerdict(source=SOURCE_NAME, flagged=flagged)
