"""
HTTP 텍스트 조회
================

공유 aiohttp 세션 위에서 제한 시간이 있는 GET 요청을 수행합니다.

- 세션 지연 초기화 / 비동기 컨텍스트 매니저
- 요청별 총 제한 시간 (aiohttp.ClientTimeout)
- 2xx 이외 상태 → RemoteStatusError
- 제한 시간 초과 → RemoteTimeoutError
- 재시도 없음
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from linkintel.core.errors import FeedError, RemoteStatusError, RemoteTimeoutError

logger = logging.getLogger(__name__)


class HttpFetcher:
    """
    제한 시간이 있는 HTTP GET 클라이언트

    여러 소스 클라이언트가 하나의 인스턴스(세션)를 공유합니다.

    사용 예:
        async with HttpFetcher(timeout=8.0) as fetcher:
            body = await fetcher.fetch_text("https://example.com", source="example")
    """

    def __init__(
        self,
        timeout: float = 8.0,
        user_agent: str = "linkintel/0.1.0",
    ) -> None:
        self.timeout = timeout
        self._user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "HttpFetcher":
        await self._ensure_session()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """aiohttp 세션 종료"""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        logger.debug("HttpFetcher 세션 종료")

    async def fetch_text(
        self,
        url: str,
        source: str,
        timeout: Optional[float] = None,
    ) -> str:
        """
        GET 요청 후 응답 본문 전체를 텍스트로 반환

        Args:
            url: 요청 URL
            source: 오류 메시지에 쓸 소스 이름
            timeout: 제한 시간 (초). None이면 기본값.

        Raises:
            RemoteTimeoutError: 제한 시간 초과
            RemoteStatusError: 2xx 이외 응답
            FeedError: 그 밖의 전송 오류
        """
        limit = self.timeout if timeout is None else timeout
        session = await self._ensure_session()

        try:
            async with session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=limit),
            ) as response:
                if not 200 <= response.status < 300:
                    logger.warning("[%s] 응답 코드 %d: %s", source, response.status, url)
                    raise RemoteStatusError(source, response.status, response.reason)
                # 잘못된 바이트는 대체 문자로 바꿔 나머지 줄을 살림
                return await response.text(errors="replace")

        except asyncio.TimeoutError as e:
            logger.warning("[%s] 타임아웃 (%.1fs): %s", source, limit, url)
            raise RemoteTimeoutError(source, limit) from e
        except aiohttp.ClientError as e:
            logger.warning("[%s] 요청 실패: %s (%s)", source, url, e)
            raise FeedError(source, f"{source} request failed: {e}") from e

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """aiohttp 세션 보장 (없으면 생성)"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self._user_agent},
            )
        return self._session
