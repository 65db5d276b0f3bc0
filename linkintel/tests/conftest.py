"""
pytest 공용 fixture 모듈
========================

모든 테스트에서 공유하는 fixture를 정의합니다.

fixture 목록:
- feed_config: 테스트용 FeedConfig (외부 호스트 대신 가짜 주소 사용)
- sample_feed: URLhaus CSV 피드 샘플
- make_fetcher: URL별로 응답을 돌려주는 모의 HttpFetcher 팩토리
"""

from __future__ import annotations

from typing import Any, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from linkintel.core.config import FeedConfig
from linkintel.utils.http_client import HttpFetcher

PHISH_BASE = "https://phish.test"
FEED_URL = "https://feeds.test/downloads/csv_online/"

SAMPLE_FEED = """\
################################################################
# abuse.ch URLhaus Database Dump (CSV - online URLs only)      #
# Last updated: 2026-10-18 09:00:00 (UTC)                      #
#                                                              #
# id,dateadded,url,url_status,last_online,threat,tags,urlhaus_link,reporter
################################################################
"3001","2026-10-01 10:00:00","http://bad.example/a","online","2026-10-18 09:00:00","malware_download","elf,mozi","https://urlhaus.abuse.ch/url/3001/","reporter1"
"3002","2026-10-01 10:05:00","http://bad.example/b.exe","online","","","exe","https://urlhaus.abuse.ch/url/3002/","reporter2"
"3003","2026-10-01 10:10:00","http://www.Evil.test/Login/","online","2026-10-18 08:00:00","phishing","","https://urlhaus.abuse.ch/url/3003/","reporter3"
"3004","broken line"
"3005","2026-10-01 10:20:00","not a url at all","online","","malware_download","","https://urlhaus.abuse.ch/url/3005/","reporter5"

"""


# ============================================================
# 설정 fixture
# ============================================================

@pytest.fixture
def feed_config() -> FeedConfig:
    """테스트용 FeedConfig (기본 제한값 유지)"""
    return FeedConfig(
        phish_api_url=PHISH_BASE,
        urlhaus_feed_url=FEED_URL,
        request_timeout=8.0,
        feed_ttl_seconds=900,
        max_text_urls=6,
        max_matches=5,
    )


@pytest.fixture
def sample_feed() -> str:
    """URLhaus CSV 피드 샘플 (주석, 빈 줄, 깨진 줄 포함)"""
    return SAMPLE_FEED


# ============================================================
# 모의 HTTP fixture
# ============================================================

Response = Any  # str | BaseException | Callable[[str], str]


@pytest.fixture
def make_fetcher() -> Callable[..., MagicMock]:
    """
    모의 HttpFetcher 팩토리

    phish/feed 인자:
    - 문자열: 응답 본문
    - 예외 인스턴스: 호출 시 발생
    - callable: 요청 URL을 받아 본문 반환
    """

    def _factory(phish: Optional[Response] = "false", feed: Optional[Response] = SAMPLE_FEED) -> MagicMock:
        async def fetch_text(url: str, source: str, timeout: Optional[float] = None) -> str:
            target = phish if url.startswith(PHISH_BASE) else feed
            if isinstance(target, BaseException):
                raise target
            if callable(target):
                return target(url)
            return target

        fetcher = MagicMock(spec=HttpFetcher)
        fetcher.fetch_text = AsyncMock(side_effect=fetch_text)
        fetcher.close = AsyncMock()
        return fetcher

    return _factory


def feed_calls(fetcher: MagicMock) -> int:
    """피드 URL 요청 횟수"""
    return sum(1 for call in fetcher.fetch_text.await_args_list if call.args[0] == FEED_URL)


def phish_calls(fetcher: MagicMock) -> list[str]:
    """실시간 API 요청 URL 목록"""
    return [
        call.args[0]
        for call in fetcher.fetch_text.await_args_list
        if call.args[0].startswith(PHISH_BASE)
    ]
