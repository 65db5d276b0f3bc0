"""
URLhaus 벌크 피드 캐시
======================

abuse.ch URLhaus 온라인 CSV 피드를 주기적으로 내려받아
정규화 URL 인덱스와 호스트 인덱스를 메모리에 유지합니다.

- 스냅샷 유효 기간 (기본 15분) 안에서는 네트워크 접근 없음
- 갱신은 동시에 하나만 수행 (single-flight), 대기 중인 호출은 같은 결과를 공유
- 스냅샷은 통째로 교체되며 부분적으로 수정되지 않음
- 갱신 실패 시 이전 스냅샷 유지, 대기 중인 모든 호출에 오류 전달
- 잘못된 피드 줄은 건너뜀 (전체 파싱은 중단되지 않음)

피드 형식 (따옴표로 감싼 CSV, # 주석 허용):
    "id","dateadded","url","url_status","last_online","threat","tags",...
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from linkintel.core.config import FeedConfig
from linkintel.core.errors import InvalidURLError
from linkintel.utils.http_client import HttpFetcher
from linkintel.utils.url_tools import host_key, normalize_url

logger = logging.getLogger(__name__)

SOURCE_NAME = "URLHaus (online feed)"
ERROR_SOURCE_NAME = "URLHaus"

# 필드 위치
_URL_FIELD = 2
_LAST_ONLINE_FIELD = 4
_THREAT_FIELD = 5
_MIN_FIELDS = 3

_FIELD_SEPARATOR = '","'
_DEFAULT_THREAT = "listed"


# ============================================================
# 데이터 클래스 정의
# ============================================================

class MatchType(str, Enum):
    """매칭 방식"""
    URL = "url"
    HOST = "host"


@dataclass(frozen=True)
class FeedEntry:
    """피드의 악성 URL 한 건"""
    url: str
    threat: str = _DEFAULT_THREAT
    last_online: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "threat": self.threat, "lastOnline": self.last_online}


@dataclass(frozen=True)
class MatchResult:
    """조회 매칭 결과"""
    entry: FeedEntry
    match_type: MatchType

    def to_dict(self) -> dict[str, Any]:
        return {**self.entry.to_dict(), "matchType": self.match_type.value}


@dataclass(frozen=True)
class CacheSnapshot:
    """피드 인덱스 스냅샷 (설치 후 불변)"""
    url_map: Mapping[str, FeedEntry]
    host_map: Mapping[str, tuple[FeedEntry, ...]]
    refreshed_at: float                      # 갱신 시각 (epoch 초)
    loaded_at: float = field(default=0.0)    # 갱신 시각 (monotonic)

    def age(self) -> float:
        """스냅샷 경과 시간 (초, 항상 0 이상)"""
        return max(0.0, time.monotonic() - self.loaded_at)


@dataclass(frozen=True)
class UrlhausVerdict:
    """URLhaus 조회 결과"""
    source: str
    refreshed_at: float
    listed: bool
    matches: tuple[MatchResult, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "refreshedAt": self.refreshed_at,
            "listed": self.listed,
            "matches": [m.to_dict() for m in self.matches],
        }


# ============================================================
# 피드 파싱
# ============================================================

def _split_record(line: str) -> list[str]:
    """앞뒤 따옴표 하나씩 제거 후 '","' 기준 분할"""
    if line.startswith('"'):
        line = line[1:]
    if line.endswith('"'):
        line = line[:-1]
    return line.split(_FIELD_SEPARATOR)


def _field(fields: list[str], index: int) -> str:
    return fields[index] if index < len(fields) else ""


def parse_feed(
    body: str,
    max_host_entries: int = 5,
) -> tuple[dict[str, FeedEntry], dict[str, tuple[FeedEntry, ...]]]:
    """
    피드 본문을 URL 인덱스와 호스트 인덱스로 변환

    Args:
        body: CSV 피드 본문
        max_host_entries: 호스트당 보관할 최대 항목 수 (먼저 나온 항목 우선)

    Returns:
        (url_map, host_map)
    """
    url_map: dict[str, FeedEntry] = {}
    host_lists: dict[str, list[FeedEntry]] = {}
    skipped = 0

    for raw_line in body.split("\n"):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        fields = _split_record(line)
        if len(fields) < _MIN_FIELDS:
            skipped += 1
            continue

        normalized = normalize_url(fields[_URL_FIELD])
        if normalized is None:
            skipped += 1
            continue

        entry = FeedEntry(
            url=normalized,
            threat=_field(fields, _THREAT_FIELD) or _DEFAULT_THREAT,
            last_online=_field(fields, _LAST_ONLINE_FIELD) or None,
        )
        url_map[normalized] = entry

        host = host_key(normalized)
        if host is None:
            continue
        bucket = host_lists.setdefault(host, [])
        if len(bucket) < max_host_entries:
            bucket.append(entry)

    if skipped:
        logger.debug("[URLhaus] 해석할 수 없는 줄 %d건 건너뜀", skipped)

    host_map = {host: tuple(entries) for host, entries in host_lists.items()}
    return url_map, host_map


# ============================================================
# 피드 캐시
# ============================================================

def _consume_exception(task: "asyncio.Future[CacheSnapshot]") -> None:
    """모든 대기자가 취소된 뒤 실패한 갱신의 예외를 회수"""
    if not task.cancelled():
        task.exception()


class UrlhausFeedCache:
    """
    URLhaus 피드 캐시

    서비스 시작 시 한 번 생성하여 조회 서비스에 주입합니다.

    사용 예:
        cache = UrlhausFeedCache(FeedConfig())
        verdict = await cache.check("http://bad.example/payload.exe")
        print(verdict.listed, [m.match_type for m in verdict.matches])
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

        # 현재 스냅샷과 진행 중인 갱신 작업
        self._snapshot: Optional[CacheSnapshot] = None
        self._loading: Optional[asyncio.Task] = None

        # 통계
        self.refresh_count = 0
        self.failure_count = 0

    # ============================
    # 상태
    # ============================

    @property
    def snapshot(self) -> Optional[CacheSnapshot]:
        """현재 설치된 스냅샷 (없으면 None)"""
        return self._snapshot

    @property
    def refreshing(self) -> bool:
        """갱신 진행 여부"""
        return self._loading is not None

    def age(self) -> Optional[float]:
        """스냅샷 경과 시간 (초). 스냅샷이 없으면 None."""
        if self._snapshot is None:
            return None
        return self._snapshot.age()

    def is_fresh(self) -> bool:
        """스냅샷이 유효 기간 안에 있는지"""
        age = self.age()
        return age is not None and age < self.config.feed_ttl_seconds

    # ============================
    # 로드 / 갱신
    # ============================

    async def load(self) -> CacheSnapshot:
        """
        유효한 스냅샷 반환

        유효 기간 안이면 즉시 반환하고, 아니면 진행 중인 갱신에 합류하거나
        새 갱신을 시작합니다. 한 호출자의 취소가 공유 갱신을 취소하지 않도록
        shield로 감쌉니다.

        Raises:
            FeedError: 갱신 실패 (대기 중인 모든 호출자에게 전달)
        """
        if self.is_fresh():
            return self._snapshot

        if self._loading is None:
            self._loading = asyncio.ensure_future(self._refresh())
            self._loading.add_done_callback(_consume_exception)
        else:
            logger.debug("[URLhaus] 진행 중인 갱신에 합류")
        return await asyncio.shield(self._loading)

    async def _refresh(self) -> CacheSnapshot:
        """피드를 내려받아 새 스냅샷 설치"""
        logger.info("[URLhaus] 피드 갱신 시작: %s", self.config.urlhaus_feed_url)
        try:
            body = await self._fetcher.fetch_text(
                self.config.urlhaus_feed_url,
                source=ERROR_SOURCE_NAME,
                timeout=self.config.request_timeout,
            )
            url_map, host_map = parse_feed(body, self.config.max_matches)

            snapshot = CacheSnapshot(
                url_map=url_map,
                host_map=host_map,
                refreshed_at=time.time(),
                loaded_at=time.monotonic(),
            )
            self._snapshot = snapshot
            self.refresh_count += 1

            logger.info(
                "[URLhaus] 피드 갱신 완료: URL %d건, 호스트 %d건",
                len(url_map), len(host_map),
            )
            return snapshot

        except Exception as e:
            self.failure_count += 1
            if self._snapshot is not None:
                logger.warning(
                    "[URLhaus] 피드 갱신 실패, 이전 스냅샷 유지 (%.0f초 경과): %s",
                    self._snapshot.age(), e,
                )
            else:
                logger.warning("[URLhaus] 피드 갱신 실패, 사용 가능한 스냅샷 없음: %s", e)
            raise
        finally:
            self._loading = None

    # ============================
    # 조회
    # ============================

    async def check(self, url: str) -> UrlhausVerdict:
        """
        URL의 피드 등록 여부 조회

        정확히 일치하는 URL을 먼저, 같은 호스트의 항목을 그 뒤에 두고
        최대 max_matches 건으로 자릅니다.

        Raises:
            InvalidURLError: URL 해석 실패
            FeedError: 피드 갱신 실패
        """
        normalized = normalize_url(url)
        if normalized is None:
            raise InvalidURLError(url)

        host = host_key(normalized)
        snapshot = await self.load()

        matches: list[MatchResult] = []
        direct = snapshot.url_map.get(normalized)
        if direct is not None:
            matches.append(MatchResult(direct, MatchType.URL))
        if host:
            matches.extend(
                MatchResult(entry, MatchType.HOST)
                for entry in snapshot.host_map.get(host, ())
            )
        matches = matches[: self.config.max_matches]

        return UrlhausVerdict(
            source=SOURCE_NAME,
            refreshed_at=snapshot.refreshed_at,
            listed=bool(matches),
            matches=tuple(matches),
        )

    def __repr__(self) -> str:
        return (
            f"UrlhausFeedCache(fresh={self.is_fresh()}, "
            f"refreshes={self.refresh_count}, failures={self.failure_count})"
        )
