"""URLhaus 피드 캐시 테스트"""
import asyncio
import gc
from unittest.mock import patch

import pytest

from conftest import FEED_URL, feed_calls
from linkintel.analyzers.urlhaus_feed import (
    SOURCE_NAME,
    FeedEntry,
    MatchType,
    UrlhausFeedCache,
    parse_feed,
)
from linkintel.core.errors import InvalidURLError, RemoteStatusError, RemoteTimeoutError


def _feed_line(idx: int, url: str, last_online: str = "", threat: str = "malware_download") -> str:
    return (
        f'"{idx}","2026-10-01 00:00:00","{url}","online","{last_online}","{threat}",'
        f'"","https://urlhaus.abuse.ch/url/{idx}/","tester"'
    )


# === 파싱 ===

class TestParseFeed:
    """피드 파싱 테스트"""

    def test_valid_lines_indexed(self, sample_feed):
        url_map, host_map = parse_feed(sample_feed)

        assert set(url_map) == {
            "http://bad.example/a",
            "http://bad.example/b.exe",
            "http://www.evil.test/login",
        }
        assert url_map["http://bad.example/a"] == FeedEntry(
            url="http://bad.example/a",
            threat="malware_download",
            last_online="2026-10-18 09:00:00",
        )

    def test_empty_fields_get_defaults(self, sample_feed):
        url_map, _ = parse_feed(sample_feed)
        entry = url_map["http://bad.example/b.exe"]
        assert entry.threat == "listed"
        assert entry.last_online is None

    def test_host_index_strips_www(self, sample_feed):
        _, host_map = parse_feed(sample_feed)
        assert [e.url for e in host_map["bad.example"]] == [
            "http://bad.example/a",
            "http://bad.example/b.exe",
        ]
        assert [e.url for e in host_map["evil.test"]] == ["http://www.evil.test/login"]
        assert "www.evil.test" not in host_map

    def test_host_list_capped_first_seen(self):
        """호스트 항목 7개 중 먼저 나온 5개만 보관"""
        body = "\n".join(_feed_line(i, f"http://many.example/p{i}") for i in range(7))
        url_map, host_map = parse_feed(body, max_host_entries=5)

        assert len(url_map) == 7
        assert [e.url for e in host_map["many.example"]] == [
            f"http://many.example/p{i}" for i in range(5)
        ]

    def test_short_fields_only(self):
        """필드가 3개뿐인 줄도 URL은 인덱싱"""
        url_map, _ = parse_feed('"1","2026-10-01","http://short.test/x"')
        assert url_map["http://short.test/x"] == FeedEntry(url="http://short.test/x")

    def test_garbage_is_skipped(self):
        body = "\r\n".join([
            "# comment",
            "",
            "   ",
            '"only","two"',
            "no quotes at all",
            _feed_line(1, "http://[broken"),
            _feed_line(2, "http://kept.test/ok"),
        ])
        url_map, host_map = parse_feed(body)
        assert list(url_map) == ["http://kept.test/ok"]
        assert list(host_map) == ["kept.test"]

    def test_duplicate_url_last_entry_wins(self):
        body = "\n".join([
            _feed_line(1, "http://dup.test/x", threat="first"),
            _feed_line(2, "HTTP://DUP.test/x/", threat="second"),
        ])
        url_map, host_map = parse_feed(body)
        assert url_map["http://dup.test/x"].threat == "second"
        assert [e.threat for e in host_map["dup.test"]] == ["first", "second"]


# === 조회 ===

class TestCheck:
    """캐시 조회 테스트"""

    @pytest.mark.asyncio
    async def test_direct_match_precedes_host_matches(self, feed_config, make_fetcher):
        cache = UrlhausFeedCache(feed_config, make_fetcher())
        verdict = await cache.check("bad.example/a")

        # 스킴 생략 입력은 https로 정규화되므로 호스트 매칭만 발생
        assert [m.match_type for m in verdict.matches] == [MatchType.HOST, MatchType.HOST]

        verdict = await cache.check("http://bad.example/a")
        assert verdict.listed is True
        assert verdict.source == SOURCE_NAME
        assert [(m.entry.url, m.match_type) for m in verdict.matches] == [
            ("http://bad.example/a", MatchType.URL),
            ("http://bad.example/a", MatchType.HOST),
            ("http://bad.example/b.exe", MatchType.HOST),
        ]

    @pytest.mark.asyncio
    async def test_host_fallback_with_www(self, feed_config, make_fetcher):
        cache = UrlhausFeedCache(feed_config, make_fetcher())
        verdict = await cache.check("https://evil.test/other")
        assert verdict.listed is True
        assert verdict.matches[0].match_type is MatchType.HOST
        assert verdict.matches[0].entry.url == "http://www.evil.test/login"

    @pytest.mark.asyncio
    async def test_not_listed(self, feed_config, make_fetcher):
        cache = UrlhausFeedCache(feed_config, make_fetcher())
        verdict = await cache.check("https://clean.example")
        assert verdict.listed is False
        assert verdict.matches == ()
        assert verdict.to_dict()["matches"] == []

    @pytest.mark.asyncio
    async def test_combined_matches_truncated(self, feed_config, make_fetcher):
        body = "\n".join(_feed_line(i, f"http://many.example/p{i}") for i in range(7))
        cache = UrlhausFeedCache(feed_config, make_fetcher(feed=body))

        verdict = await cache.check("http://many.example/p6")
        assert len(verdict.matches) == 5
        assert verdict.matches[0].match_type is MatchType.URL
        assert verdict.matches[0].entry.url == "http://many.example/p6"
        assert [m.entry.url for m in verdict.matches[1:]] == [
            f"http://many.example/p{i}" for i in range(4)
        ]

    @pytest.mark.asyncio
    async def test_invalid_url_raises_without_fetch(self, feed_config, make_fetcher):
        fetcher = make_fetcher()
        cache = UrlhausFeedCache(feed_config, fetcher)
        with pytest.raises(InvalidURLError):
            await cache.check("   ")
        fetcher.fetch_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_to_dict_wire_shape(self, feed_config, make_fetcher):
        cache = UrlhausFeedCache(feed_config, make_fetcher())
        with patch("linkintel.analyzers.urlhaus_feed.time") as mock_time:
            mock_time.monotonic.return_value = 50.0
            mock_time.time.return_value = 1_790_000_000.0
            verdict = await cache.check("http://www.evil.test/login/")

        assert verdict.to_dict() == {
            "source": "URLHaus (online feed)",
            "refreshedAt": 1_790_000_000.0,
            "listed": True,
            "matches": [
                {
                    "url": "http://www.evil.test/login",
                    "threat": "phishing",
                    "lastOnline": "2026-10-18 08:00:00",
                    "matchType": "url",
                },
                {
                    "url": "http://www.evil.test/login",
                    "threat": "phishing",
                    "lastOnline": "2026-10-18 08:00:00",
                    "matchType": "host",
                },
            ],
        }


# === 신선도 / single-flight ===

class TestLoad:
    """스냅샷 로드 및 갱신 테스트"""

    @pytest.mark.asyncio
    async def test_fresh_snapshot_reused_then_refetched(self, feed_config, make_fetcher):
        """유효 기간 안 2회 호출은 1회 요청, 만료 후 호출은 1회 추가 요청"""
        fetcher = make_fetcher()
        cache = UrlhausFeedCache(feed_config, fetcher)

        with patch("linkintel.analyzers.urlhaus_feed.time") as mock_time:
            mock_time.time.return_value = 1_790_000_000.0
            mock_time.monotonic.return_value = 1000.0
            await cache.check("http://bad.example/a")

            mock_time.monotonic.return_value = 1000.0 + 60
            await cache.check("http://bad.example/b.exe")
            assert feed_calls(fetcher) == 1
            assert cache.is_fresh()

            mock_time.monotonic.return_value = 1000.0 + feed_config.feed_ttl_seconds + 1
            assert not cache.is_fresh()
            await cache.check("http://bad.example/a")
            assert feed_calls(fetcher) == 2

        assert cache.refresh_count == 2
        fetcher.fetch_text.assert_awaited_with(FEED_URL, source="URLHaus", timeout=8.0)

    @pytest.mark.asyncio
    async def test_concurrent_checks_share_one_fetch(self, feed_config, make_fetcher, sample_feed):
        gate = asyncio.Event()

        async def slow_feed(*args, **kwargs):
            await gate.wait()
            return sample_feed

        fetcher = make_fetcher()
        fetcher.fetch_text.side_effect = slow_feed
        cache = UrlhausFeedCache(feed_config, fetcher)

        tasks = [asyncio.ensure_future(cache.check("http://bad.example/a")) for _ in range(5)]
        await asyncio.sleep(0)
        assert cache.refreshing

        gate.set()
        verdicts = await asyncio.gather(*tasks)

        assert fetcher.fetch_text.await_count == 1
        assert all(v.listed for v in verdicts)
        assert len({v.refreshed_at for v in verdicts}) == 1
        assert not cache.refreshing

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_refresh(self, feed_config, make_fetcher, sample_feed):
        gate = asyncio.Event()

        async def slow_feed(*args, **kwargs):
            await gate.wait()
            return sample_feed

        fetcher = make_fetcher()
        fetcher.fetch_text.side_effect = slow_feed
        cache = UrlhausFeedCache(feed_config, fetcher)

        first = asyncio.ensure_future(cache.load())
        second = asyncio.ensure_future(cache.load())
        await asyncio.sleep(0)
        first.cancel()
        gate.set()

        snapshot = await second
        assert first.cancelled()
        assert cache.snapshot is snapshot
        assert fetcher.fetch_text.await_count == 1

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter(self, feed_config, make_fetcher):
        gate = asyncio.Event()

        async def failing_feed(*args, **kwargs):
            await gate.wait()
            raise RemoteStatusError("URLHaus", 503)

        fetcher = make_fetcher()
        fetcher.fetch_text.side_effect = failing_feed
        cache = UrlhausFeedCache(feed_config, fetcher)

        tasks = [asyncio.ensure_future(cache.check("http://bad.example/a")) for _ in range(3)]
        await asyncio.sleep(0)
        gate.set()
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(o, RemoteStatusError) for o in outcomes)
        assert str(outcomes[0]) == "URLHaus responded with 503"
        assert fetcher.fetch_text.await_count == 1
        assert not cache.refreshing
        assert cache.snapshot is None
        assert cache.failure_count == 1

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_snapshot(self, feed_config, make_fetcher, sample_feed):
        responses = [sample_feed, RemoteTimeoutError("URLHaus", 8.0), sample_feed]

        def next_response(url):
            item = responses.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item

        fetcher = make_fetcher(feed=next_response)
        cache = UrlhausFeedCache(feed_config, fetcher)

        with patch("linkintel.analyzers.urlhaus_feed.time") as mock_time:
            mock_time.time.return_value = 1_790_000_000.0
            mock_time.monotonic.return_value = 0.0
            first = await cache.load()

            mock_time.monotonic.return_value = feed_config.feed_ttl_seconds + 5
            with pytest.raises(RemoteTimeoutError):
                await cache.load()
            assert cache.snapshot is first
            assert not cache.refreshing

            # 다음 호출이 다시 갱신을 시도
            second = await cache.load()
            assert second is not first
            assert cache.snapshot is second

        assert feed_calls(fetcher) == 3

    @pytest.mark.asyncio
    async def test_failure_with_all_waiters_cancelled_is_retrieved(self, feed_config, make_fetcher):
        """대기자가 모두 취소된 뒤 갱신이 실패해도 회수되지 않은 예외가 남지 않음"""
        gate = asyncio.Event()

        async def failing_feed(*args, **kwargs):
            await gate.wait()
            raise RemoteStatusError("URLHaus", 503)

        fetcher = make_fetcher()
        fetcher.fetch_text.side_effect = failing_feed
        cache = UrlhausFeedCache(feed_config, fetcher)

        unhandled = []
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda _loop, context: unhandled.append(context))
        try:
            waiters = [asyncio.ensure_future(cache.load()) for _ in range(2)]
            await asyncio.sleep(0)
            for waiter in waiters:
                waiter.cancel()
            await asyncio.gather(*waiters, return_exceptions=True)

            gate.set()
            for _ in range(10):
                if not cache.refreshing:
                    break
                await asyncio.sleep(0)
            del waiters
            gc.collect()
        finally:
            loop.set_exception_handler(None)

        assert not cache.refreshing
        assert cache.failure_count == 1
        assert unhandled == []
