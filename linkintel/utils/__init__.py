"""
유틸리티 모듈
=============

- normalize_url / extract_urls / host_key: URL 정규화 및 추출
- HttpFetcher: 제한 시간이 있는 HTTP GET
"""

from linkintel.utils.http_client import HttpFetcher
from linkintel.utils.url_tools import extract_urls, host_key, hostname_of, normalize_url

__all__ = [
    "HttpFetcher",
    "extract_urls",
    "host_key",
    "hostname_of",
    "normalize_url",
]
