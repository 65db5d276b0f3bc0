"""
API 모듈
========

aiohttp.web JSON API로 조회 서비스를 노출합니다.
"""

from linkintel.api.http_server import create_app, main

__all__ = [
    "create_app",
    "main",
]
