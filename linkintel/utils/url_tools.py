"""
URL 정규화 및 추출
==================

모든 조회에서 사용하는 URL 비교 키를 만들고,
자유 텍스트에서 URL 후보를 찾아냅니다.

정규화 규칙:
- 스킴이 없으면 https:// 추가
- 프래그먼트 제거
- 기본 포트 제거 (80/443)
- 끝의 슬래시 하나 제거
- 전체 문자열 소문자 변환 (경로/쿼리 포함)

경로와 쿼리까지 소문자로 바꾸므로 대소문자를 구분하는 경로는
같은 키로 합쳐집니다. 피드 매칭이 이 동작을 전제로 합니다.
"""

from __future__ import annotations

import ipaddress
import logging
import re
from typing import Iterator, Optional
from urllib.parse import quote, urlsplit, urlunsplit

logger = logging.getLogger(__name__)


# ============================================================
# 상수
# ============================================================

# "scheme://" 접두사 (RFC 3986 스킴 문자)
_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)

_DEFAULT_SCHEME = "https://"

_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}

# 호스트에 올 수 없는 문자
_FORBIDDEN_HOST_CHARS = frozenset("#%/:<>?@[\\]^|\"'`{} ")

# 경로/쿼리에서 그대로 두는 문자 (이미 인코딩된 %XX 유지)
_PATH_SAFE = "/:@!$&'()*+,;=-._~%"
_QUERY_SAFE = _PATH_SAFE + "?"

# 텍스트 스캔: URL 시작 토큰과 구분 문자
_URL_PREFIXES = ("https://", "http://", "www.")
_PREFIX_WINDOW = max(len(p) for p in _URL_PREFIXES)
_TOKEN_DELIMITERS = frozenset("\"'<>")


# ============================================================
# 정규화
# ============================================================

def _encode_host(hostname: str) -> Optional[str]:
    """호스트 검증 및 IDNA 변환 (실패 시 None)"""
    # IPv6 리터럴 (urlsplit이 대괄호를 제거함)
    if ":" in hostname:
        try:
            return ipaddress.IPv6Address(hostname).compressed
        except ValueError:
            return None

    if any(ch.isspace() or ch in _FORBIDDEN_HOST_CHARS for ch in hostname):
        return None

    if hostname.isascii():
        return hostname

    try:
        return hostname.encode("idna").decode("ascii")
    except UnicodeError:
        return None


def normalize_url(value: Optional[str]) -> Optional[str]:
    """
    URL 정규화

    Args:
        value: URL 형태의 문자열 (스킴 생략 가능)

    Returns:
        정규화된 URL. 해석할 수 없으면 None.
    """
    if not value:
        return None

    trimmed = str(value).strip()
    if not trimmed:
        return None

    candidate = trimmed if _SCHEME_RE.match(trimmed) else _DEFAULT_SCHEME + trimmed

    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError:
        return None

    if not parts.hostname:
        return None

    host = _encode_host(parts.hostname)
    if host is None:
        return None

    scheme = parts.scheme.lower()

    # netloc 재구성
    netloc = f"[{host}]" if ":" in host else host
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        netloc += f":{port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo += f":{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = quote(parts.path or "/", safe=_PATH_SAFE)
    query = quote(parts.query, safe=_QUERY_SAFE)

    # 프래그먼트는 버림
    normalized = urlunsplit((scheme, netloc, path, query, ""))
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized.lower()


def hostname_of(normalized: str) -> Optional[str]:
    """정규화된 URL의 호스트 이름 (www. 유지)"""
    try:
        hostname = urlsplit(normalized).hostname
    except ValueError:
        return None
    return hostname.lower() if hostname else None


def host_key(normalized: str) -> Optional[str]:
    """호스트 인덱스 키: 소문자, 선행 www. 제거"""
    hostname = hostname_of(normalized)
    if not hostname:
        return None
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


# ============================================================
# 텍스트에서 URL 추출
# ============================================================

def _scan_candidates(text: str) -> Iterator[str]:
    """
    URL 후보 토큰 스캔

    http://, https://, www. 로 시작하는 위치에서 공백이나
    따옴표/꺾쇠 괄호를 만날 때까지 읽습니다.
    """
    i = 0
    n = len(text)
    while i < n:
        if text[i:i + _PREFIX_WINDOW].lower().startswith(_URL_PREFIXES):
            j = i
            while j < n and not text[j].isspace() and text[j] not in _TOKEN_DELIMITERS:
                j += 1
            yield text[i:j]
            i = j
        else:
            i += 1


def extract_urls(text: Optional[str]) -> list[str]:
    """
    텍스트에서 정규화된 URL 목록 추출

    중복은 정규화 결과 기준으로 제거하며, 처음 등장한 순서를 유지합니다.
    개수 제한은 호출 측에서 적용합니다.

    Args:
        text: 자유 형식 텍스트

    Returns:
        정규화된 URL 리스트
    """
    if not text:
        return []

    found: dict[str, None] = {}
    for token in _scan_candidates(text):
        normalized = normalize_url(token)
        if normalized is None:
            logger.debug("URL 후보 무시: %s", token[:80])
            continue
        found.setdefault(normalized, None)
    return list(found)
