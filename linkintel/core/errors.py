"""
오류 정의
=========

URL 입력 오류와 원격 피드 오류를 구분합니다.
원격 오류는 실패한 소스 이름을 함께 보관합니다.
"""

from __future__ import annotations

from typing import Optional


class InvalidURLError(ValueError):
    """URL로 해석할 수 없는 입력"""

    def __init__(self, value: object) -> None:
        super().__init__("Invalid URL")
        self.value = value


class FeedError(RuntimeError):
    """원격 피드 호출 실패 (전송 오류 포함)"""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(message)
        self.source = source


class RemoteTimeoutError(FeedError):
    """원격 호출이 제한 시간을 초과함"""

    def __init__(self, source: str, timeout: float) -> None:
        super().__init__(source, f"{source} timed out after {timeout:g}s")
        self.timeout = timeout


class RemoteStatusError(FeedError):
    """원격 호출이 2xx 이외의 상태 코드를 반환함"""

    def __init__(self, source: str, status: int, reason: Optional[str] = None) -> None:
        super().__init__(source, f"{source} responded with {status}")
        self.status = status
        self.reason = reason
