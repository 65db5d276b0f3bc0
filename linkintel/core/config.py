"""
서비스 설정 모듈
================

Pydantic BaseSettings 기반 서비스 전역 설정.
환경 변수, .env 파일, 기본값을 지원합니다.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class FeedConfig(BaseSettings):
    """위협 인텔리전스 피드 설정"""

    # phish.sinking.yachts 실시간 API
    phish_api_url: str = Field(
        default="https://phish.sinking.yachts",
        description="실시간 피싱 도메인 API 기본 URL"
    )

    # URLhaus 온라인 CSV 피드
    urlhaus_feed_url: str = Field(
        default="https://urlhaus.abuse.ch/downloads/csv_online/",
        description="URLhaus 벌크 피드 URL"
    )

    request_timeout: float = Field(
        default=8.0,
        gt=0.0,
        description="원격 요청 타임아웃 (초)"
    )
    feed_ttl_seconds: float = Field(
        default=15 * 60,
        gt=0.0,
        description="벌크 피드 스냅샷 유효 기간 (초)"
    )

    # 결과 상한
    max_text_urls: int = Field(
        default=6,
        ge=1,
        description="텍스트에서 검사할 최대 URL 수"
    )
    max_matches: int = Field(
        default=5,
        ge=1,
        description="호스트별/결과별 최대 매칭 항목 수"
    )

    user_agent: str = Field(
        default="linkintel/0.1.0",
        description="HTTP User-Agent 헤더"
    )

    model_config = {"env_prefix": "INTEL_", "env_file": ".env", "extra": "ignore"}


class ServerConfig(BaseSettings):
    """HTTP 서버 설정"""

    host: str = Field(default="0.0.0.0", description="HTTP 서버 호스트")
    port: int = Field(default=3000, ge=1, le=65535, description="HTTP 서버 포트")

    model_config = {"env_prefix": "HTTP_", "env_file": ".env", "extra": "ignore"}


class ServiceConfig(BaseSettings):
    """
    서비스 전역 설정

    모든 하위 설정을 통합 관리합니다.
    환경 변수 또는 .env 파일에서 설정을 로드합니다.
    """

    service_name: str = Field(default="linkintel", description="서비스 이름")
    version: str = Field(default="0.1.0", description="서비스 버전")
    debug: bool = Field(default=False, description="디버그 모드")
    log_level: str = Field(default="INFO", description="로그 레벨")

    # 하위 설정
    feeds: FeedConfig = Field(default_factory=FeedConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    model_config = {"env_prefix": "LINKINTEL_", "env_file": ".env", "extra": "ignore"}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """유효한 로그 레벨인지 확인"""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"유효하지 않은 로그 레벨: {v}. 가능한 값: {valid_levels}")
        return upper
