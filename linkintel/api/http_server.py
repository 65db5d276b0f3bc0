"""
OSINT HTTP 서버
===============

aiohttp.web 기반 JSON API.

엔드포인트:
- POST /api/osint/link  {"url": ...}   → URL 하나 조회
- POST /api/osint/text  {"text": ...}  → 텍스트 속 URL 일괄 조회
- GET  /api/health                     → 상태 및 URLhaus 스냅샷 정보
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from aiohttp import web

from linkintel.core.config import ServiceConfig
from linkintel.core.service import OsintService

logger = logging.getLogger(__name__)

SERVICE_KEY = web.AppKey("osint_service", OsintService)

UNAVAILABLE_MESSAGE = "Unable to reach open-source intel feeds right now."

# 요청 본문 최대 크기 (2MB)
MAX_BODY_SIZE = 2 * 1024 * 1024


async def _read_json(request: web.Request) -> dict[str, Any]:
    """JSON 본문 읽기 (해석 실패 시 빈 딕셔너리)"""
    if not request.can_read_body:
        return {}
    try:
        data = await request.json()
    except ValueError:
        logger.debug("JSON 본문 해석 실패: %s", request.path)
        return {}
    return data if isinstance(data, dict) else {}


def _error_response(message: str, status: int, detail: Optional[str] = None) -> web.Response:
    payload: dict[str, Any] = {"ok": False, "error": message}
    if detail is not None:
        payload["detail"] = detail
    return web.json_response(payload, status=status)


# ============================================================
# 핸들러
# ============================================================

async def inspect_link(request: web.Request) -> web.Response:
    """URL 하나 조회"""
    body = await _read_json(request)
    target = str(body.get("url") or "").strip()
    if not target:
        return _error_response("Missing url", 400)

    service = request.app[SERVICE_KEY]
    try:
        result = await service.inspect_url(target)
    except Exception as e:
        logger.exception("[osint] URL 조회 오류: %s", target[:80])
        return _error_response(UNAVAILABLE_MESSAGE, 500, detail=str(e))
    return web.json_response(result.to_dict())


async def inspect_text(request: web.Request) -> web.Response:
    """텍스트 속 URL 일괄 조회"""
    body = await _read_json(request)
    text = str(body.get("text") or "")
    if not text.strip():
        return _error_response("Missing text", 400)

    service = request.app[SERVICE_KEY]
    try:
        result = await service.inspect_text(text)
    except Exception as e:
        logger.exception("[osint-text] 텍스트 조회 오류")
        return _error_response(UNAVAILABLE_MESSAGE, 500, detail=str(e))
    return web.json_response(result.to_dict())


async def health(request: web.Request) -> web.Response:
    """상태 확인 (스냅샷이 오래되었는지 확인용 정보 포함)"""
    cache = request.app[SERVICE_KEY].urlhaus
    snapshot = cache.snapshot
    return web.json_response({
        "status": "ok",
        "urlhaus": {
            "refreshedAt": snapshot.refreshed_at if snapshot else None,
            "ageSeconds": cache.age(),
            "fresh": cache.is_fresh(),
            "refreshing": cache.refreshing,
        },
    })


# ============================================================
# 애플리케이션
# ============================================================

async def _close_service(app: web.Application) -> None:
    await app[SERVICE_KEY].close()


def create_app(
    config: Optional[ServiceConfig] = None,
    service: Optional[OsintService] = None,
) -> web.Application:
    """
    aiohttp 애플리케이션 생성

    Args:
        config: 서비스 설정. None이면 기본 설정 사용.
        service: 조회 서비스. None이면 설정으로 생성.
    """
    config = config or ServiceConfig()

    app = web.Application(client_max_size=MAX_BODY_SIZE)
    app[SERVICE_KEY] = service or OsintService(config.feeds)

    app.router.add_post("/api/osint/link", inspect_link)
    app.router.add_post("/api/osint/text", inspect_text)
    app.router.add_get("/api/health", health)

    app.on_cleanup.append(_close_service)
    return app


# ============================================================
# 엔트리포인트
# ============================================================

def main() -> None:
    """CLI 엔트리포인트"""
    config = ServiceConfig()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info(
        "%s v%s 실행: http://%s:%d",
        config.service_name, config.version, config.server.host, config.server.port,
    )
    web.run_app(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        print=None,
    )


if __name__ == "__main__":
    main()
