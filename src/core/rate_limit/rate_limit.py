# src/core/rate_limit/rate_limit.py

"""
Rate Limiting
=============
Limiter do slowapi compartilhado pelas rotas públicas
"""

import logging
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse
from src.core.config import config

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════
# CONFIGURAÇÃO
# ═══════════════════════════════════════════════════════════

def get_storage_uri() -> str:
    """Retorna URI do storage"""
    if config.REDIS_URL:
        logger.info("✅ Rate Limiting usando Redis")
        return config.REDIS_URL

    logger.warning("⚠️ Rate Limiting usando memória")
    return "memory://"


def get_identifier(request: Request) -> str:
    """Identifica o cliente pelo IP (respeitando proxy)"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else "unknown"

    return f"ip:{ip}"


# ═══════════════════════════════════════════════════════════
# LIMITER
# ═══════════════════════════════════════════════════════════

limiter = Limiter(
    key_func=get_identifier,
    storage_uri=get_storage_uri(),
    headers_enabled=True,
    swallow_errors=True,
    enabled=config.RATE_LIMIT_ENABLED,
)

RATE_LIMITS = {
    "read": "100/minute",
    "write": "30/minute",
}


# ═══════════════════════════════════════════════════════════
# EXCEPTION HANDLER
# ═══════════════════════════════════════════════════════════

async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handler para rate limit excedido"""
    logger.warning(
        f"🚨 RATE LIMIT EXCEDIDO\n"
        f"   ├─ Path: {request.method} {request.url.path}\n"
        f"   └─ Identificador: {get_identifier(request)}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "Too many requests",
            "retry_after_seconds": 60,
        },
        headers={
            "Retry-After": "60",
            "X-RateLimit-Remaining": "0",
        }
    )
