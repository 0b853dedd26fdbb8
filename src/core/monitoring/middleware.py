"""
Monitoring Middleware
=====================
Coleta métricas de todas as requisições HTTP
"""

import time
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from src.core.monitoring.metrics import metrics

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware que captura métricas de todas as requisições HTTP
    """

    async def dispatch(self, request: Request, call_next):
        # Health check e métricas não entram na contagem
        if request.url.path in ["/health", "/metrics"]:
            return await call_next(request)

        start_time = time.time()
        status_code = 500

        try:
            response: Response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            logger.error(f"❌ Erro na requisição: {e}", exc_info=True)
            raise
        finally:
            duration_ms = (time.time() - start_time) * 1000

            metrics.track_request(
                endpoint=request.url.path,
                method=request.method,
                duration_ms=duration_ms,
                status_code=status_code
            )

            logger.info(
                f"event=http_request method={request.method} path={request.url.path} "
                f"status={status_code} duration_ms={duration_ms:.2f}"
            )

            if duration_ms > SLOW_REQUEST_MS:
                logger.warning(
                    f"🐌 Requisição lenta: {request.method} {request.url.path} "
                    f"levou {duration_ms:.2f}ms (status: {status_code})"
                )

        return response
