# src/main.py
"""
Aplicação Principal - Storefront Address API
============================================
Endereços de entrega dos clientes da loja, armazenados no Sanity.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware

from src.api.app import router as app_router
from src.api.app.services.address_service import AddressError, AddressService
from src.core.config import config
from src.core.logging_config import setup_logging
from src.core.middleware.correlation import CorrelationIdMiddleware
from src.core.monitoring.metrics import metrics
from src.core.monitoring.middleware import MetricsMiddleware
from src.core.rate_limit.rate_limit import limiter, rate_limit_exceeded_handler
from src.core.sanity import SanityClient

setup_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def create_app(sanity_client: Optional[SanityClient] = None) -> FastAPI:
    """
    Monta a aplicação.

    Args:
        sanity_client: Cliente já configurado (testes). Sem ele, o cliente é
            criado a partir do config no startup e fechado no shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("=" * 60)
        logger.info("🚀 INICIANDO STOREFRONT ADDRESS API")
        logger.info("=" * 60)

        owns_client = sanity_client is None
        client = sanity_client or SanityClient.from_config(config)
        app.state.sanity = client
        app.state.address_service = AddressService(client)

        logger.info(f"🌍 Ambiente: {config.ENVIRONMENT}")
        logger.info(f"🗂️ Sanity: projeto {client.project_id}, dataset {client.dataset}")
        logger.info("✅ APLICAÇÃO PRONTA!")

        yield

        logger.info("🛑 DESLIGANDO APLICAÇÃO")
        service: AddressService = app.state.address_service
        if service.pending_demotions:
            logger.info(f"⏳ Aguardando {service.pending_demotions} lote(s) de demoção...")
            await service.drain(timeout=config.DEMOTION_DRAIN_TIMEOUT_SECONDS)

        if owns_client:
            await client.aclose()
            logger.info("✅ Cliente Sanity encerrado")

    app = FastAPI(
        title="Storefront Address API",
        version="1.0.0",
        docs_url="/docs" if config.DEBUG else None,
        redoc_url="/redoc" if config.DEBUG else None,
        lifespan=lifespan,
    )

    # ═══════════════════════════════════════════════════════════
    # MIDDLEWARES
    # ═══════════════════════════════════════════════════════════

    app.add_middleware(MetricsMiddleware)
    # Adicionado por último = executa primeiro: o correlation-id já existe nos logs de métricas
    app.add_middleware(CorrelationIdMiddleware)

    if config.is_development:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.get_allowed_origins_list(),
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
            expose_headers=["x-correlation-id"],
            max_age=3600,
        )

    # ═══════════════════════════════════════════════════════════
    # RATE LIMITING
    # ═══════════════════════════════════════════════════════════

    app.state.limiter = limiter  # type: ignore[attr-defined]
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # ═══════════════════════════════════════════════════════════
    # TRATAMENTO DE ERROS
    # ═══════════════════════════════════════════════════════════

    @app.exception_handler(AddressError)
    async def address_error_handler(request: Request, exc: AddressError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.public_message},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"⚠️ Corpo inválido em {request.method} {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception):
        logger.error(f"❌ Erro interno em {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Server error"})

    # ═══════════════════════════════════════════════════════════
    # ROTAS
    # ═══════════════════════════════════════════════════════════

    app.include_router(app_router)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request) -> dict:
        service: Optional[AddressService] = getattr(request.app.state, "address_service", None)
        client: Optional[SanityClient] = getattr(request.app.state, "sanity", None)
        return {
            "status": "healthy" if service else "starting",
            "version": "1.0.0",
            "environment": config.ENVIRONMENT,
            "store": {
                "project_id": client.project_id if client else None,
                "dataset": client.dataset if client else None,
            },
            "pending_demotions": service.pending_demotions if service else 0,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/metrics", tags=["Health"], include_in_schema=False)
    async def metrics_summary() -> dict:
        return metrics.get_metrics_summary()

    return app


app = create_app()


def main():
    """Executa o servidor com uvicorn"""
    logger.info(f"🌐 Servidor iniciando em http://{config.HOST}:{config.PORT}")
    uvicorn.run(
        "src.main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()

__all__ = ["app", "create_app"]
