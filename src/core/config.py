# src/core/config.py
"""
Configurações da Aplicação - Storefront Address API
===================================================

Gerencia variáveis de ambiente de forma centralizada e tipada.
"""

from pathlib import Path
from typing import Optional
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Carrega .env do diretório raiz
load_dotenv(dotenv_path=Path(__file__).resolve().parent.parent.parent / ".env")


class Config(BaseSettings):
    """Configurações centralizadas da aplicação"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ═══════════════════════════════════════════════════════════
    # 🌍 AMBIENTE
    # ═══════════════════════════════════════════════════════════

    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # ═══════════════════════════════════════════════════════════
    # 🗂️ SANITY (DOCUMENT STORE)
    # ═══════════════════════════════════════════════════════════

    SANITY_PROJECT_ID: str
    SANITY_DATASET: str = "production"
    SANITY_API_VERSION: str = "2024-01-01"
    SANITY_API_TOKEN: str
    SANITY_USE_CDN: bool = False
    SANITY_TIMEOUT_SECONDS: float = 10.0

    # Tempo máximo para aguardar demoções pendentes no shutdown
    DEMOTION_DRAIN_TIMEOUT_SECONDS: float = 10.0

    # ═══════════════════════════════════════════════════════════
    # 🔴 RATE LIMIT
    # ═══════════════════════════════════════════════════════════

    REDIS_URL: Optional[str] = None
    RATE_LIMIT_ENABLED: bool = True

    # ═══════════════════════════════════════════════════════════
    # 🌐 CORS
    # ═══════════════════════════════════════════════════════════

    ALLOWED_ORIGINS: str = "http://localhost:3000"

    def get_allowed_origins_list(self) -> list[str]:
        """Retorna lista de origens permitidas para CORS"""
        origins = [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

        if self.is_development:
            origins.extend([
                "http://localhost:3000",
                "http://127.0.0.1:3000",
            ])

        # Remove duplicatas mantendo ordem
        return list(dict.fromkeys(origins))

    # ═══════════════════════════════════════════════════════════
    # 🖥️ SERVIDOR
    # ═══════════════════════════════════════════════════════════

    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # ═══════════════════════════════════════════════════════════
    # 🔧 PROPRIEDADES ÚTEIS
    # ═══════════════════════════════════════════════════════════

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


# ✅ Instância global
config = Config()


# ✅ Validação básica no startup
def validate_config(cfg: Config = config):
    """Valida configurações críticas"""
    errors = []

    if not cfg.SANITY_PROJECT_ID.strip():
        errors.append("SANITY_PROJECT_ID não pode ser vazio")

    if not cfg.SANITY_API_TOKEN.strip():
        errors.append("SANITY_API_TOKEN não pode ser vazio")

    if cfg.SANITY_TIMEOUT_SECONDS <= 0:
        errors.append("SANITY_TIMEOUT_SECONDS deve ser positivo")

    if cfg.ENVIRONMENT not in ["development", "test", "production"]:
        errors.append("ENVIRONMENT deve ser: development, test ou production")

    if errors:
        raise ValueError(
            "❌ Erros de configuração:\n" + "\n".join(f"  • {e}" for e in errors)
        )


validate_config()
