"""
Configuración centralizada de la aplicación.

Este módulo maneja todas las variables de entorno y configuraciones
del proceso usando Pydantic Settings para validación automática.
La configuración editable por el usuario (credenciales de la tienda,
preferencias del feed) vive en ``feedsync.services.config_manager``.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

HIGHER_VARIANT_POLICIES = ("percentage", "blank")


class Settings(BaseSettings):
    """
    Configuración del proceso usando Pydantic Settings.

    Todas las configuraciones se cargan desde variables de entorno
    con valores por defecto apropiados para desarrollo.
    """

    # === CONFIGURACIÓN BÁSICA DE LA APP ===
    APP_NAME: str = "Shopify Feed Sync"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # === ALMACENAMIENTO LOCAL ===
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///data/shopify_sync.db")
    DATABASE_ECHO: bool = Field(default=False)
    EXPORTS_DIR: str = Field(default="exports")
    CONFIG_FILE_PATH: str = Field(default="data/config.json")
    DOWNLOAD_URL_PREFIX: str = Field(default="/api/download")

    # === CONFIGURACIÓN DE SHOPIFY ===
    SHOPIFY_SHOP_URL: Optional[str] = Field(default=None)
    SHOPIFY_ACCESS_TOKEN: Optional[str] = Field(default=None)
    SHOPIFY_API_VERSION: str = Field(default="2023-10")
    SHOPIFY_PAGE_SIZE: int = Field(default=250)
    SHOPIFY_REQUEST_TIMEOUT: int = Field(default=30)
    # Intervalo mínimo entre requests (segundos)
    SHOPIFY_MIN_REQUEST_INTERVAL: float = Field(default=0.5)
    # Intervalo usado cuando el bucket de llamadas supera el umbral
    SHOPIFY_THROTTLED_REQUEST_INTERVAL: float = Field(default=1.0)
    SHOPIFY_RATE_LIMIT_THRESHOLD: float = Field(default=0.8)
    SHOPIFY_RATE_LIMIT_BACKOFF_SECONDS: float = Field(default=2.0)
    SHOPIFY_MAX_RATE_LIMIT_RETRIES: int = Field(default=5)

    # === CONFIGURACIÓN DEL FEED ===
    FEED_BATCH_SIZE: int = Field(default=500)
    HIGHER_VARIANT_LABEL_POLICY: str = Field(default="percentage")
    FEED_VALIDATE_BEFORE_EXPORT: bool = Field(default=True)

    # === MANTENIMIENTO ===
    CLEANUP_MAX_AGE_DAYS: int = Field(default=30)

    # === CONFIGURACIÓN DE LOGGING ===
    LOG_FILE_PATH: Optional[str] = Field(default=None)
    LOG_MAX_SIZE_MB: int = Field(default=10)
    LOG_BACKUP_COUNT: int = Field(default=5)
    LOG_FORMAT: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # === CONFIGURACIÓN DE RETRIES ===
    MAX_RETRIES: int = Field(default=3)
    RETRY_DELAY_SECONDS: float = Field(default=1.0)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "allow",
    }

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Valida que el nivel de log sea válido."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL debe ser uno de: {valid_levels}")
        return v.upper()

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Valida que el entorno sea válido."""
        valid_envs = ["development", "staging", "production", "testing"]
        if v.lower() not in valid_envs:
            raise ValueError(f"ENVIRONMENT debe ser uno de: {valid_envs}")
        return v.lower()

    @field_validator("HIGHER_VARIANT_LABEL_POLICY")
    @classmethod
    def validate_higher_variant_policy(cls, v):
        """Valida la política de etiqueta para variantes más caras."""
        if v.lower() not in HIGHER_VARIANT_POLICIES:
            raise ValueError(f"HIGHER_VARIANT_LABEL_POLICY debe ser uno de: {list(HIGHER_VARIANT_POLICIES)}")
        return v.lower()

    @field_validator("SHOPIFY_PAGE_SIZE")
    @classmethod
    def validate_page_size(cls, v):
        """Shopify REST acepta como máximo 250 elementos por página."""
        if not 1 <= v <= 250:
            raise ValueError("SHOPIFY_PAGE_SIZE debe estar entre 1 y 250")
        return v

    @field_validator("SHOPIFY_RATE_LIMIT_THRESHOLD")
    @classmethod
    def validate_rate_limit_threshold(cls, v):
        """Valida que el umbral sea una fracción."""
        if not 0 < v <= 1:
            raise ValueError("SHOPIFY_RATE_LIMIT_THRESHOLD debe estar entre 0 y 1")
        return v

    @property
    def is_production(self) -> bool:
        """Verifica si está en entorno de producción."""
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Obtiene instancia singleton de configuración.

    Usa LRU cache para evitar recrear la configuración
    múltiples veces durante la ejecución.

    Returns:
        Settings: Instancia de configuración
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Recarga la configuración (útil para testing).

    Returns:
        Settings: Nueva instancia de configuración
    """
    get_settings.cache_clear()
    return get_settings()


def get_environment_info() -> dict:
    """
    Obtiene información del entorno actual.

    Returns:
        dict: Información del entorno
    """
    settings = get_settings()

    return {
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "debug": settings.DEBUG,
        "log_level": settings.LOG_LEVEL,
        "database_url": settings.DATABASE_URL,
        "exports_dir": settings.EXPORTS_DIR,
        "shopify_api_version": settings.SHOPIFY_API_VERSION,
        "higher_variant_label_policy": settings.HIGHER_VARIANT_LABEL_POLICY,
    }
