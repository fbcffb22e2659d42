import json
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ValidationError

from feedsync.core.config import HIGHER_VARIANT_POLICIES, get_settings
from feedsync.db.shopify_client import MAX_PAGE_SIZE
from feedsync.schemas.config_schemas import AppConfig, ConfigValidationResult
from feedsync.schemas.sync_schemas import utc_now
from feedsync.utils.error_handler import ValidationException

logger = logging.getLogger(__name__)

SYNC_INTERVALS = ("daily", "hourly", "manual")
SYNC_TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
MIN_ACCESS_TOKEN_LENGTH = 20
MAX_PRODUCTS_WARNING = 100000


def merge_config(current: AppConfig, update: Union[AppConfig, Dict[str, Any]]) -> AppConfig:
    """
    Combina ``update`` sobre ``current`` sección por sección.

    Sólo se aplican los campos indicados explícitamente en ``update``; los
    campos omitidos de una sección conservan su valor actual.

    Raises:
        ValidationException: Si ``update`` no es una configuración válida
    """
    if isinstance(update, AppConfig):
        patch = update
    else:
        try:
            patch = AppConfig.model_validate(update)
        except ValidationError as e:
            raise ValidationException(
                f"Invalid configuration: {e.errors()[0]['msg']}",
                field=".".join(str(part) for part in e.errors()[0]["loc"]),
            ) from e

    changes: Dict[str, Any] = {}
    for name in patch.model_fields_set - {"created_at", "updated_at"}:
        value = getattr(patch, name)
        if isinstance(value, BaseModel):
            section = getattr(current, name)
            changes[name] = section.model_copy(
                update={field: getattr(value, field) for field in value.model_fields_set}
            )
        else:
            changes[name] = value

    changes["updated_at"] = utc_now()
    return current.model_copy(update=changes)


def validate_config(config: AppConfig) -> ConfigValidationResult:
    """Errores bloquean la sincronización; los avisos sólo se informan."""
    errors = []
    warnings = []

    if not config.shop_url:
        errors.append("Shop URL is required")
    elif "myshopify.com" not in config.shop_url:
        warnings.append("Shop URL should be in format: yourstore.myshopify.com")

    if not config.access_token:
        errors.append("Access Token is required")
    elif len(config.access_token) < MIN_ACCESS_TOKEN_LENGTH:
        warnings.append("Access Token seems too short, please verify")

    if config.sync.sync_interval not in SYNC_INTERVALS:
        warnings.append("Invalid sync interval, defaulting to daily")
    if config.sync.sync_time and not SYNC_TIME_RE.match(config.sync.sync_time):
        warnings.append("Invalid sync time format, use HH:MM (24-hour format)")

    if config.feed_settings.max_products > MAX_PRODUCTS_WARNING:
        warnings.append("Maximum products limit is very high, this may affect performance")
    if (config.performance.batch_size or 0) > MAX_PAGE_SIZE:
        warnings.append(f"Batch size above Shopify's page limit, requests will use {MAX_PAGE_SIZE}")

    if config.labels.higher_variant_policy not in HIGHER_VARIANT_POLICIES:
        errors.append(f"Higher variant label policy must be one of: {list(HIGHER_VARIANT_POLICIES)}")

    return ConfigValidationResult(valid=not errors, errors=errors, warnings=warnings)


class ConfigManager:
    """
    Persists the application config as JSON.

    The access token is stored as given; protecting it is left to the
    deployment (file permissions or a secret store).
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path or get_settings().CONFIG_FILE_PATH)

    def _write(self, config: AppConfig) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.config_path.with_name(self.config_path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(config.model_dump(mode="json"), f, indent=2)
        os.replace(tmp_path, self.config_path)

    def get_config(self) -> AppConfig:
        """
        Lee la configuración guardada.

        Returns:
            AppConfig: Configuración guardada, o la configuración por defecto si
            el archivo no existe o no se puede leer
        """
        if not self.config_path.exists():
            return AppConfig()

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return AppConfig.model_validate(data)
        except (json.JSONDecodeError, OSError, ValidationError) as e:
            logger.error(f"❌ Error reading config from {self.config_path}, using defaults: {e}")
            return AppConfig()

    def save_config(self, update: Union[AppConfig, Dict[str, Any]]) -> AppConfig:
        """Combina ``update`` con la configuración actual y la guarda."""
        merged = merge_config(self.get_config(), update)
        self._write(merged)
        logger.info("💾 Configuration saved successfully")
        return merged

    def reset_to_defaults(self) -> AppConfig:
        defaults = AppConfig()
        self._write(defaults)
        logger.info("Configuration reset to defaults")
        return defaults

    def backup_config(self) -> Optional[Path]:
        """
        Copia el archivo actual a config_backup_{timestamp}.json.

        Returns:
            Path: Ruta del backup, o None si no hay configuración guardada
        """
        if not self.config_path.exists():
            logger.warning("No configuration file to back up")
            return None

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
        backup_path = self.config_path.with_name(f"config_backup_{timestamp}.json")
        backup_path.write_bytes(self.config_path.read_bytes())
        logger.info(f"Configuration backed up to: {backup_path}")
        return backup_path
