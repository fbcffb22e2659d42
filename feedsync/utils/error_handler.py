"""
Sistema de manejo de errores personalizado.

Este módulo define todas las excepciones personalizadas de la aplicación
y proporciona utilidades para manejo consistente de errores.
"""

import logging
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


class ErrorCode(Enum):
    """
    Códigos de error estandardizados para la aplicación.
    """

    # Errores generales
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Errores de conexión
    SHOPIFY_API_ERROR = "SHOPIFY_API_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"

    # Errores de sincronización
    SYNC_IN_PROGRESS = "SYNC_IN_PROGRESS"


class ErrorSeverity(Enum):
    """
    Niveles de severidad para errores.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AppException(Exception):
    """
    Excepción base para todas las excepciones personalizadas de la aplicación.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        is_retryable: bool = False,
    ):
        """
        Inicializa la excepción.

        Args:
            message: Mensaje de error
            error_code: Código de error estandardizado
            details: Información adicional del error
            status_code: Código HTTP asociado
            severity: Severidad del error
            is_retryable: Si la operación puede reintentarse
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        self.severity = severity
        self.is_retryable = is_retryable
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convierte la excepción a diccionario.

        Returns:
            Dict: Representación de la excepción
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "details": self.details,
            "status_code": self.status_code,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        """String representation del error."""
        return f"{self.error_code.value}: {self.message}"


class ConfigurationException(AppException):
    """
    Excepción para configuración faltante (credenciales o dominio de la tienda).
    """

    def __init__(self, message: str, missing_fields: Optional[list] = None, **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            status_code=400,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.missing_fields = missing_fields or []
        self.details.update({"missing_fields": self.missing_fields})


class ValidationException(AppException):
    """
    Excepción para errores de validación de datos de entrada.
    """

    def __init__(
        self,
        message: str,
        field: str,
        invalid_value: Any = None,
        expected_format: Optional[str] = None,
        **kwargs,
    ):
        """
        Inicializa la excepción de validación.

        Args:
            message: Mensaje de error
            field: Campo que falló la validación
            invalid_value: Valor que causó el error
            expected_format: Formato esperado
            **kwargs: Argumentos adicionales para AppException
        """
        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            status_code=422,
            severity=ErrorSeverity.LOW,
            **kwargs,
        )
        self.field = field
        self.invalid_value = invalid_value
        self.expected_format = expected_format

        self.details.update(
            {
                "field": field,
                "invalid_value": str(invalid_value) if invalid_value is not None else None,
                "expected_format": expected_format,
            }
        )


class RemoteAPIException(AppException):
    """
    Excepción para respuestas no exitosas de la API de Shopify.
    """

    def __init__(
        self,
        message: str,
        api_response_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        response_body: Any = None,
        **kwargs,
    ):
        """
        Inicializa la excepción de Shopify API.

        Args:
            message: Mensaje de error
            api_response_code: Código de respuesta de Shopify (None si fue un error de red)
            endpoint: Endpoint que falló
            response_body: Cuerpo de la respuesta
            **kwargs: Argumentos adicionales para AppException
        """
        severity = ErrorSeverity.MEDIUM
        if api_response_code is None or api_response_code >= 500:
            severity = ErrorSeverity.HIGH

        super().__init__(
            message=message,
            error_code=ErrorCode.SHOPIFY_API_ERROR,
            status_code=api_response_code or 503,
            severity=severity,
            is_retryable=api_response_code is None or api_response_code >= 500,
            **kwargs,
        )

        self.api_response_code = api_response_code
        self.endpoint = endpoint
        self.response_body = response_body

        self.details.update(
            {
                "api_response_code": api_response_code,
                "endpoint": endpoint,
                "response_body": response_body,
            }
        )


class RateLimitException(AppException):
    """
    Excepción para rate limiting que persiste después de todos los reintentos.
    """

    def __init__(self, message: str, endpoint: Optional[str] = None, attempts: int = 0, **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.RATE_LIMIT_EXCEEDED,
            status_code=429,
            severity=ErrorSeverity.LOW,
            is_retryable=True,
            **kwargs,
        )
        self.endpoint = endpoint
        self.attempts = attempts
        self.details.update({"endpoint": endpoint, "attempts": attempts})


class PersistenceException(AppException):
    """
    Excepción para fallos del almacenamiento local.
    """

    def __init__(self, message: str, operation: str = "query_execution", **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.PERSISTENCE_ERROR,
            status_code=503,
            severity=ErrorSeverity.HIGH,
            is_retryable=True,
            **kwargs,
        )
        self.operation = operation
        self.details.update({"operation": operation})


class SyncInProgressException(AppException):
    """
    Excepción cuando se intenta iniciar una sincronización con otra en curso.
    """

    def __init__(self, message: str = "Sync already in progress", running_sync_type: Optional[str] = None, **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.SYNC_IN_PROGRESS,
            status_code=409,
            severity=ErrorSeverity.LOW,
            **kwargs,
        )
        self.running_sync_type = running_sync_type
        self.details.update({"running_sync_type": running_sync_type})



# === FUNCIONES DE UTILIDAD ===


def create_error_response(exception: Union[AppException, Exception]) -> Dict[str, Any]:
    """
    Crea respuesta de error estandardizada.

    Args:
        exception: Excepción a convertir

    Returns:
        Dict: Respuesta de error
    """
    if isinstance(exception, AppException):
        error_dict = exception.to_dict()
    else:
        error_dict = AppException(
            message=f"{type(exception).__name__}: {exception}",
            details={"original_exception": type(exception).__name__},
        ).to_dict()

    return {"error": True, **error_dict}


def log_error(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None,
    level: int = logging.ERROR,
) -> None:
    """
    Loggea un error de manera consistente.

    Args:
        exception: Excepción a loggear
        context: Contexto adicional
        level: Nivel de logging
    """
    context = context or {}

    log_data = {
        "exception_type": type(exception).__name__,
        "exception_message": str(exception),
        "traceback": "".join(traceback.format_exception(type(exception), exception, exception.__traceback__)),
        **context,
    }

    if isinstance(exception, AppException):
        message = f"{exception.error_code.value}: {exception.message}"
        log_data.update(
            {
                "error_code": exception.error_code.value,
                "severity": exception.severity.value,
                "is_retryable": exception.is_retryable,
            }
        )
    else:
        message = f"Unhandled exception: {type(exception).__name__}: {str(exception)}"

    logger.log(level, message, extra=log_data)
