"""
Sistema de manejo de reintentos.

Este módulo implementa las estrategias de retry usadas por el cliente de
Shopify y por las operaciones masivas auxiliares:
- RetryPolicy: backoff exponencial con jitter (rate limiting)
- retry_bounded: reintento acotado con backoff lineal
- batched: procesamiento por lotes de tamaño fijo con pausa entre lotes
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

from feedsync.utils.error_handler import AppException

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# Pausa entre lotes (segundos)
BATCH_PAUSE_SECONDS = 0.1


class RetryPolicy:
    """
    Política de reintentos configurable.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
    ):
        """
        Inicializa la política de reintentos.

        Args:
            max_attempts: Número máximo de intentos
            base_delay: Delay base en segundos
            max_delay: Delay máximo en segundos
            exponential_base: Base para backoff exponencial
            jitter: Si agregar jitter aleatorio
        """
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter

    def should_retry(self, exception: Exception, attempt: int) -> bool:
        """
        Determina si debe reintentar la operación.

        Args:
            exception: Excepción que ocurrió
            attempt: Número de intento actual

        Returns:
            bool: True si debe reintentar
        """
        if attempt >= self.max_attempts:
            return False

        if isinstance(exception, AppException):
            return exception.is_retryable

        return True

    def calculate_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """
        Calcula el delay antes del siguiente intento.

        Args:
            attempt: Número de intento (empieza en 1)
            retry_after: Delay indicado por el servidor (header Retry-After)

        Returns:
            float: Segundos a esperar
        """
        if retry_after is not None and retry_after >= 0:
            return min(retry_after, self.max_delay)

        # Backoff exponencial
        delay = self.base_delay * (self.exponential_base ** (attempt - 1))

        # Aplicar jitter
        if self.jitter:
            jitter_range = delay * 0.1
            delay += random.uniform(-jitter_range, jitter_range)

        delay = min(delay, self.max_delay)

        return max(delay, 0)


async def retry_bounded(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
) -> T:
    """
    Ejecuta una operación con reintentos acotados y backoff lineal.

    El intento N espera ``base_delay * N`` segundos antes del siguiente.
    Si todos los intentos fallan se propaga la última excepción.

    Args:
        func: Corutina sin argumentos a ejecutar
        max_attempts: Número máximo de intentos
        base_delay: Delay base en segundos

    Returns:
        Resultado de la operación
    """
    if max_attempts < 1:
        raise ValueError("max_attempts debe ser al menos 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except Exception as e:
            if attempt >= max_attempts:
                logger.error(f"All {max_attempts} attempts failed: {e}")
                raise

            delay = base_delay * attempt
            logger.warning(f"Attempt {attempt}/{max_attempts} failed: {e}. Retrying in {delay:.1f}s...")
            await asyncio.sleep(delay)

    # Inalcanzable: el último intento retorna o propaga
    raise RuntimeError("retry_bounded exited without result")


async def batched(
    items: Sequence[T],
    size: int,
    func: Callable[[T], Awaitable[R]],
    pause: float = BATCH_PAUSE_SECONDS,
) -> List[R]:
    """
    Aplica ``func`` a los elementos en lotes de tamaño fijo.

    Los elementos de un lote se ejecutan concurrentemente con asyncio.gather;
    si un lote falla se registra el error y se continúa con el siguiente.
    Entre lotes se hace una pausa corta para no saturar la API.

    Args:
        items: Elementos a procesar
        size: Tamaño de cada lote
        func: Corutina a aplicar a cada elemento
        pause: Pausa entre lotes en segundos

    Returns:
        List: Resultados de los lotes exitosos, en orden
    """
    if size < 1:
        raise ValueError("size debe ser al menos 1")

    results: List[Any] = []
    total_batches = (len(items) + size - 1) // size

    for batch_number, start in enumerate(range(0, len(items), size), start=1):
        batch = items[start : start + size]
        try:
            batch_results = await asyncio.gather(*(func(item) for item in batch))
            results.extend(batch_results)
        except Exception as e:
            logger.error(f"❌ Error processing batch {batch_number}/{total_batches}: {e}")

        if start + size < len(items):
            await asyncio.sleep(pause)

    return results
