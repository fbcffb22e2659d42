# feedsync/db/connection.py
"""
Clase ConnDB para gestión exclusiva de conexiones a la base de datos SQLite local.

Esta clase maneja únicamente la conexión, el engine asíncrono (aiosqlite)
y el ciclo de vida de las sesiones sobre el catálogo local.
"""

import logging
from pathlib import Path
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from feedsync.core.config import get_settings
from feedsync.utils.error_handler import PersistenceException

logger = logging.getLogger(__name__)


class ConnDB:
    """
    Clase para gestión de la conexión a la base de datos del catálogo.

    Se usa una instancia compartida a través de ``get_db_connection()``;
    los tests pueden crear instancias propias con otra URL.
    """

    def __init__(self, connection_string: Optional[str] = None, echo: Optional[bool] = None):
        """
        Inicializa la clase ConnDB.

        Args:
            connection_string: URL de SQLAlchemy (por defecto DATABASE_URL)
            echo: Log de queries SQL (por defecto DATABASE_ECHO)
        """
        settings = get_settings()
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[sessionmaker] = None
        self.connection_string = connection_string or settings.DATABASE_URL
        self.echo = settings.DATABASE_ECHO if echo is None else echo
        self._connection_tested = False
        logger.info("ConnDB instance created")

    def _ensure_database_directory(self) -> None:
        """Crea el directorio del archivo SQLite si no existe."""
        url = make_url(self.connection_string)
        if url.drivername.startswith("sqlite") and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    async def initialize(self):
        """
        Inicializa el engine de base de datos.

        Raises:
            PersistenceException: Si falla la inicialización
        """
        try:
            if self.engine is not None:
                logger.info("Database connection already initialized")
                return

            logger.info("Initializing database connection...")
            self._ensure_database_directory()

            self.engine = create_async_engine(
                self.connection_string,
                echo=self.echo,
                future=True,
            )

            # Crear factory de sesiones
            self.session_factory = sessionmaker(
                self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=True
            )

            # Verificar conexión inicial
            await self._test_connection()

            logger.info("Database connection initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database connection: {e}")
            await self._cleanup_failed_initialization()
            raise PersistenceException(
                message=f"Failed to initialize database connection: {str(e)}",
                operation="initialization",
            ) from e

    async def _test_connection(self):
        """
        Prueba la conexión a la base de datos.

        Raises:
            PersistenceException: Si la prueba de conexión falla
        """
        async with self.session_factory() as session:
            result = await session.execute(text("SELECT 1 as test_connection"))
            if result.scalar() != 1:
                raise PersistenceException(
                    message="Connection test returned unexpected value",
                    operation="test",
                )

        self._connection_tested = True
        logger.info("Connection test successful")

    async def _cleanup_failed_initialization(self):
        """Limpia recursos en caso de fallo de inicialización."""
        if self.engine:
            await self.engine.dispose()
        self.engine = None
        self.session_factory = None
        self._connection_tested = False

    def get_session(self) -> AsyncSession:
        """
        Obtiene una nueva sesión de base de datos.

        Returns:
            AsyncSession: Sesión asíncrona de SQLAlchemy

        Raises:
            PersistenceException: Si no hay conexión inicializada
        """
        if not self.is_initialized():
            raise PersistenceException(
                message="Database connection not initialized. Call initialize() first.",
                operation="session_creation",
            )

        return self.session_factory()

    def is_initialized(self) -> bool:
        """
        Verifica si la conexión está inicializada.

        Returns:
            bool: True si está inicializada y probada
        """
        return self.engine is not None and self.session_factory is not None and self._connection_tested

    async def close(self):
        """
        Cierra la conexión y limpia todos los recursos.
        """
        logger.info("Closing database connection...")

        if self.engine:
            await self.engine.dispose()
            logger.info("Database engine disposed")

        self.engine = None
        self.session_factory = None
        self._connection_tested = False

    def __repr__(self) -> str:
        return (
            f"ConnDB(initialized={self.is_initialized()}, "
            f"engine={self.engine is not None}, "
            f"session_factory={self.session_factory is not None})"
        )


# Instancia global compartida
_conn_db_instance: Optional[ConnDB] = None


def get_db_connection() -> ConnDB:
    """
    Obtiene la instancia compartida de ConnDB.

    Returns:
        ConnDB: Instancia de conexión a base de datos
    """
    global _conn_db_instance

    if _conn_db_instance is None:
        _conn_db_instance = ConnDB()

    return _conn_db_instance

