"""
Base Repository for local catalog database operations.

This module provides an abstract base class for the repository classes,
implementing common functionality like connection management, session handling,
error handling, and table access verification.
"""

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from feedsync.db.connection import ConnDB, get_db_connection
from feedsync.utils.error_handler import PersistenceException

logger = logging.getLogger(__name__)

Statement = Tuple[str, Dict[str, Any]]


def with_retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: tuple = (PersistenceException,),
) -> Callable:
    """
    Decorator for retrying database operations with exponential backoff.

    Args:
        max_attempts: Maximum number of retry attempts
        delay: Initial delay between retries in seconds
        backoff: Multiplier for exponential backoff
        exceptions: Tuple of exceptions to catch and retry

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            current_delay = delay

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_attempts - 1:
                        logger.error(f"All {max_attempts} attempts failed for {func.__name__}")
                        raise
                    logger.warning(
                        f"Attempt {attempt + 1}/{max_attempts} failed for {func.__name__}: {e}. "
                        f"Retrying in {current_delay:.1f}s..."
                    )
                    await asyncio.sleep(current_delay)
                    current_delay *= backoff

        return wrapper

    return decorator


def log_operation(operation_name: Optional[str] = None) -> Callable:
    """
    Decorator for logging database operations.

    Args:
        operation_name: Optional custom name for the operation

    Returns:
        Decorated function with logging
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            op_name = operation_name or f"{self.__class__.__name__}.{func.__name__}"
            logger.debug(f"Starting operation: {op_name}")

            try:
                result = await func(self, *args, **kwargs)
                logger.debug(f"Operation successful: {op_name}")
                return result
            except Exception as e:
                logger.error(f"Operation failed: {op_name} - {e}")
                raise

        return wrapper

    return decorator


class BaseRepository(ABC):
    """
    Abstract base repository for local database operations.

    This class provides common functionality for repository classes:
    - Connection management through ConnDB
    - Session handling with context managers
    - Table access verification
    - Error wrapping into PersistenceException

    Derived repositories implement their specific domain operations.
    """

    def __init__(self, conn_db: Optional[ConnDB] = None):
        """
        Initialize the base repository.

        Args:
            conn_db: Optional database connection. If not provided, uses global connection.
        """
        self.conn_db: ConnDB = conn_db or get_db_connection()
        self._initialized: bool = False
        self._repository_name: str = self.__class__.__name__
        logger.debug(f"{self._repository_name} instantiated")

    @log_operation("repository_initialization")
    async def initialize(self) -> None:
        """
        Initialize the repository ensuring the database connection and schema exist.

        Raises:
            PersistenceException: If initialization fails
        """
        try:
            if not self.conn_db.is_initialized():
                await self.conn_db.initialize()

            await self._create_schema()
            await self._verify_table_access()

            self._initialized = True
            logger.info(f"{self._repository_name} initialized successfully")

        except PersistenceException:
            raise
        except Exception as e:
            logger.error(f"Failed to initialize {self._repository_name}: {e}")
            raise PersistenceException(
                message=f"Failed to initialize {self._repository_name}: {str(e)}",
                operation="repository_initialization",
            ) from e

    async def _create_schema(self) -> None:
        """Hook for repositories that own their schema. Default: nothing to create."""

    @abstractmethod
    async def _verify_table_access(self) -> None:
        """
        Verify access to the tables required by this repository.

        Raises:
            PersistenceException: If table access verification fails
        """

    async def close(self) -> None:
        """Mark the repository as closed; the engine is owned by ConnDB."""
        self._initialized = False
        logger.info(f"{self._repository_name} closed")

    def is_initialized(self) -> bool:
        """
        Check if the repository is initialized and ready for operations.

        Returns:
            bool: True if repository is initialized
        """
        return self._initialized and self.conn_db.is_initialized()

    def get_session(self) -> AsyncContextManager[AsyncSession]:
        """
        Get a database session.

        Returns:
            AsyncContextManager[AsyncSession]: Database session context manager

        Raises:
            PersistenceException: If the connection is not initialized
        """
        return self.conn_db.get_session()

    async def fetch_all(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Execute a read query and return every row as a dict.

        Raises:
            PersistenceException: If query execution fails
        """
        try:
            async with self.get_session() as session:
                result = await session.execute(text(query), params or {})
                return [dict(row) for row in result.mappings().all()]
        except PersistenceException:
            raise
        except Exception as e:
            logger.error(f"Query execution failed: {e}")
            raise PersistenceException(
                message=f"Query execution failed: {str(e)}",
                operation="query_execution",
            ) from e

    async def fetch_one(self, query: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute a read query and return the first row, or None."""
        rows = await self.fetch_all(query, params)
        return rows[0] if rows else None

    async def fetch_scalar(self, query: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Execute a read query and return the first column of the first row."""
        row = await self.fetch_one(query, params)
        if row is None:
            return None
        return next(iter(row.values()))

    async def execute_query_with_commit(self, query: str, params: Optional[Dict[str, Any]] = None) -> int:
        """
        Execute a write statement with automatic commit.

        Args:
            query: SQL statement
            params: Optional statement parameters

        Returns:
            int: Number of affected rows

        Raises:
            PersistenceException: If execution fails
        """
        return (await self.execute_in_transaction([(query, params or {})]))[0]

    async def execute_in_transaction(self, statements: Sequence[Statement]) -> List[int]:
        """
        Execute several write statements in a single transaction.

        Args:
            statements: (query, params) pairs, executed in order

        Returns:
            List[int]: Affected row count per statement

        Raises:
            PersistenceException: If any statement fails (nothing is committed)
        """
        try:
            async with self.get_session() as session:
                async with session.begin():
                    rowcounts = []
                    for query, params in statements:
                        result = await session.execute(text(query), params)
                        rowcounts.append(result.rowcount)
                return rowcounts
        except PersistenceException:
            raise
        except Exception as e:
            logger.error(f"Query execution with commit failed: {e}")
            raise PersistenceException(
                message=f"Query execution with commit failed: {str(e)}",
                operation="query_execution_commit",
            ) from e

    def __repr__(self) -> str:
        return f"{self._repository_name}(initialized={self.is_initialized()})"
