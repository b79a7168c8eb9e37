"""
Base Service Class for long-lived harness services.

Provides common start/stop lifecycle handling.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

from src.soak.utils.logging import get_logger

logger = get_logger(__name__)


class BaseService(ABC):
    """Base class for services with lifecycle management."""

    def __init__(self, service_name: str = "base_service"):
        self.service_name = service_name
        self._is_running = False
        self._startup_time: float | None = None

    @property
    def is_running(self) -> bool:
        return self._is_running

    @abstractmethod
    async def start_service(self) -> None:
        """Start the service. Must be implemented by subclasses."""

    @abstractmethod
    async def stop_service(self) -> None:
        """Stop the service. Must be implemented by subclasses."""

    async def start(self) -> None:
        if self._is_running:
            logger.warning(f"Service {self.service_name} is already running")
            return

        logger.info(f"Starting service: {self.service_name}")
        try:
            await self.start_service()
        except Exception as e:
            logger.error(f"Failed to start service {self.service_name}: {e}")
            self._is_running = False
            raise

        self._is_running = True
        self._startup_time = asyncio.get_running_loop().time()
        logger.info(f"Service {self.service_name} started successfully")

    async def stop(self) -> None:
        if not self._is_running:
            logger.warning(f"Service {self.service_name} is not running")
            return

        logger.info(f"Stopping service: {self.service_name}")
        try:
            await self.stop_service()
        except Exception as e:
            logger.error(f"Error stopping service {self.service_name}: {e}")
            raise
        finally:
            self._is_running = False
            self._startup_time = None

        logger.info(f"Service {self.service_name} stopped successfully")

    def get_status(self) -> dict[str, Any]:
        uptime = 0.0
        if self._startup_time is not None:
            uptime = asyncio.get_running_loop().time() - self._startup_time
        return {
            "service_name": self.service_name,
            "is_running": self._is_running,
            "uptime_seconds": uptime,
        }

    async def __aenter__(self) -> "BaseService":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        await self.stop()
        return False
