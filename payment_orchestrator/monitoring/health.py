"""
Health checks for Kubernetes readiness/liveness probes.

Checks:
- Cache (Redis) connectivity
- Stripe configuration
"""
from typing import Any, Dict

import structlog

from payment_orchestrator.cache import CacheStore
from payment_orchestrator.config import Settings

logger = structlog.get_logger(__name__)


class HealthCheckError(Exception):
    """Raised when health check fails."""

    pass


class HealthCheck:
    """Health check service for the orchestrator's dependencies."""

    def __init__(self, cache: CacheStore, settings: Settings) -> None:
        """
        Initialize health check service.

        Args:
            cache: Cache store shared with the ledger
            settings: Application settings
        """
        self.cache = cache
        self.settings = settings

    async def check_cache(self) -> Dict[str, Any]:
        """
        Check cache connectivity.

        Raises:
            HealthCheckError: If the cache does not answer
        """
        if not await self.cache.ping():
            logger.error("cache_health_check_failed")
            raise HealthCheckError("Cache ping failed")

        return {
            "status": "healthy",
            "service": "cache",
            "message": "Cache connection successful",
        }

    def check_stripe(self) -> Dict[str, Any]:
        """Report Stripe configuration without calling the API."""
        return {
            "status": "healthy",
            "service": "stripe",
            "test_mode": self.settings.is_test_mode,
        }

    async def check_all(self) -> Dict[str, Any]:
        """
        Run all health checks.

        Returns:
            Dict[str, Any]: Overall health status
        """
        checks: Dict[str, Any] = {}
        all_healthy = True

        try:
            checks["cache"] = await self.check_cache()
        except HealthCheckError as e:
            checks["cache"] = {
                "status": "unhealthy",
                "service": "cache",
                "error": str(e),
            }
            all_healthy = False

        checks["stripe"] = self.check_stripe()

        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
        }

    async def liveness(self) -> Dict[str, Any]:
        """Simple check that the application is running."""
        return {
            "status": "alive",
            "message": "Application is running",
        }

    async def readiness(self) -> Dict[str, Any]:
        """Checks if application is ready to accept traffic."""
        return await self.check_all()
