"""
Protocols (Interfaces) for Dependency Inversion.

Services depend on these small interfaces instead of concrete classes.
"""
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

from .models import NetworkQuality


@runtime_checkable
class IQualitySource(Protocol):
    """Anything exposing the latest sampled network quality."""

    @property
    def current_quality(self) -> NetworkQuality:
        ...


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for HTTP operations."""

    async def post(
        self,
        url: str,
        data: Optional[Dict[str, str]] = None,
        files: Optional[Dict[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        retries: int = 0,
    ) -> Any:
        """POST request, raises on non-2xx."""
        ...

    async def get(self, url: str, check_status: bool = True, timeout: Optional[float] = None) -> Any:
        """GET request."""
        ...
