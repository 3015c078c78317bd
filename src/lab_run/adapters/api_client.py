"""Lab REST API client - adapter for the key-value resource store.

Every collection (test_orders, instruments, reagents, test_results,
test_result_rows) is exposed by the store with the same verbs, so a single
client serves them all.
"""

import abc
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

import config

logger = logging.getLogger(__name__)


def _item(resource: str, record_id: str) -> str:
    return f"/{resource}/{quote(str(record_id), safe='')}"


class LabApiError(Exception):
    """Exception raised for errors talking to the REST resource store."""
    pass


class ResourceNotFound(LabApiError):
    """The requested record does not exist (HTTP 404)."""
    pass


class AbstractLabApiClient(abc.ABC):
    """Abstract base class for REST resource store clients."""

    @abc.abstractmethod
    async def list(self, resource: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Fetch all records of a collection, optionally filtered by query params.

        Raises:
            LabApiError: If the request fails
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def get(self, resource: str, record_id: str) -> Dict[str, Any]:
        """
        Fetch a single record by id.

        Raises:
            ResourceNotFound: If the record does not exist
            LabApiError: If the request fails
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def create(self, resource: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    @abc.abstractmethod
    async def patch(self, resource: str, record_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    @abc.abstractmethod
    async def put(self, resource: str, record_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    @abc.abstractmethod
    async def delete(self, resource: str, record_id: str) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class HTTPLabApiClient(AbstractLabApiClient):
    """httpx-based client for the REST resource store."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL of the resource store. If None, uses config.
            timeout: Request timeout in seconds. If None, uses config.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = (base_url or config.get_api_base_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else config.get_api_timeout()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        logger.debug(f"{method} {self.base_url}{path}")
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.info(f"{method} {path} -> 404")
                raise ResourceNotFound(f"{path} not found") from e
            logger.error(f"HTTP error on {method} {path}: {e}")
            raise LabApiError(f"{method} {path} failed: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"Network error on {method} {path}: {e}")
            raise LabApiError(f"Network error: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise LabApiError(f"Invalid JSON from {method} {path}") from e

    async def list(self, resource, params=None):
        data = await self._request("GET", f"/{resource}", params=params)
        if not isinstance(data, list):
            return []
        return data

    async def get(self, resource, record_id):
        data = await self._request("GET", _item(resource, record_id))
        if not data:
            raise ResourceNotFound(f"/{resource}/{record_id} not found")
        return data

    async def create(self, resource, payload):
        return await self._request("POST", f"/{resource}", json=payload) or {}

    async def patch(self, resource, record_id, changes):
        return await self._request("PATCH", _item(resource, record_id), json=changes) or {}

    async def put(self, resource, record_id, payload):
        return await self._request("PUT", _item(resource, record_id), json=payload) or {}

    async def delete(self, resource, record_id):
        await self._request("DELETE", _item(resource, record_id))
