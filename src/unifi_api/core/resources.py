"""
UniFi API Client - REST Resource Adapter

Thin generic adapter over one ``rest/<resource>`` collection of the network
application. Resource schemas are left to the caller: items are plain dicts
unless a pydantic model is supplied.
"""

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel

from ..shared.endpoints import build_rest_path
from ..shared.error_handlers import validate_site
from .batch import BatchResult, batch_create, batch_delete, batch_get, batch_update
from .cancellation import CancelToken
from .exceptions import ValidationError
from .messages import Request

if TYPE_CHECKING:
    from .client import UniFiClient

T = TypeVar("T")


class RestResource(Generic[T]):
    """CRUD operations for one REST collection on one site."""

    def __init__(
        self,
        client: "UniFiClient",
        resource: str,
        site: Optional[str] = None,
        model: Optional[Type[BaseModel]] = None,
    ):
        if not resource:
            raise ValidationError("resource name is required")
        self.client = client
        self.resource = resource
        self.site = site or client.config.site
        validate_site(self.site, f"{resource} resource")
        self.model = model

    def path(self, resource_id: str = "") -> str:
        return build_rest_path(self.site, self.resource, resource_id)

    def _convert(self, raw: Any) -> T:
        if self.model is None:
            return raw
        return self.model.model_validate(raw)

    def _item_id(self, item: Any) -> str:
        if isinstance(item, BaseModel):
            item_id = getattr(item, "id", None) or (item.model_extra or {}).get("_id")
        else:
            item_id = item.get("_id") or item.get("id")
        if not item_id:
            raise ValidationError(f"{self.resource} item has no _id", context={"resource": self.resource})
        return item_id

    async def list(self, cancel: Optional[CancelToken] = None) -> List[T]:
        envelope = await self.client.request(Request("GET", self.path()), cancel)
        return [self._convert(raw) for raw in envelope.data]

    async def get(self, resource_id: str, cancel: Optional[CancelToken] = None) -> T:
        if not resource_id:
            raise ValidationError(f"{self.resource} id is required")
        path = self.path(resource_id)
        envelope = await self.client.request(Request("GET", path), cancel)
        return self._convert(envelope.first(path))

    async def create(self, item: Any, cancel: Optional[CancelToken] = None) -> T:
        path = self.path()
        envelope = await self.client.request(Request("POST", path, body=item), cancel)
        return self._convert(envelope.first(path))

    async def update(self, item: Any, cancel: Optional[CancelToken] = None) -> T:
        """Send the full item to ``rest/<resource>/<_id>``."""
        path = self.path(self._item_id(item))
        envelope = await self.client.request(Request("PUT", path, body=item), cancel)
        return self._convert(envelope.first(path))

    async def delete(self, resource_id: str, cancel: Optional[CancelToken] = None) -> None:
        if not resource_id:
            raise ValidationError(f"{self.resource} id is required")
        await self.client.request(Request("DELETE", self.path(resource_id)), cancel)

    async def batch_get(self, ids: Sequence[str], cancel: Optional[CancelToken] = None,
                        max_concurrency: Optional[int] = None) -> List[BatchResult[T]]:
        return await batch_get(ids, self.get, cancel, max_concurrency)

    async def batch_create(self, items: Sequence[Any], cancel: Optional[CancelToken] = None,
                           max_concurrency: Optional[int] = None) -> List[BatchResult[T]]:
        return await batch_create(items, self.create, cancel, max_concurrency)

    async def batch_update(self, items: Sequence[Any], cancel: Optional[CancelToken] = None,
                           max_concurrency: Optional[int] = None) -> List[BatchResult[T]]:
        return await batch_update(items, self.update, cancel, max_concurrency)

    async def batch_delete(self, ids: Sequence[str], cancel: Optional[CancelToken] = None,
                           max_concurrency: Optional[int] = None) -> List[Optional[BaseException]]:
        return await batch_delete(ids, self.delete, cancel, max_concurrency)
