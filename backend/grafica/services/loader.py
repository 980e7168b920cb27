import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from starlette.concurrency import run_in_threadpool

from grafica.errors import log_backend_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancelToken:
    """Set once the consumer of a load goes away; late results are then dropped."""

    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class LoadResult(Generic[T]):
    data: Optional[T] = None
    error: Optional[str] = None
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.stale


class SafeLoader(Generic[T]):
    """Run a loader, turning failures into a readable message instead of raising.

    Sync loaders run in the threadpool so the event loop is never blocked by
    a database round trip; coroutine functions are awaited directly.
    """

    def __init__(self, load_fn: Callable[[], Any], where: str = "page.load"):
        self.load_fn = load_fn
        self.where = where

    async def run(self, token: Optional[CancelToken] = None) -> LoadResult:
        token = token or CancelToken()
        try:
            if asyncio.iscoroutinefunction(self.load_fn):
                data = await self.load_fn()
            else:
                data = await run_in_threadpool(self.load_fn)
        except Exception as e:
            msg = log_backend_error(self.where, e)
            if token.cancelled:
                return LoadResult(stale=True)
            return LoadResult(error=msg)
        if token.cancelled:
            logger.debug("Discarding stale result for %s", self.where)
            return LoadResult(stale=True)
        return LoadResult(data=data)


async def refresh_collections(store, loaders: Dict[str, Callable[[], Any]],
                              token: Optional[CancelToken] = None) -> Dict[str, Optional[str]]:
    """Reload cached collections into the store.

    `loaders` maps a collection name (clients, materials, inks, services) to
    a zero-arg loader. Each collection is applied only if its load succeeded
    and the token is still live. Returns the error message per collection.
    """
    token = token or CancelToken()
    setters = {
        "clients": store.set_clients,
        "materials": store.set_materials,
        "inks": store.set_inks,
        "services": store.set_services,
    }
    errors: Dict[str, Optional[str]] = {}
    for name, load_fn in loaders.items():
        result = await SafeLoader(load_fn, where=f"{name}.load").run(token)
        if result.stale:
            break
        errors[name] = result.error
        if result.ok:
            setters[name](result.data or [])
    return errors
