"""Lazy, single-flight resolution of the backend namespace.

The namespace is fetched from GET {origin}/world the first time a signable
request needs it and cached on the resolver. Concurrent callers that arrive
while the fetch is pending await the same task instead of starting their
own. A failed fetch is not cached, so the next caller starts a new one.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from worldsign.constants import WORLD_PATH
from worldsign.errors import NamespaceUnavailable
from worldsign.models import WorldInfo

logger = logging.getLogger(__name__)


class NamespaceResolver:
    """Owns the namespace cache for one client instance."""

    def __init__(self, http: httpx.AsyncClient):
        self._http = http
        self._namespace: Optional[str] = None
        self._pending: Optional[asyncio.Task] = None

    @property
    def namespace(self) -> Optional[str]:
        """The cached namespace, or None if it has not been resolved yet."""
        return self._namespace

    async def resolve(self, base_origin: str) -> str:
        """Return the namespace, fetching it at most once at a time."""
        if self._namespace is not None:
            return self._namespace

        if self._pending is None:
            task = asyncio.ensure_future(self._fetch(base_origin))
            task.add_done_callback(self._on_fetch_done)
            self._pending = task

        # Shielded: cancelling one caller must not cancel the shared fetch.
        return await asyncio.shield(self._pending)

    def _on_fetch_done(self, task: asyncio.Task) -> None:
        if self._pending is task:
            self._pending = None
        if task.cancelled():
            return
        # Retrieves the exception so an unawaited failure is not reported
        if task.exception() is None:
            self._namespace = task.result()

    async def _fetch(self, base_origin: str) -> str:
        url = f"{base_origin.rstrip('/')}{WORLD_PATH}"
        logger.debug("Fetching namespace from %s", url)

        try:
            response = await self._http.get(url)
            response.raise_for_status()
            info = WorldInfo.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            raise NamespaceUnavailable(
                f"{url} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise NamespaceUnavailable(f"Failed to fetch {url}: {e}") from e
        except ValidationError as e:
            raise NamespaceUnavailable(f"{url} has no namespace field") from e
        except ValueError as e:
            raise NamespaceUnavailable(f"{url} returned malformed JSON") from e

        logger.info("Resolved namespace from %s", url)
        return info.namespace
