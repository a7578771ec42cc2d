"""Async HTTP client for a World Engine game backend.

Every request made through WorldClient runs through an interceptor
pipeline before it reaches the network. The pipeline always ends with a
signer, so persona creation and game transactions are signed on the way
out while all other routes are sent unchanged.
"""

from __future__ import annotations
import logging
from typing import Any, Optional, TYPE_CHECKING

import httpx

from worldsign.constants import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT,
    GAME_TX_PREFIX,
    HEALTH_PATH,
    NAMESPACE_FETCH,
    NAMESPACE_PARAM,
    NAMESPACE_SOURCES,
    PERSONA_CREATE_PATH,
    WORLD_PATH,
)
from worldsign.interceptor import (
    InterceptorPipeline,
    QueryNamespaceSignerInterceptor,
    SignerInterceptor,
    signing_extensions,
)
from worldsign.models import WorldInfo
from worldsign.namespace import NamespaceResolver

if TYPE_CHECKING:
    from worldsign.config import WorldSignConfig

logger = logging.getLogger(__name__)


class InterceptingTransport(httpx.AsyncBaseTransport):
    """Runs an interceptor pipeline on each request, then delegates."""

    def __init__(self, inner: httpx.AsyncBaseTransport,
                 pipeline: InterceptorPipeline):
        self._inner = inner
        self._pipeline = pipeline

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        request = await self._pipeline.intercept(request)
        return await self._inner.handle_async_request(request)

    async def aclose(self) -> None:
        await self._inner.aclose()


class WorldClient:
    """Client for the persona and transaction endpoints of a game shard.

    namespace_source selects how the signer learns the namespace:
    "fetch" (default) reads it once from GET /world, "query" takes it from
    the _namespace query parameter of each request.
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, *,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 timeout: float = DEFAULT_TIMEOUT,
                 namespace_source: str = NAMESPACE_FETCH,
                 strict_envelopes: bool = False,
                 interceptors: Optional[list] = None):
        if namespace_source not in NAMESPACE_SOURCES:
            raise ValueError(
                f"Invalid namespace source '{namespace_source}': "
                f"expected one of {', '.join(NAMESPACE_SOURCES)}"
            )

        self._base_url = base_url.rstrip("/")
        self._namespace_source = namespace_source
        self._pipeline = InterceptorPipeline(interceptors)
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            transport=InterceptingTransport(
                transport or httpx.AsyncHTTPTransport(), self._pipeline
            ),
        )
        self._resolver = NamespaceResolver(self._http)

        if namespace_source == NAMESPACE_FETCH:
            self._pipeline.add(
                SignerInterceptor(self._resolver, strict=strict_envelopes)
            )
        else:
            self._pipeline.add(
                QueryNamespaceSignerInterceptor(strict=strict_envelopes)
            )

    @classmethod
    def from_config(cls, config: "WorldSignConfig",
                    transport: Optional[httpx.AsyncBaseTransport] = None) -> "WorldClient":
        return cls(
            config.api.base_url,
            transport=transport,
            timeout=config.api.timeout,
            namespace_source=config.signing.namespace_source,
            strict_envelopes=config.signing.strict_envelopes,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def namespace(self) -> Optional[str]:
        """Namespace cached by the resolver, None until first resolved."""
        return self._resolver.namespace

    @property
    def resolver(self) -> NamespaceResolver:
        return self._resolver

    async def __aenter__(self) -> "WorldClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send an arbitrary request through the interceptor pipeline."""
        return await self._http.request(method, path, **kwargs)

    async def get_world(self) -> WorldInfo:
        response = await self._http.get(WORLD_PATH)
        response.raise_for_status()
        return WorldInfo.model_validate(response.json())

    async def health(self) -> Any:
        response = await self._http.get(HEALTH_PATH)
        response.raise_for_status()
        return response.json()

    async def create_persona(self, persona_tag: str, private_key: str,
                             namespace: Optional[str] = None) -> Any:
        """Register persona_tag against the address of private_key.

        namespace is only sent (as a query parameter) when given; the
        default signer fetches it from the backend instead.
        """
        response = await self._http.post(
            PERSONA_CREATE_PATH,
            json={"personaTag": persona_tag},
            params=self._params(namespace),
            extensions=signing_extensions(private_key),
        )
        response.raise_for_status()
        logger.info("Created persona '%s'", persona_tag)
        return response.json()

    async def submit_transaction(self, tx_name: str, persona_tag: str,
                                 payload: Any, private_key: str,
                                 namespace: Optional[str] = None) -> Any:
        """Submit a signed game transaction (POST /tx/game/{tx_name})."""
        response = await self._http.post(
            f"{GAME_TX_PREFIX}{tx_name}",
            json={"personaTag": persona_tag, "body": payload},
            params=self._params(namespace),
            extensions=signing_extensions(private_key),
        )
        response.raise_for_status()
        logger.info("Submitted transaction '%s' for persona '%s'",
                    tx_name, persona_tag)
        return response.json()

    @staticmethod
    def _params(namespace: Optional[str]) -> dict:
        return {NAMESPACE_PARAM: namespace} if namespace else {}
