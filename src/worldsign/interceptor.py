"""Request interceptors that sign World Engine transactions in flight.

Interceptors run on every outgoing httpx request before it reaches the
transport. Signable routes get their JSON body rebuilt with a signature;
everything else passes through untouched.

Routing (exact path match, in order):

    /tx/persona/create-persona  -> persona-creation envelope
    /tx/game/...                -> game-transaction envelope
    anything else               -> unchanged

The private key comes from a SigningContext in the request extensions,
falling back to the _privateKey query parameter. Query parameters stay in
the URL; the extension is dropped from the rebuilt request.
"""

from __future__ import annotations
import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

import httpx

from worldsign.canonical import (
    canonical_json,
    game_transaction_message,
    persona_body,
    persona_creation_message,
)
from worldsign.constants import (
    GAME_TX_PREFIX,
    NAMESPACE_PARAM,
    PERSONA_CREATE_PATH,
    PRIVATE_KEY_PARAM,
    SIGNING_EXTENSION,
    TxKind,
)
from worldsign.crypto import load_private_key, sign_message
from worldsign.errors import MessageCanonicalizationAmbiguity
from worldsign.namespace import NamespaceResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SigningContext:
    """Request-scoped signing inputs that never appear in the URL."""

    private_key: str

    def __repr__(self) -> str:
        return "SigningContext(private_key=<redacted>)"


def signing_extensions(private_key: str) -> dict:
    """Extensions dict to pass to an httpx request to have it signed."""
    return {SIGNING_EXTENSION: SigningContext(private_key=private_key)}


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"{text} overflows a double")
    return value


def route_kind(path: str) -> Optional[str]:
    """Map a URL path to the transaction kind it carries, if any."""
    if path == PERSONA_CREATE_PATH:
        return TxKind.PERSONA_CREATE
    if path.startswith(GAME_TX_PREFIX):
        return TxKind.GAME_TX
    return None


def base_origin(url: httpx.URL) -> str:
    """Scheme and host (with port) of a URL."""
    return f"{url.scheme}://{url.netloc.decode('ascii')}"


def rebuild_request(request: httpx.Request, body: Any) -> httpx.Request:
    """Copy a request with a new JSON body.

    Method, URL, headers and extensions are carried over unchanged except
    for Content-Length, which is recomputed, and the signing context,
    which is dropped.
    """
    content = canonical_json(body).encode("utf-8")
    headers = request.headers.copy()
    headers.pop("Content-Length", None)
    headers.pop("Transfer-Encoding", None)
    extensions = {
        k: v for k, v in request.extensions.items() if k != SIGNING_EXTENSION
    }
    return httpx.Request(
        request.method,
        request.url,
        headers=headers,
        content=content,
        extensions=extensions,
    )


@runtime_checkable
class RequestInterceptor(Protocol):
    """Rewrites an outgoing request before it is sent."""

    async def intercept(self, request: httpx.Request) -> httpx.Request:
        ...


class PassthroughInterceptor:
    """Sends every request unmodified."""

    async def intercept(self, request: httpx.Request) -> httpx.Request:
        return request


class SignerInterceptor:
    """Signs persona-creation and game-transaction requests.

    The namespace is fetched from the backend through a NamespaceResolver
    the first time a signable request is seen.

    With strict=False (the default), missing personaTag/body fields are
    logged and signed over as empty values, leaving rejection to the
    server. With strict=True they raise MessageCanonicalizationAmbiguity.
    """

    def __init__(self, resolver: NamespaceResolver, strict: bool = False):
        self._resolver = resolver
        self._strict = strict

    async def intercept(self, request: httpx.Request) -> httpx.Request:
        kind = route_kind(request.url.path)
        if kind is None:
            return request

        body = await self._read_body(request)
        private_key = self._private_key(request)
        account = load_private_key(private_key)
        namespace = await self._namespace(request)

        persona_tag = body.get("personaTag")
        self._check_field(request, "personaTag", persona_tag)

        if kind == TxKind.PERSONA_CREATE:
            message = persona_creation_message(persona_tag, namespace, account.address)
            signed_body = {
                **body,
                "signature": sign_message(message, account.key),
                "body": persona_body(persona_tag, account.address),
            }
        else:
            self._check_field(request, "body", body.get("body"), allow_falsy=True)
            message = game_transaction_message(persona_tag, namespace, body.get("body"))
            signed_body = {**body, "signature": sign_message(message, account.key)}

        logger.info("Signed %s request %s for persona '%s' as %s",
                    kind, request.url.path, persona_tag or "", account.address)
        return rebuild_request(request, signed_body)

    async def _namespace(self, request: httpx.Request) -> str:
        return await self._resolver.resolve(base_origin(request.url))

    @staticmethod
    def _private_key(request: httpx.Request) -> Optional[str]:
        context = request.extensions.get(SIGNING_EXTENSION)
        if isinstance(context, SigningContext):
            return context.private_key
        return request.url.params.get(PRIVATE_KEY_PARAM)

    @staticmethod
    async def _read_body(request: httpx.Request) -> dict:
        raw = await request.aread()
        if not raw:
            return {}
        try:
            body = json.loads(raw, parse_constant=_reject_constant,
                              parse_float=_finite_float)
        except ValueError as e:
            raise MessageCanonicalizationAmbiguity(
                f"{request.url.path}: request body is not valid JSON"
            ) from e
        if not isinstance(body, dict):
            raise MessageCanonicalizationAmbiguity(
                f"{request.url.path}: request body must be a JSON object"
            )
        return body

    def _check_field(self, request: httpx.Request, name: str, value: Any,
                     allow_falsy: bool = False) -> None:
        missing = value is None if allow_falsy else not value
        if not missing:
            return
        if self._strict:
            raise MessageCanonicalizationAmbiguity(
                f"{request.url.path}: request body is missing '{name}'"
            )
        logger.warning("%s: request body is missing '%s'; signing anyway",
                       request.url.path, name)


class QueryNamespaceSignerInterceptor(SignerInterceptor):
    """Legacy signer that reads the namespace from the _namespace query parameter.

    No network fetch is made; an absent parameter signs over an empty
    namespace.
    """

    def __init__(self, strict: bool = False):
        self._strict = strict

    async def _namespace(self, request: httpx.Request) -> str:
        namespace = request.url.params.get(NAMESPACE_PARAM, "")
        self._check_field(request, NAMESPACE_PARAM, namespace)
        return namespace


class InterceptorPipeline:
    """Ordered chain of interceptors; each sees the previous one's output."""

    def __init__(self, interceptors: Optional[list] = None):
        self._interceptors: list = list(interceptors or [])

    def add(self, interceptor: RequestInterceptor) -> None:
        self._interceptors.append(interceptor)

    def __len__(self) -> int:
        return len(self._interceptors)

    async def intercept(self, request: httpx.Request) -> httpx.Request:
        for interceptor in self._interceptors:
            request = await interceptor.intercept(request)
        return request
