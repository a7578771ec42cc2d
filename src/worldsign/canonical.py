"""Canonical message construction for signed transactions.

A message is the plain concatenation

    personaTag + namespace + nonce + JSON(body)

where nonce is the fixed literal "0" and JSON is compact serialization
that keeps the key order it was given and formats numbers like
JavaScript's JSON.stringify (10.0 -> 10, 1e-7 -> 1e-7, 1e16 -> 10000000000000000).
"""

from __future__ import annotations
import json
import math
from decimal import Decimal
from typing import Any, Optional

from worldsign.constants import LEGACY_NONCE, TxKind


def js_number(value: float) -> str:
    """Format a float the way ECMAScript Number::toString does.

    NaN and infinities have no JSON form and raise ValueError.
    """
    if not math.isfinite(value):
        raise ValueError(f"Out of range float values are not JSON compliant: {value!r}")
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    # repr gives the shortest round-tripping digits, same as JS
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(map(str, digit_tuple)).rstrip("0")
    exponent += len(digit_tuple) - len(digits)
    k = len(digits)
    n = exponent + k  # value = 0.digits * 10^n

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        text = "0." + "0" * -n + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        text = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + text


def _key(key: Any) -> str:
    if isinstance(key, str):
        return key
    if key is None or isinstance(key, (bool, int, float)):
        return canonical_json(key)
    raise TypeError(f"keys must be str, int, float, bool or None, not {type(key).__name__}")


def canonical_json(value: Any) -> str:
    """Serialize value compactly, preserving dict insertion order."""
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return js_number(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, dict):
        items = (
            f"{json.dumps(_key(k), ensure_ascii=False)}:{canonical_json(v)}"
            for k, v in value.items()
        )
        return "{" + ",".join(items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(canonical_json(v) for v in value) + "]"
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def persona_body(persona_tag: Optional[str], signer_address: str) -> dict:
    """The nested body of a persona-creation envelope (key order matters)."""
    return {"personaTag": persona_tag or "", "signerAddress": signer_address}


def _prefix(persona_tag: Optional[str], namespace: Optional[str]) -> str:
    return f"{persona_tag or ''}{namespace or ''}{LEGACY_NONCE}"


def persona_creation_message(persona_tag: Optional[str],
                             namespace: Optional[str],
                             signer_address: str) -> str:
    return _prefix(persona_tag, namespace) + canonical_json(
        persona_body(persona_tag, signer_address)
    )


def game_transaction_message(persona_tag: Optional[str],
                             namespace: Optional[str],
                             payload: Any) -> str:
    return _prefix(persona_tag, namespace) + canonical_json(payload)


def build_message(kind: str, persona_tag: Optional[str],
                  namespace: Optional[str], payload: Any = None,
                  signer_address: Optional[str] = None) -> str:
    """Build the canonical message for a transaction kind."""
    if kind == TxKind.PERSONA_CREATE:
        if not signer_address:
            raise ValueError("signer_address is required for persona creation")
        return persona_creation_message(persona_tag, namespace, signer_address)
    if kind == TxKind.GAME_TX:
        return game_transaction_message(persona_tag, namespace, payload)
    raise ValueError(f"Unknown transaction kind: {kind!r}")
