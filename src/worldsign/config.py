"""YAML configuration loading for worldsign."""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from worldsign.constants import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT,
    NAMESPACE_FETCH,
    NAMESPACE_SOURCES,
)

logger = logging.getLogger(__name__)


@dataclass
class ApiConfig:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT


@dataclass
class SigningConfig:
    namespace_source: str = NAMESPACE_FETCH  # "fetch" or "query"
    strict_envelopes: bool = False


@dataclass
class WorldSignConfig:
    api: ApiConfig = field(default_factory=ApiConfig)
    signing: SigningConfig = field(default_factory=SigningConfig)
    log_level: str = "INFO"


def load_config(path: Path) -> WorldSignConfig:
    """Load configuration from a YAML file.

    Private keys are never read from configuration.
    """
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    config = WorldSignConfig()

    if "api" in raw:
        a = raw["api"] or {}
        config.api = ApiConfig(
            base_url=a.get("base_url", DEFAULT_BASE_URL),
            timeout=float(a.get("timeout", DEFAULT_TIMEOUT)),
        )

    if "signing" in raw:
        s = raw["signing"] or {}
        source = s.get("namespace_source", NAMESPACE_FETCH)
        if source not in NAMESPACE_SOURCES:
            raise ValueError(
                f"Invalid namespace_source '{source}' in {path}: "
                f"expected one of {', '.join(NAMESPACE_SOURCES)}"
            )
        config.signing = SigningConfig(
            namespace_source=source,
            strict_envelopes=bool(s.get("strict_envelopes", False)),
        )

    if "private_key" in raw or "private_key" in (raw.get("signing") or {}):
        logger.warning("Ignoring private_key in %s; pass it via the CLI or environment", path)

    config.log_level = raw.get("log_level", "INFO")
    return config
