# store settings: module defaults, overridable from the environment
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Mapping, Optional

from db.capacity import CapacityPolicy
from utils.logger import get_logger

_logger = get_logger(__name__)

DB_PATH = "data/store.sqlite"
DEFAULT_MAX_VALUE_BYTES = 5 * 1024 * 1024
DEFAULT_SESSION_TTL = timedelta(days=1)


def _to_int(val) -> Optional[int]:
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    value = _to_int(raw)
    if value is None or value < 0:
        _logger.warning(f"Ignoring {name}={raw!r}, using {default}")
        return default
    return value


@dataclass(frozen=True)
class StoreSettings:
    """
    Everything needed to open a repository.

    secret signs admin session tokens. When it is None a random one is made
    per repository, so admin sessions do not outlive the process.
    """

    db_path: str = DB_PATH
    max_value_bytes: int = DEFAULT_MAX_VALUE_BYTES
    session_ttl: timedelta = DEFAULT_SESSION_TTL
    secret: Optional[str] = None
    capacity: CapacityPolicy = field(default_factory=CapacityPolicy)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StoreSettings":
        """Read STORE_* variables; anything unset keeps its default."""
        env = os.environ if environ is None else environ
        defaults = cls()
        capacity = defaults.capacity
        max_products = _env_int(env, "STORE_MAX_PRODUCTS", capacity.max_products)
        if max_products != capacity.max_products:
            if max_products < 1:
                _logger.warning("STORE_MAX_PRODUCTS must be at least 1, keeping default")
            else:
                capacity = replace(
                    capacity,
                    max_products=max_products,
                    retain_products=max_products - 1,
                )
        capacity = replace(
            capacity,
            max_inline_image_bytes=_env_int(
                env, "STORE_MAX_INLINE_IMAGE_BYTES", capacity.max_inline_image_bytes
            ),
        )
        ttl_seconds = _env_int(
            env, "STORE_SESSION_TTL", int(defaults.session_ttl.total_seconds())
        )
        return cls(
            db_path=env.get("STORE_DB_PATH") or defaults.db_path,
            max_value_bytes=_env_int(
                env, "STORE_MAX_VALUE_BYTES", defaults.max_value_bytes
            ),
            session_ttl=timedelta(seconds=ttl_seconds),
            secret=env.get("STORE_SECRET") or None,
            capacity=capacity,
        )
