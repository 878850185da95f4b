from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Union
import logging
import os


logger = logging.getLogger(__name__)

DEFAULT_HOST = "pokemon-tcg-api.p.rapidapi.com"


@dataclass
class Settings:
    # Secrets
    rapidapi_key: str = ""

    # Upstream
    rapidapi_host: str = DEFAULT_HOST
    api_base: str = f"https://{DEFAULT_HOST}"
    upstream_timeout: float = 20.0
    episodes_path: str = "/episodes"
    products_path: str = "/products"
    products_search_path: str = "/products/search"
    default_sort: str = "episode_newest"

    # Runtime config
    port: int = 3000
    daily_limit: int = 99
    cache_ttl_seconds: int = 3600
    log_level: str = "INFO"

    @property
    def has_key(self) -> bool:
        return bool(self.rapidapi_key)

    @staticmethod
    def _num_env(name: str, default: Union[int, float], minimum: Optional[float] = None,
                 cast: Callable[[str], Union[int, float]] = int) -> Union[int, float]:
        raw = os.getenv(name)
        if raw is None or raw.strip() == "":
            return default
        try:
            value = cast(raw)
        except ValueError:
            logger.warning("Ignoring %s=%r: not a valid %s, using %s", name, raw, cast.__name__, default)
            return default
        if minimum is not None and value < minimum:
            logger.warning("Ignoring %s=%r: must be >= %s, using %s", name, raw, minimum, default)
            return default
        return value

    @classmethod
    def load(cls) -> "Settings":
        host = os.getenv("RAPIDAPI_HOST", DEFAULT_HOST)
        return cls(
            rapidapi_key=os.getenv("RAPIDAPI_KEY", ""),
            rapidapi_host=host,
            api_base=os.getenv("API_BASE", f"https://{host}"),
            upstream_timeout=cls._num_env("UPSTREAM_TIMEOUT", 20.0, minimum=0.001, cast=float),
            episodes_path=os.getenv("EPISODES_PATH", "/episodes"),
            products_path=os.getenv("PRODUCTS_PATH", "/products"),
            products_search_path=os.getenv("PRODUCTS_SEARCH_PATH", "/products/search"),
            default_sort=os.getenv("DEFAULT_SORT", "episode_newest"),
            port=cls._num_env("PORT", 3000, minimum=1),
            daily_limit=cls._num_env("DAILY_LIMIT", 99, minimum=1),
            cache_ttl_seconds=cls._num_env("CACHE_TTL_SECONDS", 3600, minimum=0),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
