from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote
import logging

from relay.adapters.base import UpstreamClient, UpstreamRequest, decode_body, rapidapi_headers
from relay.adapters.utils import QuotaGuard, ResponseCache, canonical_params, canonical_url
from relay.errors import MisconfiguredCredential, QuotaExceeded, UpstreamFailure
from relay.settings import Settings


logger = logging.getLogger(__name__)

_MISSING = object()


class RelayService:
    """Cache-then-quota-then-upstream relay.

    Order per request: credential check, canonical key, cache lookup (a hit
    returns without touching the quota), quota consumption, upstream call,
    cache store. A consumed quota unit is never refunded, even when the
    upstream call fails.
    """

    def __init__(self, settings: Settings, cache: ResponseCache, guard: QuotaGuard,
                 client: UpstreamClient) -> None:
        self.settings = settings
        self.cache = cache
        self.guard = guard
        self.client = client

    def fetch(self, path: str, params: Any = None, strict: bool = True,
              ttl: Optional[float] = None, label: str = "Proxy") -> Any:
        if not self.settings.has_key:
            raise MisconfiguredCredential()

        request = UpstreamRequest(path=path, params=canonical_params(params))
        key = canonical_url(self.settings.api_base, request.path, request.params)

        cached = self.cache.lookup(key, _MISSING)
        if cached is not _MISSING:
            logger.debug("cache hit: %s", key)
            return cached

        decision = self.guard.try_consume()
        if not decision.allowed:
            logger.warning("quota exhausted for %s (%d/%d)", decision.day, decision.used, self.guard.daily_limit)
            raise QuotaExceeded(
                limit=self.guard.daily_limit,
                used=decision.used,
                remaining=decision.remaining,
                reset_day=decision.day,
            )

        logger.debug("cache miss: %s (quota remaining %d)", key, decision.remaining)
        headers = rapidapi_headers(self.settings.rapidapi_key, self.settings.rapidapi_host)
        try:
            _status, body = self.client.call(request.path, request.params, headers)
            payload = decode_body(body, strict=strict)
        except UpstreamFailure as e:
            e.label = label
            raise
        except Exception as e:
            logger.warning("upstream call for %s raised: %s", key, e)
            raise UpstreamFailure(str(e), label=label) from e

        self.cache.store(key, payload, ttl)
        return payload

    # ------------------------ Route shapes ------------------------

    def episodes(self, query: Any) -> Any:
        return self.fetch(self.settings.episodes_path, query, strict=False)

    def products(self, query: Any) -> Any:
        params = _with_default(canonical_params(query), "sort", self.settings.default_sort)
        return self.fetch(self.settings.products_path, params, label="Products")

    def search_products(self, q: Optional[str] = None, sort: Optional[str] = None,
                        page: Optional[str] = None, limit: Optional[str] = None) -> Any:
        params: Dict[str, str] = {}
        if q:
            params["search"] = q
        params["sort"] = sort or self.settings.default_sort
        if page:
            params["page"] = page
        if limit:
            params["limit"] = limit
        return self.fetch(self.settings.products_search_path, params, label="Products search")

    def product_detail(self, product_id: str) -> Any:
        path = f"{self.settings.products_path}/{quote(product_id, safe='')}"
        return self.fetch(path, label="Product detail")

    def status(self) -> Dict[str, Any]:
        quota = self.guard.peek()
        return {
            "ok": True,
            "host": self.settings.rapidapi_host,
            "base": self.settings.api_base,
            "hasKey": self.settings.has_key,
            "quota": {
                "day": quota.day,
                "used": quota.used,
                "remaining": quota.remaining,
                "limit": quota.limit,
            },
            "cacheEntries": len(self.cache),
        }


def _with_default(pairs: List[Tuple[str, str]], name: str, value: str) -> List[Tuple[str, str]]:
    if any(k == name for k, _ in pairs):
        return pairs
    return pairs + [(name, value)]
