from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import urlencode
import logging
import threading
import time


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60  # 1 hour
DEFAULT_DAILY_LIMIT = 99

ParamValue = Union[str, Sequence[str], None]


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


# ------------------------ Response cache ------------------------

@dataclass(frozen=True)
class CacheEntry:
    key: str
    stored_at: float
    ttl: float
    payload: Any

    def is_valid(self, now: float) -> bool:
        return now - self.stored_at <= self.ttl


class ResponseCache:
    """In-memory, TTL-only cache of upstream payloads keyed by canonical URL.

    Entries are never evicted except when a lookup finds them expired, so the
    map grows for the lifetime of the process.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 clock: Optional[Callable[[], float]] = None) -> None:
        self.ttl = ttl_seconds
        self._clock = clock or time.time
        self._data: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def lookup(self, key: str, default: Any = None) -> Any:
        """Return the live payload for ``key``, else ``default``.

        Payloads may legitimately be ``None`` (a JSON ``null`` body), so
        callers that must tell a hit from a miss pass their own sentinel.
        """
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return default
            if not entry.is_valid(self._clock()):
                self._data.pop(key, None)
                logger.debug("cache expired: %s", key)
                return default
            return entry.payload

    def store(self, key: str, payload: Any, ttl: Optional[float] = None) -> None:
        entry = CacheEntry(
            key=key,
            stored_at=self._clock(),
            ttl=self.ttl if ttl is None else ttl,
            payload=payload,
        )
        with self._lock:
            self._data[key] = entry

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


# ------------------------ Daily quota ------------------------

@dataclass(frozen=True)
class QuotaState:
    day: str  # UTC, YYYY-MM-DD
    used: int = 0


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    remaining: int
    day: str
    used: int = 0


@dataclass(frozen=True)
class QuotaStatus:
    day: str
    used: int
    remaining: int
    limit: int


class QuotaGuard:
    """Counts outbound calls per UTC calendar day against a hard ceiling.

    The day is reconciled lazily on every consultation: the first call that
    observes a new UTC date swaps in a fresh ``QuotaState`` with ``used=0``.
    """

    def __init__(self, daily_limit: int = DEFAULT_DAILY_LIMIT,
                 today: Optional[Callable[[], date]] = None) -> None:
        if daily_limit <= 0:
            raise ValueError(f"daily_limit must be positive, got {daily_limit}")
        self.daily_limit = daily_limit
        self._today = today or utc_today
        self._state = QuotaState(day=self._today().isoformat())
        self._lock = threading.Lock()

    def _reconcile(self) -> QuotaState:
        # Caller holds the lock.
        today = self._today().isoformat()
        if self._state.day != today:
            logger.info("quota rollover %s -> %s (used %d)", self._state.day, today, self._state.used)
            self._state = QuotaState(day=today)
        return self._state

    def try_consume(self) -> QuotaDecision:
        with self._lock:
            state = self._reconcile()
            if state.used >= self.daily_limit:
                return QuotaDecision(allowed=False, remaining=0, day=state.day, used=state.used)
            self._state = QuotaState(day=state.day, used=state.used + 1)
            return QuotaDecision(
                allowed=True,
                remaining=self.daily_limit - self._state.used,
                day=state.day,
                used=self._state.used,
            )

    def peek(self) -> QuotaStatus:
        with self._lock:
            state = self._reconcile()
        return QuotaStatus(
            day=state.day,
            used=state.used,
            remaining=max(0, self.daily_limit - state.used),
            limit=self.daily_limit,
        )


# ------------------------ Key derivation ------------------------

def _iter_params(params: Any) -> Iterable[Tuple[str, ParamValue]]:
    # Starlette's QueryParams keeps repeated keys only through multi_items().
    if hasattr(params, "multi_items"):
        return params.multi_items()
    if isinstance(params, Mapping):
        return params.items()
    return params


def canonical_params(params: Any) -> List[Tuple[str, str]]:
    """Flatten query params into name-sorted ``(name, value)`` pairs.

    The sort is stable, so repeated values for one name keep the order the
    caller gave them.
    """
    pairs: List[Tuple[str, str]] = []
    for name, value in _iter_params(params or {}):
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((str(name), str(v)) for v in value if v is not None)
        else:
            pairs.append((str(name), str(value)))
    return sorted(pairs, key=lambda p: p[0])


def canonical_url(base: str, path: str, params: Any = None) -> str:
    qs = urlencode(canonical_params(params))
    url = f"{base.rstrip('/')}{path}"
    return f"{url}?{qs}" if qs else url
