from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Protocol, Tuple
import json

from relay.errors import UpstreamFailure


@dataclass
class UpstreamRequest:
    path: str
    params: List[Tuple[str, str]] = field(default_factory=list)


class UpstreamClient(Protocol):
    def call(self, path: str, query_params: List[Tuple[str, str]],
             headers: Mapping[str, str]) -> Tuple[int, str]:
        ...


def decode_body(text: str, strict: bool = True) -> Any:
    """Parse an upstream body as JSON.

    Lenient callers get unparseable text wrapped as ``{"raw": text}``; strict
    callers get an ``UpstreamFailure``.
    """
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        if strict:
            raise UpstreamFailure(f"Invalid JSON from upstream: {e}") from e
        return {"raw": text}


def rapidapi_headers(key: str, host: str) -> Dict[str, str]:
    return {
        "x-rapidapi-key": key,
        "x-rapidapi-host": host,
    }
