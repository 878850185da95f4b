from __future__ import annotations

from typing import Any, Dict


class RelayError(Exception):
    status_code = 500

    def to_body(self) -> Dict[str, Any]:
        return {"error": str(self)}


class QuotaExceeded(RelayError):
    status_code = 429

    def __init__(self, limit: int, used: int, remaining: int, reset_day: str) -> None:
        super().__init__("Daily API quota reached")
        self.limit = limit
        self.used = used
        self.remaining = remaining
        self.reset_day = reset_day

    def to_body(self) -> Dict[str, Any]:
        return {
            "error": str(self),
            "limit": self.limit,
            "used": self.used,
            "remaining": self.remaining,
            "resetUtcDay": self.reset_day,
        }


class UpstreamFailure(RelayError):
    """The upstream call raised or its body could not be decoded."""

    def __init__(self, details: str, label: str = "Proxy") -> None:
        super().__init__(details)
        self.details = details
        self.label = label

    def to_body(self) -> Dict[str, Any]:
        error = "Proxy error" if self.label == "Proxy" else f"{self.label} proxy error"
        return {"error": error, "details": self.details}


class MisconfiguredCredential(RelayError):
    def __init__(self, name: str = "RAPIDAPI_KEY") -> None:
        super().__init__(f"Missing {name} in .env")
        self.name = name
