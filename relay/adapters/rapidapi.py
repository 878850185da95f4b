from __future__ import annotations

from typing import List, Mapping, Optional, Tuple
import logging

import requests

from relay.errors import UpstreamFailure


logger = logging.getLogger(__name__)


class RapidApiClient:
    """Plain GET transport to a RapidAPI host. One attempt per call, no retries."""

    def __init__(self, base_url: str, timeout: float = 20,
                 session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def call(self, path: str, query_params: List[Tuple[str, str]],
             headers: Mapping[str, str]) -> Tuple[int, str]:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, params=query_params, headers=dict(headers), timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("upstream request to %s failed: %s", url, e)
            raise UpstreamFailure(str(e)) from e
        if resp.status_code >= 400:
            logger.warning("upstream %s answered HTTP %s", url, resp.status_code)
        return resp.status_code, resp.text
