from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional, Dict, Any

import requests
from requests.exceptions import ReadTimeout, ConnectionError, RequestException

from track_route.core.errors import ProviderError

log = logging.getLogger(__name__)


@dataclass
class HTTPClient:
    user_agent: str
    timeout_s: int = 20
    tries: int = 3
    backoff_s: float = 0.8

    def __post_init__(self) -> None:
        self.s = requests.Session()
        self.s.headers.update(
            {
                "User-Agent": self.user_agent,
                "Accept": "application/json, text/plain;q=0.9, */*;q=0.8",
            }
        )

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        timeout_s: Optional[int] = None,
    ) -> Dict[str, Any]:
        timeout = timeout_s if timeout_s is not None else self.timeout_s
        last_err: Optional[Exception] = None
        for attempt in range(self.tries):
            try:
                r = self.s.get(url, params=params, timeout=timeout)
                r.raise_for_status()
                return r.json()
            except (ReadTimeout, ConnectionError) as e:
                last_err = e
                log.debug("GET %s failed (attempt %d/%d): %s", url, attempt + 1, self.tries, e)
                if attempt + 1 < self.tries:
                    time.sleep(self.backoff_s * (2**attempt))
            except RequestException as e:
                raise ProviderError(f"HTTP error from {url}: {e}") from e
            except ValueError as e:
                raise ProviderError(f"Non-JSON response from {url}: {e}") from e
        raise ProviderError(f"HTTP get_json failed after {self.tries} tries: {last_err}")
