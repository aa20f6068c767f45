from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

import httpx

from .errors import HealthCheckFailed
from .events import log_event

NO_RESPONSE = "000"


@dataclass(frozen=True)
class HealthResult:
    url: str
    healthy: bool
    attempts: int
    last_status: str


def probe(url: str, timeout_s: float = 5.0, transport: httpx.BaseTransport | None = None) -> str:
    """GET the liveness URL once.

    Returns the HTTP status as a string, or "000" when no response arrived.
    """
    try:
        with httpx.Client(timeout=timeout_s, follow_redirects=False, transport=transport) as client:
            resp = client.get(url)
        return f"{resp.status_code:03d}"
    except httpx.HTTPError:
        return NO_RESPONSE


def wait_until_healthy(
    url: str,
    retries: int = 15,
    wait_s: float = 2.0,
    timeout_s: float = 5.0,
    probe: Callable[[str, float], str] = probe,
    sleep: Callable[[float], None] = time.sleep,
) -> HealthResult:
    """Poll ``url`` until it answers 200 or ``retries`` attempts are used up.

    Worst case waits about retries * wait_s. Raises HealthCheckFailed on exhaustion.
    """
    retries = max(1, int(retries))
    attempts = 0
    status = NO_RESPONSE
    while attempts < retries:
        status = probe(url, timeout_s)
        attempts += 1
        if status == "200":
            log_event("INFO", f"Health check passed after {attempts} attempt(s)")
            return HealthResult(url=url, healthy=True, attempts=attempts, last_status=status)
        if attempts < retries:
            log_event("INFO", f"Attempt {attempts}/{retries} (status: {status}) - retrying in {wait_s}s...")
            sleep(wait_s)
        else:
            log_event("WARNING", f"Attempt {attempts}/{retries} (status: {status})")

    result = HealthResult(url=url, healthy=False, attempts=attempts, last_status=status)
    raise HealthCheckFailed(f"Health check failed after {attempts} attempts (last status: {status})", result)
