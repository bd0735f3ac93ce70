"""Shared test helpers."""

import time


def as_user(user_id: str, role: str) -> dict[str, str]:
    """Gateway headers for an authenticated actor."""
    return {"X-User-Id": user_id, "X-User-Role": role}


def wait_until(predicate, timeout: float = 2.0, interval: float = 0.02) -> bool:
    """Poll ``predicate`` until it is truthy or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())
