"""
Run identifiers used to correlate every call made on behalf of one story request.
"""

from __future__ import annotations

from datetime import datetime, timezone


def new_run_id(now: datetime | None = None) -> str:
    """
    Return a sortable timestamp token such as ``2026-10-18_14-03-27-512``.
    """
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%d_%H-%M-%S-") + f"{moment.microsecond // 1000:03d}"
