from __future__ import annotations

from bisect import bisect_left
from typing import Any


# Sample encoding inside MonitoringRecord.check_history (compact, stable schema):
# [ts, ok, response_ms, status_code]
#
# - ts: float unix timestamp (seconds)
# - ok: bool (the probe classified the target as up)
# - response_ms: float | None
# - status_code: int | None
Sample = list[Any]


def coerce_samples(raw: Any) -> list[Sample]:
    """
    Best-effort decode for samples loaded from a state file.
    Ignores invalid entries to be robust to partial writes or older formats.
    """
    if not isinstance(raw, list):
        return []

    samples: list[Sample] = []
    for item in raw:
        if not isinstance(item, list) or len(item) < 2:
            continue
        try:
            ts = float(item[0])
        except (TypeError, ValueError):
            continue
        ok = bool(item[1])

        response_ms = None
        if len(item) >= 3 and item[2] is not None:
            try:
                response_ms = float(item[2])
            except (TypeError, ValueError):
                response_ms = None

        status_code = None
        if len(item) >= 4 and item[3] is not None:
            try:
                status_code = int(item[3])
            except (TypeError, ValueError):
                status_code = None

        samples.append([ts, ok, response_ms, status_code])

    samples.sort(key=lambda s: float(s[0] or 0.0))
    return samples


def append_sample(
    items: list[Sample],
    *,
    ts: float,
    ok: bool,
    response_ms: float | None,
    status_code: int | None,
    max_samples: int,
) -> list[Sample]:
    """Return a new sample list with one observation added and the oldest dropped past max_samples."""
    sample: Sample = [
        float(ts),
        bool(ok),
        float(response_ms) if response_ms is not None else None,
        int(status_code) if status_code is not None else None,
    ]

    out = list(items)
    # Normal case: samples arrive in time order. On a clock jump fall back to sorted insert.
    if not out or float(out[-1][0] or 0.0) <= sample[0]:
        out.append(sample)
    else:
        idx = bisect_left([float(s[0] or 0.0) for s in out], sample[0])
        out.insert(idx, sample)

    limit = max(1, int(max_samples))
    if len(out) > limit:
        out = out[-limit:]
    return out


def window_samples(items: list[Sample], *, since_ts: float) -> list[Sample]:
    if not items:
        return []
    ts_list = [float(s[0] or 0.0) for s in items]
    idx = bisect_left(ts_list, float(since_ts))
    return items[idx:]


def compute_availability(items: list[Sample]) -> tuple[int, int, float | None]:
    """
    Returns (total, ok_count, ok_percent_or_None_if_total_0)
    """
    total = len(items)
    if total <= 0:
        return 0, 0, None
    ok_count = sum(1 for s in items if bool(s[1]))
    ok_pct = (ok_count / float(total)) * 100.0
    return total, ok_count, ok_pct
