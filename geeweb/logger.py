"""Request-logging middleware."""

from __future__ import annotations

import logging
import time

from geeweb.context import Context, Handler

_log = logging.getLogger("geeweb")

_SECOND = 1_000_000_000


def _fixed(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    digits = len(str(unit)) - 1
    frac_text = f"{frac:0{digits}d}".rstrip("0")
    return f"{whole}.{frac_text}" if frac_text else str(whole)


def _format_duration(ns: int) -> str:
    """Format a duration in nanoseconds, e.g. ``3.14µs`` or ``1m30s``."""
    if ns == 0:
        return "0s"
    if ns < 1_000:
        return f"{ns}ns"
    if ns < 1_000_000:
        return _fixed(ns, 1_000) + "µs"
    if ns < _SECOND:
        return _fixed(ns, 1_000_000) + "ms"
    hours, rest = divmod(ns, 3600 * _SECOND)
    minutes, rest = divmod(rest, 60 * _SECOND)
    text = f"{hours}h" if hours else ""
    if hours or minutes:
        text += f"{minutes}m"
    return text + _fixed(rest, _SECOND) + "s"


def logger() -> Handler:
    """Return middleware that logs each request's status, URI and duration."""

    def middleware(ctx: Context) -> None:
        start = time.perf_counter_ns()
        ctx.next()
        elapsed = time.perf_counter_ns() - start
        _log.info("[%d] %s in %s", ctx.status_code, ctx.request_uri, _format_duration(elapsed))

    return middleware