"""Data-freshness guard run before any analysis."""
import logging
import re
import time
from typing import Any, Iterable, Mapping, Optional

from ..exceptions import StaleData

logger = logging.getLogger(__name__)

SIMULATION_MARKERS = frozenset({
    "simulation",
    "simulated",
    "mock",
    "test",
    "demo",
    "placeholder",
    "api_simulation",
})

SIMULATION_FLAGS = ("simulated", "is_simulated", "mock", "is_mock")

_MARKER_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(SIMULATION_MARKERS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)

# Timestamps above this are taken to be epoch milliseconds
_MILLISECONDS_THRESHOLD = 1e11


def normalize_timestamp(value: Any) -> Optional[float]:
    """Epoch seconds from a seconds or milliseconds timestamp."""
    if value is None or isinstance(value, bool):
        return None
    try:
        ts = float(value)
    except (TypeError, ValueError):
        return None
    if ts > _MILLISECONDS_THRESHOLD:
        ts /= 1000.0
    return ts


def _iter_strings(value: Any) -> Iterable[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from _iter_strings(item)
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            yield from _iter_strings(item)


def check_data_freshness(
    payload: Mapping[str, Any],
    max_age_seconds: float = 60.0,
    now: Optional[float] = None,
    real_data_only: bool = True
) -> float:
    """
    Reject payloads built from simulated, placeholder or old market data.

    Returns:
        The payload timestamp in epoch seconds

    Raises:
        StaleData: on a simulation flag or marker, a missing timestamp or
            a timestamp older than ``max_age_seconds``
    """
    if real_data_only:
        for flag in SIMULATION_FLAGS:
            if payload.get(flag):
                raise StaleData(f"Payload flagged as {flag}", stage="freshness")

        source = payload.get("source")
        if isinstance(source, str) and source.strip().lower() in SIMULATION_MARKERS:
            raise StaleData(f"Payload source '{source}' is not real market data", stage="freshness")

        for text in _iter_strings(payload):
            match = _MARKER_PATTERN.search(text)
            if match:
                raise StaleData(
                    f"Simulated data marker '{match.group(1)}' found in payload",
                    stage="freshness",
                    details={"value": text},
                )

    timestamp = normalize_timestamp(payload.get("timestamp"))
    if timestamp is None:
        raise StaleData("Payload carries no timestamp", stage="freshness")

    current = now if now is not None else time.time()
    age = current - timestamp
    if age > max_age_seconds:
        logger.warning(f"Rejecting payload {age:.1f}s old (max {max_age_seconds}s)")
        raise StaleData(
            f"Market data is {age:.1f}s old, limit is {max_age_seconds}s",
            stage="freshness",
            details={"age_seconds": age},
        )

    return timestamp
