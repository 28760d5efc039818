"""Utilities for parsing and formatting playback times"""

from typing import Union


def to_seconds(value: Union[str, dict, int, float, None]) -> float:
    """
    Normalize a timestamp from an alignment payload to float seconds.

    Supports:
    - Float / int: 12.3
    - String: "12.300s" or "12.3"
    - Dict: {"seconds": 12, "nanos": 300000000}
    """
    if value is None:
        raise ValueError("Missing timestamp")

    if isinstance(value, bool):
        raise ValueError(f"Unsupported timestamp type: {type(value)}")

    if isinstance(value, (int, float)):
        return float(value)

    if isinstance(value, dict):
        seconds = value.get("seconds", 0)
        nanos = value.get("nanos", 0)
        return float(seconds) + (float(nanos) / 1_000_000_000)

    if isinstance(value, str):
        text = value.strip().rstrip("s")
        try:
            return float(text)
        except ValueError:
            raise ValueError(f"Unable to parse timestamp: {value}")

    raise ValueError(f"Unsupported timestamp type: {type(value)}")


def format_clock(seconds: float) -> str:
    """Render seconds as m:ss for log lines."""
    seconds = max(0.0, seconds)
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins}:{secs:02d}"
