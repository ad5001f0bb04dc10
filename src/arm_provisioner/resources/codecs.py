"""Value codecs between model values and ARM wire values."""

from __future__ import annotations

from typing import Any, Protocol


class Codec(Protocol):
    def expand(self, value: Any) -> Any:
        """Model value -> wire value."""

    def flatten(self, value: Any) -> Any:
        """Wire value -> model value. Never called with ``None``."""


class EnabledDisabled:
    """``bool`` <-> an enabled/disabled enum string (compared case-insensitively)."""

    def __init__(self, enabled: str = "Enabled", disabled: str = "Disabled") -> None:
        self.enabled = enabled
        self.disabled = disabled

    def expand(self, value: bool) -> str:
        return self.enabled if value else self.disabled

    def flatten(self, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        return str(value).lower() == self.enabled.lower()

    def __repr__(self) -> str:
        return f"EnabledDisabled({self.enabled!r}, {self.disabled!r})"


class NormalizedLocation:
    """Azure locations are echoed back lowercased without spaces."""

    def expand(self, value: str) -> str:
        return normalize_location(value)

    def flatten(self, value: Any) -> str:
        return normalize_location(str(value))


def normalize_location(value: str) -> str:
    return value.replace(" ", "").lower()


ENABLED_DISABLED = EnabledDisabled()
LOCATION = NormalizedLocation()
