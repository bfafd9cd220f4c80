"""
Configuration module for cl-fees-chart

Contains the FeesChartConfig dataclass that holds the tunable parameters
for fee chart generation.

Uses the ConfigSnapshot pattern: every chart build captures an immutable
snapshot at the start of the call and reads only from it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


# Type mapping for config fields (for validation)
CONFIG_FIELD_TYPES: Dict[str, type] = {
    'forwards_limit': int,
    'forwards_page_size': int,
    'min_chart_days': int,
    'max_chart_days': int,
}

# Range constraints for numeric fields
CONFIG_FIELD_RANGES: Dict[str, tuple] = {
    'forwards_limit': (1, 1_000_000),
    'forwards_page_size': (0, 1_000_000),  # 0 disables listforwards paging
    'min_chart_days': (1, 90),        # Below this the chart uses hourly buckets
    'max_chart_days': (7, 3650),      # Above this the chart uses weekly buckets
}


@dataclass
class FeesChartConfig:
    """
    Configuration container for the fees chart plugin.

    All values can be set via plugin options at startup.
    """

    # Maximum number of forwards pulled for one chart
    forwards_limit: int = 99_999

    # Forwards requested per listforwards page (0 = single unpaged call)
    forwards_page_size: int = 10_000

    # Granularity thresholds (in days)
    min_chart_days: int = 4
    max_chart_days: int = 90

    # Internal version tracking
    _version: int = field(default=0, repr=False, compare=False)

    def snapshot(self) -> 'FeesChartConfigSnapshot':
        """
        Create an immutable snapshot for a single chart build.

        The snapshot is taken once per call so that option changes made
        while a chart is being computed never produce a mixed view.
        """
        return FeesChartConfigSnapshot.from_config(self)

    def validate(self) -> Optional[str]:
        """
        Validate configuration values.

        Returns:
            Error message if invalid, None if valid
        """
        for key, expected_type in CONFIG_FIELD_TYPES.items():
            value = getattr(self, key, None)
            if isinstance(value, bool) or not isinstance(value, expected_type):
                return f"Config {key}={value!r} must be {expected_type.__name__}"

        for key, (min_val, max_val) in CONFIG_FIELD_RANGES.items():
            value = getattr(self, key, None)
            if value is not None and not (min_val <= value <= max_val):
                return f"Config {key}={value} out of range [{min_val}, {max_val}]"

        if self.min_chart_days > self.max_chart_days:
            return (
                f"Config min_chart_days={self.min_chart_days} must not exceed "
                f"max_chart_days={self.max_chart_days}"
            )

        return None

    def update(self, **changes: Any) -> Optional[str]:
        """
        Apply option changes, keeping the old values if validation fails.

        Returns:
            Error message if the changes were rejected, None on success
        """
        unknown = [key for key in changes if key not in CONFIG_FIELD_TYPES]
        if unknown:
            return f"Unknown config keys: {', '.join(sorted(unknown))}"

        previous = {key: getattr(self, key) for key in changes}
        for key, value in changes.items():
            setattr(self, key, value)

        error = self.validate()
        if error:
            for key, value in previous.items():
                setattr(self, key, value)
            return error

        self._version += 1
        return None


@dataclass(frozen=True)
class FeesChartConfigSnapshot:
    """
    Immutable configuration snapshot for a single chart build.
    """

    forwards_limit: int
    forwards_page_size: int
    min_chart_days: int
    max_chart_days: int
    version: int

    @classmethod
    def from_config(cls, config: FeesChartConfig) -> 'FeesChartConfigSnapshot':
        """Create a frozen snapshot from mutable config."""
        return cls(
            forwards_limit=config.forwards_limit,
            forwards_page_size=config.forwards_page_size,
            min_chart_days=config.min_chart_days,
            max_chart_days=config.max_chart_days,
            version=config._version,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'forwards_limit': self.forwards_limit,
            'forwards_page_size': self.forwards_page_size,
            'min_chart_days': self.min_chart_days,
            'max_chart_days': self.max_chart_days,
            'version': self.version,
        }
