"""
Fees Chart Module

Builds a time-bucketed chart of routing fees earned by this node:
- Picks hour, day or week buckets from the lookback window
- Optionally restricts forwards to those touching one peer's channels
- Sums fees per calendar bucket, oldest bucket first
- Composes the chart title and description

Bucket membership is a calendar equality test (same year and day, same
hour, or same week number) against a reference time counted back from now.
The total is summed over every retained forward and is deliberately not
derived from the buckets, so it can exceed their sum at week boundaries.
"""

from dataclasses import dataclass
from datetime import MINYEAR, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .calendar_utils import (
    DAYS_PER_WEEK,
    calendar_phrase,
    day_of_year,
    subtract_days,
    subtract_hours,
    week_of_year,
)
from .config import FeesChartConfig, FeesChartConfigSnapshot
from .node_api import ForwardEvent, PeerChannelSet, fetch_forwards, fetch_node_info

HOURS_PER_DAY = 24
SATS_PER_BTC = 100_000_000

CHART_TITLE = "Routing fees earned"


class InvalidArgument(ValueError):
    """Raised when a chart is requested with missing or malformed input."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code
        self.message = message or code


class Granularity(Enum):
    """Width of one chart bucket."""
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"

    @classmethod
    def for_days(cls, days: int, min_chart_days: int, max_chart_days: int) -> 'Granularity':
        """Both thresholds are inclusive toward daily buckets."""
        if days > max_chart_days:
            return cls.WEEK
        if days < min_chart_days:
            return cls.HOUR
        return cls.DAY

    def segment_count(self, days: int) -> int:
        if self is Granularity.HOUR:
            return HOURS_PER_DAY * days
        if self is Granularity.WEEK:
            return days // DAYS_PER_WEEK
        return days

    def reference(self, now: datetime, index: int) -> datetime:
        """The time `index` buckets before now."""
        if self is Granularity.HOUR:
            return subtract_hours(now, index)
        if self is Granularity.WEEK:
            return subtract_days(now, index * DAYS_PER_WEEK)
        return subtract_days(now, index)

    def key(self, moment: datetime) -> Tuple[int, ...]:
        """Calendar fields that must be equal for two times to share a bucket."""
        if self is Granularity.HOUR:
            return (moment.year, day_of_year(moment), moment.hour)
        if self is Granularity.WEEK:
            return (moment.year, week_of_year(moment))
        return (moment.year, day_of_year(moment))

    def matches(self, reference: datetime, moment: datetime) -> bool:
        return self.key(reference) == self.key(moment)


@dataclass(frozen=True)
class ChartResult:
    """A fee chart ready for display."""
    title: str
    description: str
    fees: Tuple[int, ...]    # Oldest bucket first
    granularity: Granularity
    total_earned: int
    forward_count: int
    truncated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "fees": list(self.fees),
            "granularity": self.granularity.value,
            "segments": len(self.fees),
            "total_earned": self.total_earned,
            "forward_count": self.forward_count,
            "truncated": self.truncated,
        }


def validate_days(days: Any) -> int:
    """
    Coerce the requested day count to a positive whole number.

    Raises:
        InvalidArgument: for missing, zero, negative or fractional values
    """
    if not days:
        raise InvalidArgument(
            "ExpectedNumberOfDaysToGetFeesOverForChart",
            "Expected number of days to get fees over for chart",
        )
    if isinstance(days, bool):
        raise InvalidArgument(
            "ExpectedPositiveWholeNumberOfDays",
            f"Expected a positive whole number of days, got {days!r}",
        )
    try:
        value = float(days)
    except (TypeError, ValueError):
        raise InvalidArgument(
            "ExpectedPositiveWholeNumberOfDays",
            f"Expected a positive whole number of days, got {days!r}",
        )
    if value <= 0 or not value.is_integer():
        raise InvalidArgument(
            "ExpectedPositiveWholeNumberOfDays",
            f"Expected a positive whole number of days, got {days!r}",
        )
    return int(value)


def window_start(now: datetime, days: int) -> datetime:
    """
    Local wall-clock start of a `days` long window ending at `now`.

    Raises:
        InvalidArgument: the window reaches back past the calendar range
    """
    try:
        start = subtract_days(now, days)
        start.timestamp()
    except (OverflowError, OSError, ValueError):
        start = None

    # Week numbering looks at the Sunday before January 1 of the start year
    if start is None or start.year <= MINYEAR:
        raise InvalidArgument(
            "ExpectedDaysWithinCalendarRange",
            f"A window of {days} days reaches back before year {MINYEAR + 1}",
        )
    return start


def bucket_fees(
    forwards: List[ForwardEvent],
    granularity: Granularity,
    segments: int,
    now: datetime,
) -> List[int]:
    """
    Sum forward fees into calendar buckets.

    Bucket 0 is the current hour/day/week and the index grows into the
    past. The returned list is reversed so it reads oldest to newest.
    """
    # A forward matching several references counts toward each of them
    indexes_by_key: Dict[Tuple[int, ...], List[int]] = {}
    for index in range(segments):
        reference = granularity.reference(now, index)
        indexes_by_key.setdefault(granularity.key(reference), []).append(index)

    fees = [0] * segments
    for forward in forwards:
        moment = datetime.fromtimestamp(forward.created_at)
        for index in indexes_by_key.get(granularity.key(moment), ()):
            fees[index] += forward.fee_tokens

    fees.reverse()
    return fees


def describe(
    segments: int,
    granularity: Granularity,
    start: datetime,
    now: datetime,
    total_earned: int,
) -> str:
    duration = f"Earned in {segments} {granularity.value}s"
    since = f"since {calendar_phrase(start, now).lower()}"
    earned = f"{total_earned / SATS_PER_BTC:.8f}"
    return f"{duration} {since}. Total: {earned}"


class FeesChartBuilder:
    """
    Builds fee charts from lightningd forwarding history.

    Holds no state between builds; each call reads a fresh config snapshot,
    fetches forwards and returns a new ChartResult.
    """

    def __init__(self, rpc: Any, plugin: Any = None, config: Optional[FeesChartConfig] = None):
        """
        Args:
            rpc: lightningd RPC proxy
            plugin: Plugin instance for logging
            config: FeesChartConfig; defaults apply when omitted
        """
        self.rpc = rpc
        self.plugin = plugin
        self.config = config or FeesChartConfig()

    def _log(self, msg: str, level: str = "info") -> None:
        if self.plugin:
            self.plugin.log(f"[FeesChart] {msg}", level=level)

    def build(self, days: Any, via: Optional[str] = None,
              now: Optional[datetime] = None) -> ChartResult:
        """
        Build the fee chart for the last `days` days.

        Args:
            days: Lookback window in days
            via: Optional peer public key; only forwards touching that
                 peer's channels are counted
            now: Local wall-clock time to count back from (defaults to now)

        Raises:
            InvalidArgument: bad days or missing RPC, before any RPC call
            NodeNotFoundError: `via` is unknown
            RpcError: lightningd call failed
        """
        days = validate_days(days)
        if not self.rpc:
            raise InvalidArgument("ExpectedRpcToGetFeesChart", "Expected RPC to get fees chart")

        now = now or datetime.now()
        start = window_start(now, days)

        cfg: FeesChartConfigSnapshot = self.config.snapshot()

        peer: Optional[PeerChannelSet] = None
        if via:
            peer = fetch_node_info(self.rpc, via)
            self._log(
                f"Filtering forwards via {peer.alias} ({len(peer.channel_ids)} channels)",
                level='debug'
            )

        granularity = Granularity.for_days(days, cfg.min_chart_days, cfg.max_chart_days)

        batch = fetch_forwards(
            self.rpc,
            after=start.timestamp(),
            before=now.timestamp(),
            limit=cfg.forwards_limit,
            page_size=cfg.forwards_page_size,
        )
        if batch.truncated:
            self._log(
                f"Forward history over {days} days exceeds {cfg.forwards_limit} entries; "
                "older forwards are left out of the chart",
                level='warn'
            )

        if peer is None:
            forwards = list(batch.forwards)
        else:
            forwards = [f for f in batch.forwards if peer.touches(f)]

        total_earned = sum(f.fee_tokens for f in forwards)
        segments = granularity.segment_count(days)
        fees = bucket_fees(forwards, granularity, segments, now)

        title = CHART_TITLE if peer is None else f"{CHART_TITLE} via {peer.alias}"

        self._log(
            f"Built {segments} {granularity.value} chart from {len(forwards)} forwards",
            level='debug'
        )

        return ChartResult(
            title=title,
            description=describe(len(fees), granularity, start, now, total_earned),
            fees=tuple(fees),
            granularity=granularity,
            total_earned=total_earned,
            forward_count=len(forwards),
            truncated=batch.truncated,
        )


def build_fees_chart(days: Any, rpc: Any, via: Optional[str] = None,
                     config: Optional[FeesChartConfig] = None, plugin: Any = None,
                     now: Optional[datetime] = None) -> ChartResult:
    """Build a fee chart in one call. See FeesChartBuilder.build."""
    return FeesChartBuilder(rpc, plugin=plugin, config=config).build(days, via=via, now=now)
