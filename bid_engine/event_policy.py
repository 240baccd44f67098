"""
Sale event policies and calendar-driven event mode resolution

An event mode swaps in sale-specific bid bounds and switches off the
detectors that would mistake a demand surge for keyword decay.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Dict, Iterable, Optional, Sequence

import pytz

from .config import settings
from .logger import get_logger

logger = get_logger(__name__)


class EventMode(str, Enum):
    NONE = "NONE"
    BIG_SALE_PREP = "BIG_SALE_PREP"
    BIG_SALE_DAY = "BIG_SALE_DAY"


class EventModeSource(str, Enum):
    MANUAL = "MANUAL"
    CALENDAR = "CALENDAR"


class EventGrade(str, Enum):
    S = "S"
    A = "A"
    B = "B"


GRADE_PRIORITY = {EventGrade.S: 3, EventGrade.A: 2, EventGrade.B: 1}


@dataclass(frozen=True)
class EventBidPolicy:
    name: EventMode
    max_bid_up_multiplier: float
    max_bid_down_multiplier: float
    acos_high_multiplier_7d_excl: float
    acos_high_multiplier_30d: float
    allow_strong_down: bool
    allow_no_conversion_down: bool


EVENT_POLICIES: Dict[EventMode, EventBidPolicy] = {
    EventMode.NONE: EventBidPolicy(
        name=EventMode.NONE,
        max_bid_up_multiplier=1.3,
        max_bid_down_multiplier=0.7,
        acos_high_multiplier_7d_excl=1.2,
        acos_high_multiplier_30d=1.05,
        allow_strong_down=True,
        allow_no_conversion_down=True,
    ),
    EventMode.BIG_SALE_PREP: EventBidPolicy(
        name=EventMode.BIG_SALE_PREP,
        max_bid_up_multiplier=1.4,
        max_bid_down_multiplier=0.85,
        acos_high_multiplier_7d_excl=1.3,
        acos_high_multiplier_30d=1.1,
        allow_strong_down=True,
        allow_no_conversion_down=True,
    ),
    EventMode.BIG_SALE_DAY: EventBidPolicy(
        name=EventMode.BIG_SALE_DAY,
        max_bid_up_multiplier=1.5,
        max_bid_down_multiplier=0.9,
        acos_high_multiplier_7d_excl=1.5,
        acos_high_multiplier_30d=1.15,
        allow_strong_down=False,
        allow_no_conversion_down=False,
    ),
}


def parse_event_mode(value: Optional[str]) -> EventMode:
    try:
        return EventMode((value or "NONE").strip().upper())
    except ValueError:
        logger.warning(f"Unknown event mode '{value}', using NONE")
        return EventMode.NONE


def parse_event_mode_source(value: Optional[str]) -> EventModeSource:
    try:
        return EventModeSource((value or "MANUAL").strip().upper())
    except ValueError:
        logger.warning(f"Unknown event mode source '{value}', using MANUAL")
        return EventModeSource.MANUAL


def get_event_bid_policy(
    mode: EventMode,
    overrides: Optional[Dict[EventMode, dict]] = None,
) -> EventBidPolicy:
    """
    Policy for a mode, with optional partial overrides merged on top.

    overrides: {EventMode: {"max_bid_up_multiplier": 1.6, ...}}
    """
    policy = EVENT_POLICIES[mode]
    if overrides and overrides.get(mode):
        policy = replace(policy, **overrides[mode])
    return policy


@dataclass(frozen=True)
class EventCalendarEntry:
    id: str
    label: str
    grade: EventGrade
    start: date
    end: date
    prep_days: int = 0
    timezone: str = "Asia/Tokyo"
    apply_to_event_mode: bool = True

    def bounds(self):
        """(prep_start, start, end) as aware datetimes in the entry's timezone."""
        tz = pytz.timezone(self.timezone)
        start = tz.localize(datetime.combine(self.start, time.min))
        end = tz.localize(datetime.combine(self.end, time.max))
        prep_start = tz.localize(datetime.combine(self.start - timedelta(days=self.prep_days), time.min))
        return prep_start, start, end

    def phase_at(self, now: datetime) -> EventMode:
        prep_start, start, end = self.bounds()
        if now.tzinfo is None:
            now = pytz.timezone(self.timezone).localize(now)
        if start <= now <= end:
            return EventMode.BIG_SALE_DAY
        if prep_start <= now < start:
            return EventMode.BIG_SALE_PREP
        return EventMode.NONE


DEFAULT_EVENT_CALENDAR = (
    EventCalendarEntry("prime_day_2025", "Prime Day 2025", EventGrade.S,
                       date(2025, 7, 15), date(2025, 7, 16), prep_days=3),
    EventCalendarEntry("black_friday_2025", "Black Friday 2025", EventGrade.S,
                       date(2025, 11, 28), date(2025, 11, 28), prep_days=3),
    EventCalendarEntry("cyber_monday_2025", "Cyber Monday 2025", EventGrade.S,
                       date(2025, 12, 1), date(2025, 12, 1), prep_days=2),
    EventCalendarEntry("new_life_sale_2025", "New Life Sale 2025", EventGrade.S,
                       date(2025, 3, 1), date(2025, 3, 5), prep_days=3),
    EventCalendarEntry("smile_sale_2025_01", "Smile Sale January", EventGrade.A,
                       date(2025, 1, 3), date(2025, 1, 7), apply_to_event_mode=False),
    EventCalendarEntry("time_sale_2025_04", "Time Sale Festival April", EventGrade.A,
                       date(2025, 4, 19), date(2025, 4, 21), apply_to_event_mode=False),
    EventCalendarEntry("fashion_week_2025_09", "Fashion Week September", EventGrade.B,
                       date(2025, 9, 15), date(2025, 9, 21), apply_to_event_mode=False),
)


@dataclass(frozen=True)
class EventModeDecision:
    event_mode: EventMode
    source: EventModeSource
    event_id: Optional[str] = None
    grade: Optional[EventGrade] = None
    label: Optional[str] = None


def resolve_calendar_event(
    now: datetime,
    calendar: Sequence[EventCalendarEntry] = DEFAULT_EVENT_CALENDAR,
) -> EventModeDecision:
    """Highest-grade active entry wins, then the one starting earliest."""
    active = []
    for entry in calendar:
        if not entry.apply_to_event_mode:
            continue
        phase = entry.phase_at(now)
        if phase != EventMode.NONE:
            active.append((entry, phase))

    if not active:
        return EventModeDecision(EventMode.NONE, EventModeSource.CALENDAR)

    active.sort(key=lambda item: (-GRADE_PRIORITY[item[0].grade], item[0].start))
    entry, phase = active[0]
    return EventModeDecision(
        event_mode=phase,
        source=EventModeSource.CALENDAR,
        event_id=entry.id,
        grade=entry.grade,
        label=entry.label,
    )


def resolve_event_mode(
    now: Optional[datetime] = None,
    source: Optional[str] = None,
    manual_mode: Optional[str] = None,
    calendar: Iterable[EventCalendarEntry] = DEFAULT_EVENT_CALENDAR,
) -> EventModeDecision:
    """Event mode for this run, from the manual flag or the sale calendar."""
    resolved_source = parse_event_mode_source(source if source is not None else settings.event_mode_source)

    if resolved_source == EventModeSource.CALENDAR:
        if now is None:
            now = datetime.now(pytz.timezone(settings.timezone))
        decision = resolve_calendar_event(now, tuple(calendar))
    else:
        mode = parse_event_mode(manual_mode if manual_mode is not None else settings.event_mode)
        decision = EventModeDecision(mode, EventModeSource.MANUAL)

    logger.info(
        f"Event mode {decision.event_mode.value} (source={decision.source.value}, "
        f"event={decision.event_id or '-'})"
    )
    return decision
