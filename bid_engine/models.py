"""
Data objects shared by every layer of the decision engine
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class ActionType(str, Enum):
    """Ordinal bid action, most aggressive raise first."""

    STRONG_UP = "STRONG_UP"
    MILD_UP = "MILD_UP"
    KEEP = "KEEP"
    MILD_DOWN = "MILD_DOWN"
    STRONG_DOWN = "STRONG_DOWN"
    STOP = "STOP"

    @property
    def ordinal(self) -> int:
        return _ACTION_ORDER.index(self)

    @property
    def is_up(self) -> bool:
        return self in (ActionType.STRONG_UP, ActionType.MILD_UP)

    @property
    def is_down(self) -> bool:
        return self in (ActionType.MILD_DOWN, ActionType.STRONG_DOWN, ActionType.STOP)

    @property
    def is_strong(self) -> bool:
        return self in (ActionType.STRONG_UP, ActionType.STRONG_DOWN)


_ACTION_ORDER = list(ActionType)


class ScoreRank(str, Enum):
    S = "S"
    A = "A"
    B = "B"
    C = "C"


class BrandType(str, Enum):
    BRAND = "BRAND"
    CONQUEST = "CONQUEST"
    GENERIC = "GENERIC"


class PhaseType(str, Enum):
    NORMAL = "NORMAL"
    S_PRE1 = "S_PRE1"
    S_PRE2 = "S_PRE2"
    S_FREEZE = "S_FREEZE"
    S_NORMAL = "S_NORMAL"
    S_FINAL = "S_FINAL"
    S_REVERT = "S_REVERT"


class OperatingMode(str, Enum):
    NORMAL = "NORMAL"
    S_MODE = "S_MODE"


def _ratio(numerator: float, denominator: float) -> Optional[float]:
    if not denominator:
        return None
    return numerator / denominator


@dataclass(frozen=True)
class WindowMetrics:
    """Rolled-up counters for one time window."""

    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    spend: float = 0.0
    sales: float = 0.0

    @property
    def ctr(self) -> Optional[float]:
        return _ratio(self.clicks, self.impressions)

    @property
    def cvr(self) -> Optional[float]:
        return _ratio(self.conversions, self.clicks)

    @property
    def acos(self) -> Optional[float]:
        return _ratio(self.spend, self.sales)


@dataclass(frozen=True)
class KeywordMetrics:
    keyword_id: str
    campaign_id: str = ""
    ad_group_id: str = ""
    asin: Optional[str] = None
    keyword_text: str = ""
    match_type: str = "EXACT"

    phase_type: PhaseType = PhaseType.NORMAL
    brand_type: BrandType = BrandType.GENERIC
    score_rank: ScoreRank = ScoreRank.B

    current_bid: float = 0.0
    baseline_cpc: float = 0.0
    acos_target: float = 0.0
    acos_actual: Optional[float] = None
    cvr_recent: Optional[float] = None
    cvr_baseline: Optional[float] = None
    ctr_recent: Optional[float] = None
    ctr_baseline: Optional[float] = None

    clicks_1h: int = 0
    clicks_3h: int = 0
    impressions_1h: int = 0
    impressions_3h: int = 0

    rank_current: Optional[int] = None
    rank_target: Optional[int] = None

    competitor_cpc_current: float = 0.0
    competitor_cpc_baseline: float = 0.0
    comp_strength: float = 0.0
    risk_penalty: float = 0.0

    priority_score: float = 0.0
    tos_ctr_mult: float = 1.0
    tos_cvr_mult: float = 1.0
    tos_gap_cpc: float = 0.0

    campaign_budget_remaining: float = 0.0
    expected_clicks_3h: float = 0.0

    window_7d: WindowMetrics = field(default_factory=WindowMetrics)
    window_7d_excl_recent: WindowMetrics = field(default_factory=WindowMetrics)
    window_last_3d: WindowMetrics = field(default_factory=WindowMetrics)
    window_30d: WindowMetrics = field(default_factory=WindowMetrics)

    organic_rank: Optional[int] = None
    organic_rank_trend: Optional[float] = None

    @property
    def cvr_boost(self) -> float:
        """Relative CVR change vs baseline, 0 when there is no baseline."""
        if not self.cvr_baseline:
            return 0.0
        return ((self.cvr_recent or 0.0) - self.cvr_baseline) / self.cvr_baseline

    @property
    def acos_diff(self) -> float:
        if self.acos_actual is None:
            return 0.0
        return self.acos_actual - self.acos_target


@dataclass(frozen=True)
class DebugCoefficients:
    base_change_rate: float = 0.0
    phase_coeff: float = 1.0
    cvr_coeff: float = 1.0
    rank_gap_coeff: float = 1.0
    competitor_coeff: float = 1.0
    brand_coeff: float = 1.0
    stats_coeff: float = 1.0
    tos_coeff: float = 1.0
    raw_change_rate: float = 0.0
    clipped_change_rate: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return dict(self.__dict__)


@dataclass(frozen=True)
class KeywordRecommendation:
    keyword_id: str
    campaign_id: str
    ad_group_id: str
    action: ActionType
    change_rate: float
    current_bid: float
    new_bid: float
    clipped: bool = False
    clip_reason: Optional[str] = None
    is_tos_targeted: bool = False
    tos_eligible_200: bool = False
    coefficients: DebugCoefficients = field(default_factory=DebugCoefficients)
    reason_facts: str = ""
    reason_logic: str = ""
    reason_impact: str = ""
    guard_notes: Tuple[str, ...] = ()
    should_skip: bool = False
    hard_killed: bool = False
    asin: Optional[str] = None
    keyword_text: str = ""
