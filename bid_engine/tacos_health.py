"""
TACOS health gate

Estimates the most profitable TACOS for an ASIN from its daily history,
scores where the current TACOS sits against that optimum and gates how hard
a STRONG_UP is allowed to push.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .logger import get_logger

logger = get_logger(__name__)


class TacosZone(str, Enum):
    GREEN = "GREEN"
    ORANGE = "ORANGE"
    RED = "RED"


class HealthLevel(str, Enum):
    EXCELLENT = "EXCELLENT"
    HEALTHY = "HEALTHY"
    NEUTRAL = "NEUTRAL"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class TacosProfile:
    margin_potential: float
    target_mid_default: float
    tacos_cap_default: float
    bin_width: float
    tacos_min: float
    tacos_max: float
    min_days_per_bin: int
    tacos_aggressive_offset: float
    low_margin: float


TACOS_PROFILES: Dict[str, TacosProfile] = {
    "SUPPLEMENT_HIGH_LTV": TacosProfile(0.55, 0.18, 0.25, 0.05, 0.05, 0.50, 3, 0.07, 0.08),
    "SUPPLEMENT_NORMAL": TacosProfile(0.50, 0.15, 0.21, 0.05, 0.05, 0.45, 3, 0.06, 0.06),
    "LOW_LTV_SUPPLEMENT": TacosProfile(0.45, 0.12, 0.17, 0.05, 0.05, 0.40, 3, 0.05, 0.05),
}

DEFAULT_PROFILE = "SUPPLEMENT_NORMAL"


def get_tacos_profile(name: Optional[str]) -> TacosProfile:
    profile = TACOS_PROFILES.get((name or "").upper())
    if profile is None:
        logger.warning(f"Unknown TACOS profile '{name}', using {DEFAULT_PROFILE}")
        return TACOS_PROFILES[DEFAULT_PROFILE]
    return profile


@dataclass(frozen=True)
class StrongUpConfig:
    base_multiplier: float = 1.3
    alpha: float = 0.5
    min_multiplier: float = 1.0
    max_multiplier: float = 1.95
    orange_zone_max_multiplier: float = 1.3


@dataclass(frozen=True)
class DailyTacosMetrics:
    date: str
    revenue: float
    ad_spend: float

    @property
    def tacos(self) -> Optional[float]:
        if self.revenue <= 0:
            return None
        return self.ad_spend / self.revenue


@dataclass(frozen=True)
class OptimalTacosResult:
    target_mid: Optional[float]
    aggressive_cap: Optional[float]
    best_bin: Optional[Tuple[float, float]]
    best_avg_profit: Optional[float]
    valid_days: int
    notes: Tuple[str, ...] = ()


def estimate_optimal_tacos(
    daily: Sequence[DailyTacosMetrics],
    profile: TacosProfile,
) -> OptimalTacosResult:
    """Pick the TACOS bin with the highest average daily profit."""
    points = []
    for day in daily:
        tacos = day.tacos
        if tacos is None or day.ad_spend < 0:
            continue
        if profile.tacos_min <= tacos <= profile.tacos_max:
            points.append((tacos, day.revenue * (profile.margin_potential - tacos)))

    if not points:
        return OptimalTacosResult(None, None, None, None, 0, ("no valid days in TACOS range",))

    best = None
    lower = profile.tacos_min
    while lower < profile.tacos_max - 1e-9:
        upper = lower + profile.bin_width
        in_bin = [p for p in points if lower <= p[0] < upper]
        if len(in_bin) >= profile.min_days_per_bin:
            avg_profit = sum(p[1] for p in in_bin) / len(in_bin)
            avg_tacos = sum(p[0] for p in in_bin) / len(in_bin)
            if avg_profit > 0 and (best is None or avg_profit > best[2]):
                best = ((lower, upper), avg_tacos, avg_profit)
        lower = upper

    if best is None:
        return OptimalTacosResult(
            None, None, None, None, len(points),
            (f"no bin with >= {profile.min_days_per_bin} days and positive profit",),
        )

    (bin_range, target_mid, avg_profit) = best
    return OptimalTacosResult(
        target_mid=target_mid,
        aggressive_cap=target_mid + profile.tacos_aggressive_offset,
        best_bin=bin_range,
        best_avg_profit=avg_profit,
        valid_days=len(points),
    )


def calculate_tacos_90d(daily: Sequence[DailyTacosMetrics], min_revenue: float = 0.0) -> Optional[float]:
    spend = 0.0
    revenue = 0.0
    for day in daily:
        if day.revenue > min_revenue:
            spend += day.ad_spend
            revenue += day.revenue
    if revenue <= 0:
        return None
    return spend / revenue


@dataclass(frozen=True)
class TacosControlCeiling:
    tacos_max_for_control: float
    source: str
    ltv_cap_applied: bool


def calculate_control_ceiling(
    ltv_cap: Optional[float],
    aggressive_cap: Optional[float],
    profile: TacosProfile,
) -> TacosControlCeiling:
    if aggressive_cap is not None:
        empirical, source = aggressive_cap, "EMPIRICAL"
    else:
        empirical, source = profile.tacos_cap_default, "DEFAULT"

    if ltv_cap is not None and ltv_cap < empirical:
        return TacosControlCeiling(ltv_cap, source, True)
    return TacosControlCeiling(empirical, source, False)


def determine_tacos_zone(current_tacos: float, target_mid: float, tacos_max: float) -> TacosZone:
    if current_tacos <= target_mid:
        return TacosZone.GREEN
    if current_tacos <= tacos_max:
        return TacosZone.ORANGE
    return TacosZone.RED


@dataclass(frozen=True)
class TacosHealthScore:
    score: float
    level: HealthLevel
    zone: TacosZone


def calculate_tacos_health_score(
    current_tacos: Optional[float],
    target_mid: float,
    tacos_max: float,
    low_margin: float,
) -> TacosHealthScore:
    """Piecewise linear: +1 at mid - low_margin, 0 at mid, -1 at the ceiling."""
    if current_tacos is None or current_tacos <= 0 or target_mid <= 0 or tacos_max <= 0 or target_mid >= tacos_max:
        return TacosHealthScore(0.0, HealthLevel.NEUTRAL, TacosZone.GREEN)

    zone = determine_tacos_zone(current_tacos, target_mid, tacos_max)
    low = max(0.0, target_mid - low_margin)

    if current_tacos <= low:
        return TacosHealthScore(1.0, HealthLevel.EXCELLENT, zone)
    if current_tacos >= tacos_max:
        return TacosHealthScore(-1.0, HealthLevel.CRITICAL, zone)

    if current_tacos <= target_mid:
        span = target_mid - low
        score = (target_mid - current_tacos) / span if span > 0 else 0.0
        level = HealthLevel.HEALTHY if score >= 0.5 else HealthLevel.NEUTRAL
    else:
        score = -(current_tacos - target_mid) / (tacos_max - target_mid)
        level = HealthLevel.WARNING if score >= -0.5 else HealthLevel.CRITICAL

    return TacosHealthScore(max(-1.0, min(1.0, score)), level, zone)


@dataclass(frozen=True)
class StrongUpGateResult:
    raw_multiplier: float
    final_multiplier: float
    was_gated: bool
    reason: Optional[str] = None


def calculate_strong_up_multiplier(score: float, config: StrongUpConfig = StrongUpConfig()) -> float:
    clamped = max(-1.0, min(1.0, score))
    raw = config.base_multiplier * (1 + config.alpha * clamped)
    return max(config.min_multiplier, min(config.max_multiplier, raw))


def gate_strong_up_multiplier(
    multiplier: float,
    zone: TacosZone,
    product_bid_multiplier: float = 1.0,
    config: StrongUpConfig = StrongUpConfig(),
) -> StrongUpGateResult:
    reasons = []
    final = multiplier

    if zone == TacosZone.RED:
        final = config.min_multiplier
        reasons.append("TACOS zone RED: strong-up disabled")
    elif zone == TacosZone.ORANGE and final > config.orange_zone_max_multiplier:
        final = config.orange_zone_max_multiplier
        reasons.append(f"TACOS zone ORANGE: strong-up capped at {config.orange_zone_max_multiplier}")

    if product_bid_multiplier < 1.0 and final > config.orange_zone_max_multiplier:
        final = config.orange_zone_max_multiplier
        reasons.append(f"product bid multiplier {product_bid_multiplier}: strong-up capped")

    return StrongUpGateResult(
        raw_multiplier=multiplier,
        final_multiplier=final,
        was_gated=final != multiplier,
        reason="; ".join(reasons) if reasons else None,
    )


@dataclass(frozen=True)
class TacosHealthEvaluationInput:
    asin: str
    daily: Sequence[DailyTacosMetrics] = field(default_factory=tuple)
    ltv_cap: Optional[float] = None
    profile_name: str = DEFAULT_PROFILE
    product_bid_multiplier: float = 1.0
    current_tacos: Optional[float] = None


@dataclass(frozen=True)
class TacosHealthEvaluation:
    asin: str
    current_tacos: Optional[float]
    target_mid: float
    target_mid_source: str
    control: TacosControlCeiling
    health: TacosHealthScore
    strong_up: StrongUpGateResult
    optimal: OptimalTacosResult

    @property
    def zone(self) -> TacosZone:
        return self.health.zone


def evaluate_tacos_health(
    data: TacosHealthEvaluationInput,
    strong_up_config: StrongUpConfig = StrongUpConfig(),
) -> TacosHealthEvaluation:
    profile = get_tacos_profile(data.profile_name)
    optimal = estimate_optimal_tacos(data.daily, profile)

    if optimal.target_mid is not None:
        target_mid, mid_source = optimal.target_mid, "ESTIMATED"
    else:
        target_mid, mid_source = profile.target_mid_default, "DEFAULT"

    control = calculate_control_ceiling(data.ltv_cap, optimal.aggressive_cap, profile)

    current = data.current_tacos
    if current is None:
        current = calculate_tacos_90d(data.daily)

    health = calculate_tacos_health_score(current, target_mid, control.tacos_max_for_control, profile.low_margin)
    multiplier = calculate_strong_up_multiplier(health.score, strong_up_config)
    gate = gate_strong_up_multiplier(multiplier, health.zone, data.product_bid_multiplier, strong_up_config)

    return TacosHealthEvaluation(
        asin=data.asin,
        current_tacos=current,
        target_mid=target_mid,
        target_mid_source=mid_source,
        control=control,
        health=health,
        strong_up=gate,
        optimal=optimal,
    )


def summarize_zones(evaluations: List[TacosHealthEvaluation]) -> Dict[str, int]:
    counts = {zone.value: 0 for zone in TacosZone}
    for evaluation in evaluations:
        counts[evaluation.zone.value] += 1
    return counts
