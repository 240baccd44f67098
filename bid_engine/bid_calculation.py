"""
Change-rate clipping and bid projection
"""

from dataclasses import dataclass
from typing import Optional

from .config import GlobalConfig
from .models import ActionType, KeywordMetrics

MIN_CHANGE_RATE = -1.0


@dataclass(frozen=True)
class ClipResult:
    rate: float
    clipped: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class BidResult:
    new_bid: float
    change_rate: float
    clipped: bool
    clip_reason: Optional[str] = None


def max_change_rate(config: GlobalConfig, tos_eligible_200: bool) -> float:
    if config.mode != "S_MODE":
        return config.max_change_rate_normal
    if tos_eligible_200:
        return config.max_change_rate_smode_tos
    return config.max_change_rate_smode_default


def clip_change_rate(rate: float, config: GlobalConfig, tos_eligible_200: bool = False) -> ClipResult:
    ceiling = max_change_rate(config, tos_eligible_200)
    if rate > ceiling:
        return ClipResult(
            rate=ceiling,
            clipped=True,
            reason=f"change rate {rate:.1%} capped at {ceiling:.0%} ({config.mode})",
        )
    if rate < MIN_CHANGE_RATE:
        return ClipResult(
            rate=MIN_CHANGE_RATE,
            clipped=True,
            reason=f"change rate {rate:.1%} floored at {MIN_CHANGE_RATE:.0%}",
        )
    return ClipResult(rate=rate, clipped=False)


def clip_to_envelope(
    rate: float,
    action: ActionType,
    max_up_ratio: Optional[float],
    min_down_ratio: Optional[float],
) -> ClipResult:
    """Bound the rate by the guard envelope. STOP is exempt from the down floor."""
    if max_up_ratio is not None and 1 + rate > max_up_ratio:
        capped = max_up_ratio - 1
        return ClipResult(
            rate=capped,
            clipped=True,
            reason=f"guard capped change rate {rate:.1%} at {capped:.1%}",
        )
    if action != ActionType.STOP and min_down_ratio is not None and 1 + rate < min_down_ratio:
        floored = min_down_ratio - 1
        return ClipResult(
            rate=floored,
            clipped=True,
            reason=f"guard limited change rate {rate:.1%} to {floored:.1%}",
        )
    return ClipResult(rate=rate, clipped=False)


def calculate_new_bid(current_bid: float, rate: float, action: ActionType) -> float:
    if action == ActionType.STOP:
        return 0.0
    if action == ActionType.KEEP:
        return current_bid
    return max(0.0, current_bid * (1 + rate))


def cpc_ceiling(metrics: KeywordMetrics, config: GlobalConfig) -> float:
    """Upper bound from own, competitor and baseline CPC, never below the floor."""
    ceiling = min(
        metrics.current_bid * 3.0,
        metrics.competitor_cpc_current * 1.15,
        metrics.baseline_cpc * 2.5,
    )
    return max(ceiling, config.cpc_ceiling_floor)


def project_bid(
    metrics: KeywordMetrics,
    config: GlobalConfig,
    action: ActionType,
    raw_rate: float,
    tos_eligible_200: bool = False,
    max_up_ratio: Optional[float] = None,
    min_down_ratio: Optional[float] = None,
) -> BidResult:
    """
    Clip the combined rate, apply it to the current bid and bound the result.

    The first clip reason is reported: mode clip, then guard envelope, then
    the CPC ceiling.
    """
    reasons = []

    rate_clip = clip_change_rate(raw_rate, config, tos_eligible_200)
    if rate_clip.clipped:
        reasons.append(rate_clip.reason)

    envelope_clip = clip_to_envelope(rate_clip.rate, action, max_up_ratio, min_down_ratio)
    if envelope_clip.clipped:
        reasons.append(envelope_clip.reason)
    rate = envelope_clip.rate

    if action == ActionType.STOP:
        rate = MIN_CHANGE_RATE
    elif action == ActionType.KEEP:
        rate = 0.0

    new_bid = calculate_new_bid(metrics.current_bid, rate, action)
    if action == ActionType.KEEP:
        return BidResult(
            new_bid=new_bid,
            change_rate=rate,
            clipped=bool(reasons),
            clip_reason=reasons[0] if reasons else None,
        )

    ceiling = cpc_ceiling(metrics, config)
    if new_bid > ceiling:
        reasons.append(f"bid {new_bid:.0f} capped at CPC ceiling {ceiling:.0f}")
        new_bid = ceiling

    if 0 < new_bid < config.min_bid:
        reasons.append(f"bid {new_bid:.0f} raised to minimum {config.min_bid:.0f}")
        new_bid = config.min_bid

    return BidResult(
        new_bid=float(round(new_bid)),
        change_rate=rate,
        clipped=bool(reasons),
        clip_reason=reasons[0] if reasons else None,
    )
