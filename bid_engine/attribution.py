"""
Attribution-delay safety valve

Conversions can take days to show up in reports, so a keyword that looks
dead in the last 72 hours may not be. Down decisions are cross-checked
against the window that excludes the most recent days.
"""

from dataclasses import dataclass
from typing import Optional

from .config import settings
from .event_policy import EventBidPolicy
from .models import ActionType, KeywordMetrics


@dataclass(frozen=True)
class AttributionConfig:
    safe_window_days: int = 3
    min_clicks_for_down: int = 10
    down_acos_multiplier_7d_excl: float = 1.2
    down_acos_multiplier_30d: float = 1.05
    no_conversion_max_orders_30d: int = 1
    recent_good_cvr_ratio: float = 1.2
    require_down_confirmation: bool = False

    @classmethod
    def from_settings(cls) -> "AttributionConfig":
        return cls(
            safe_window_days=settings.attribution_safe_window_days,
            min_clicks_for_down=settings.min_clicks_for_down,
            down_acos_multiplier_7d_excl=settings.down_acos_multiplier_7d_excl,
            down_acos_multiplier_30d=settings.down_acos_multiplier_30d,
            no_conversion_max_orders_30d=settings.no_conversion_max_orders_30d,
            recent_good_cvr_ratio=settings.recent_good_cvr_ratio,
            require_down_confirmation=settings.require_down_confirmation,
        )


def is_recent_performance_good(metrics: KeywordMetrics, config: AttributionConfig = AttributionConfig()) -> bool:
    recent = metrics.window_last_3d
    if recent.conversions >= 1:
        return True

    recent_cvr = recent.cvr
    base_cvr = metrics.window_7d_excl_recent.cvr
    if recent_cvr is None or not base_cvr:
        return False
    return recent_cvr >= base_cvr * config.recent_good_cvr_ratio


def should_be_no_conversion(
    metrics: KeywordMetrics,
    config: AttributionConfig = AttributionConfig(),
    policy: Optional[EventBidPolicy] = None,
) -> bool:
    if policy is not None and not policy.allow_no_conversion_down:
        return False
    settled = metrics.window_7d_excl_recent
    return (
        settled.clicks >= config.min_clicks_for_down
        and settled.conversions == 0
        and metrics.window_30d.conversions <= config.no_conversion_max_orders_30d
    )


def should_be_acos_high(
    metrics: KeywordMetrics,
    target_acos: float,
    config: AttributionConfig = AttributionConfig(),
    policy: Optional[EventBidPolicy] = None,
) -> bool:
    acos_7d_excl = metrics.window_7d_excl_recent.acos
    acos_30d = metrics.window_30d.acos
    if acos_7d_excl is None or acos_30d is None:
        return False

    if policy is not None:
        m7, m30 = policy.acos_high_multiplier_7d_excl, policy.acos_high_multiplier_30d
    else:
        m7, m30 = config.down_acos_multiplier_7d_excl, config.down_acos_multiplier_30d

    return acos_7d_excl > target_acos * m7 and acos_30d > target_acos * m30


def apply_safety_valve(
    action: ActionType,
    metrics: KeywordMetrics,
    config: AttributionConfig = AttributionConfig(),
    policy: Optional[EventBidPolicy] = None,
) -> ActionType:
    """Downgrade STOP / STRONG_DOWN to MILD_DOWN when the data may still be settling."""
    if action not in (ActionType.STOP, ActionType.STRONG_DOWN):
        return action
    if policy is not None and not policy.allow_strong_down:
        return ActionType.MILD_DOWN
    if is_recent_performance_good(metrics, config):
        return ActionType.MILD_DOWN
    return action
