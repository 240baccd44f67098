"""
Multiplicative adjustment factors applied on top of the base change rate
"""

from typing import Dict

from .action_logic import base_change_rate
from .config import GlobalConfig
from .models import ActionType, BrandType, DebugCoefficients, KeywordMetrics, PhaseType
from .tos import tos_value

SMODE_PHASE_COEFFS: Dict[PhaseType, float] = {
    PhaseType.NORMAL: 1.0,
    PhaseType.S_PRE1: 1.2,
    PhaseType.S_PRE2: 1.5,
    PhaseType.S_FREEZE: 0.0,
    PhaseType.S_NORMAL: 1.3,
    PhaseType.S_FINAL: 1.8,
    PhaseType.S_REVERT: 0.8,
}


def phase_coeff(metrics: KeywordMetrics, config: GlobalConfig) -> float:
    if config.mode != "S_MODE":
        return 1.0
    return SMODE_PHASE_COEFFS.get(metrics.phase_type, 1.0)


def cvr_coeff(metrics: KeywordMetrics, config: GlobalConfig, action: ActionType) -> float:
    if not metrics.cvr_baseline:
        return 1.0
    boost = metrics.cvr_boost

    if config.mode == "S_MODE":
        if action.is_up:
            if boost > 0.4:
                return 1.5
            if boost > 0.2:
                return 1.3
            if boost > 0.1:
                return 1.15
        elif action.is_down:
            if boost < -0.4:
                return 0.7
            if boost < -0.2:
                return 0.85
        return 1.0

    if boost > 0.3:
        return 1.15
    if boost > 0.1:
        return 1.08
    if boost < -0.3:
        return 0.85
    if boost < -0.1:
        return 0.92
    return 1.0


def rank_gap_coeff(metrics: KeywordMetrics, action: ActionType) -> float:
    """Push harder up when behind the target rank, harder down when ahead."""
    if metrics.rank_current is None or metrics.rank_target is None:
        return 1.0
    gap = metrics.rank_current - metrics.rank_target

    if gap > 0 and action.is_up:
        if gap >= 5:
            return 1.3
        if gap >= 3:
            return 1.2
        return 1.1
    if gap < 0 and action.is_down:
        if gap <= -3:
            return 1.15
        return 1.08
    return 1.0


def competitor_coeff(metrics: KeywordMetrics, action: ActionType) -> float:
    if metrics.competitor_cpc_baseline > 0:
        ratio = metrics.competitor_cpc_current / metrics.competitor_cpc_baseline
    else:
        ratio = 1.0

    if action.is_up:
        if ratio >= 1.2 and metrics.comp_strength > 0.6:
            return 1.25
        if ratio > 1.1 and metrics.comp_strength > 0.5:
            return 1.15
    elif action.is_down and ratio < 0.9:
        return 1.1
    return 1.0


def brand_coeff(metrics: KeywordMetrics, action: ActionType) -> float:
    if metrics.brand_type == BrandType.BRAND:
        if action.is_up:
            return 1.2
        if action.is_down:
            return 0.8
    elif metrics.brand_type == BrandType.CONQUEST and action == ActionType.STRONG_UP:
        return 0.9
    return 1.0


def stats_coeff(metrics: KeywordMetrics, config: GlobalConfig, action: ActionType) -> float:
    """Confidence discount based on click volume."""
    if metrics.clicks_3h < config.min_clicks_for_decision:
        return 0.5
    if metrics.clicks_3h < config.min_clicks_for_confident:
        return 0.7 if action.is_strong else 0.85
    if metrics.clicks_3h >= config.min_clicks_for_tos:
        return 1.1
    return 1.0


def tos_coeff(
    metrics: KeywordMetrics,
    config: GlobalConfig,
    action: ActionType,
    is_tos_targeted: bool,
) -> float:
    if not is_tos_targeted or config.mode != "S_MODE" or not action.is_up:
        return 1.0
    value = tos_value(metrics)
    if value > 2.0:
        return 1.8
    if value > 1.5:
        return 1.5
    if value > 1.2:
        return 1.3
    return 1.2


def calculate_coefficients(
    metrics: KeywordMetrics,
    config: GlobalConfig,
    action: ActionType,
    is_tos_targeted: bool = False,
) -> DebugCoefficients:
    """All seven factors plus the combined (unclipped) rate."""
    coeffs = {
        "phase_coeff": phase_coeff(metrics, config),
        "cvr_coeff": cvr_coeff(metrics, config, action),
        "rank_gap_coeff": rank_gap_coeff(metrics, action),
        "competitor_coeff": competitor_coeff(metrics, action),
        "brand_coeff": brand_coeff(metrics, action),
        "stats_coeff": stats_coeff(metrics, config, action),
        "tos_coeff": tos_coeff(metrics, config, action, is_tos_targeted),
    }
    base = base_change_rate(metrics.score_rank, action)

    rate = base
    for value in coeffs.values():
        rate *= value

    return DebugCoefficients(
        base_change_rate=base,
        raw_change_rate=rate,
        clipped_change_rate=rate,
        **coeffs,
    )
