"""
Human-readable explanation texts attached to each recommendation
"""

from .config import GlobalConfig
from .models import ActionType, BrandType, DebugCoefficients, KeywordMetrics, PhaseType

ACTION_LABELS = {
    ActionType.STRONG_UP: "strong raise",
    ActionType.MILD_UP: "raise",
    ActionType.KEEP: "keep",
    ActionType.MILD_DOWN: "lower",
    ActionType.STRONG_DOWN: "strong lower",
    ActionType.STOP: "stop",
}

BRAND_LABELS = {
    BrandType.BRAND: "own brand",
    BrandType.CONQUEST: "competitor brand",
    BrandType.GENERIC: "generic",
}

PHASE_LABELS = {
    PhaseType.NORMAL: "normal",
    PhaseType.S_PRE1: "3h before sale",
    PhaseType.S_PRE2: "1h before sale",
    PhaseType.S_FREEZE: "sale start (frozen)",
    PhaseType.S_NORMAL: "sale",
    PhaseType.S_FINAL: "final 6h of sale",
    PhaseType.S_REVERT: "after sale",
}


def _pct(value, digits=1) -> str:
    if value is None:
        return "n/a"
    return f"{value * 100:.{digits}f}%"


def generate_reason_facts(metrics: KeywordMetrics) -> str:
    facts = [
        f"bid {metrics.current_bid:.0f} | phase {PHASE_LABELS[metrics.phase_type]} | "
        f"rank {metrics.score_rank.value}",
        f"CVR {_pct(metrics.cvr_recent, 2)} (baseline {_pct(metrics.cvr_baseline, 2)}, "
        f"change {_pct(metrics.cvr_boost)})",
        f"ACOS {_pct(metrics.acos_actual)} (target {_pct(metrics.acos_target)}, "
        f"diff {_pct(metrics.acos_diff)})",
        f"clicks 3h {metrics.clicks_3h}",
        f"keyword type {BRAND_LABELS[metrics.brand_type]}",
    ]

    if metrics.rank_current is not None and metrics.rank_target is not None:
        facts.append(f"position {metrics.rank_current} (target {metrics.rank_target})")

    if metrics.risk_penalty > 0.3:
        facts.append(f"risk penalty {metrics.risk_penalty * 100:.0f}%")

    return " | ".join(facts)


def generate_reason_logic(
    metrics: KeywordMetrics,
    config: GlobalConfig,
    action: ActionType,
    is_tos_targeted: bool,
    coefficients: DebugCoefficients,
) -> str:
    steps = [f"decision: {ACTION_LABELS[action]}"]

    if metrics.clicks_3h < config.min_clicks_for_decision:
        steps.append("not enough data, holding")
        return " → ".join(steps)

    acos = metrics.acos_actual
    target = metrics.acos_target
    if target > 0 and acos is not None and acos >= target * config.acos_hard_stop_multiplier:
        steps.append("ACOS past hard-stop line")
        return " → ".join(steps)
    if target > 0 and acos is not None and acos >= target * config.acos_soft_down_multiplier:
        steps.append("ACOS past soft-down line")

    boost = metrics.cvr_boost
    if boost > 0.3:
        steps.append("CVR sharply up")
    elif boost > 0.1:
        steps.append("CVR up")
    elif boost < -0.3:
        steps.append("CVR sharply down")
    elif boost < -0.1:
        steps.append("CVR down")

    if metrics.acos_diff < -target * 0.2 and metrics.risk_penalty < 0.3:
        steps.append("ACOS comfortably under target with low risk")

    if metrics.rank_current is not None and metrics.rank_target is not None:
        if metrics.rank_current - metrics.rank_target > 3:
            steps.append("behind target position")

    if metrics.comp_strength > 0.7 and coefficients.competitor_coeff > 1.0:
        steps.append("matching competitor bid pressure")

    if metrics.brand_type == BrandType.BRAND:
        steps.append("own brand, protected")

    if is_tos_targeted:
        steps.append("top-of-search target, ceiling relaxed")

    if config.mode == "S_MODE":
        if metrics.phase_type in (PhaseType.S_PRE1, PhaseType.S_PRE2):
            steps.append("pre-sale ramp")
        elif metrics.phase_type == PhaseType.S_FINAL:
            steps.append("final sale push")
        elif metrics.phase_type == PhaseType.S_FREEZE:
            steps.append("frozen at sale start")

    return " → ".join(steps)


def generate_reason_impact(
    metrics: KeywordMetrics,
    action: ActionType,
    new_bid: float,
    change_rate: float,
    clipped: bool,
) -> str:
    impacts = []

    if action == ActionType.STOP:
        impacts.append("bid stopped, budget freed for other keywords")
    elif action == ActionType.KEEP:
        impacts.append("bid kept, monitoring")
    else:
        sign = "+" if change_rate >= 0 else ""
        impacts.append(
            f"bid {metrics.current_bid:.0f} → {new_bid:.0f} ({sign}{change_rate * 100:.1f}%)"
        )
        if new_bid > metrics.current_bid:
            impacts.append(f"expect more traffic (expected 3h clicks {metrics.expected_clicks_3h:.1f})")
        else:
            impacts.append("expect better cost efficiency")

    if clipped:
        impacts.append("⚠️ limited by change-rate or bid ceiling")

    if action.is_up:
        estimated_cost = new_bid * metrics.expected_clicks_3h
        if estimated_cost > metrics.campaign_budget_remaining * 0.5:
            impacts.append("⚠️ watch campaign budget")

    return " | ".join(impacts)
