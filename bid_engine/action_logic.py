"""
Action determination rules
Maps a keyword's signals to one of six ordinal actions
"""

from typing import Callable, Dict, NamedTuple, Tuple

from .config import GlobalConfig
from .models import ActionType, BrandType, KeywordMetrics, PhaseType, ScoreRank

A = ActionType

# (ScoreRank x ActionType) -> base change rate
BASE_CHANGE_RATES: Dict[ScoreRank, Dict[ActionType, float]] = {
    ScoreRank.S: {A.STRONG_UP: 0.50, A.MILD_UP: 0.30, A.KEEP: 0.0,
                  A.MILD_DOWN: -0.20, A.STRONG_DOWN: -0.40, A.STOP: -1.0},
    ScoreRank.A: {A.STRONG_UP: 0.40, A.MILD_UP: 0.25, A.KEEP: 0.0,
                  A.MILD_DOWN: -0.25, A.STRONG_DOWN: -0.50, A.STOP: -1.0},
    ScoreRank.B: {A.STRONG_UP: 0.30, A.MILD_UP: 0.15, A.KEEP: 0.0,
                  A.MILD_DOWN: -0.30, A.STRONG_DOWN: -0.60, A.STOP: -1.0},
    ScoreRank.C: {A.STRONG_UP: 0.20, A.MILD_UP: 0.10, A.KEEP: 0.0,
                  A.MILD_DOWN: -0.35, A.STRONG_DOWN: -0.70, A.STOP: -1.0},
}


def base_change_rate(rank: ScoreRank, action: ActionType) -> float:
    return BASE_CHANGE_RATES[rank][action]


class Rule(NamedTuple):
    name: str
    matches: Callable[[KeywordMetrics, GlobalConfig], bool]
    action: Callable[[KeywordMetrics, GlobalConfig], ActionType]


def _acos_at_least(m: KeywordMetrics, multiplier: float) -> bool:
    if m.acos_target <= 0 or m.acos_actual is None:
        return False
    return m.acos_actual >= m.acos_target * multiplier


def _const(action: ActionType):
    return lambda m, c: action


# Evaluated top to bottom, first match wins. The ACOS stop and soft-down
# rules must stay above the CVR and ACOS tiers, and cvr_collapse above the
# mild-down catch-all.
ACTION_RULES: Tuple[Rule, ...] = (
    # 0. not enough clicks to judge
    Rule("insufficient_data",
         lambda m, c: m.clicks_3h < c.min_clicks_for_decision,
         _const(A.KEEP)),
    # 1. ACOS past the hard-stop multiple
    Rule("acos_hard_stop",
         lambda m, c: _acos_at_least(m, c.acos_hard_stop_multiplier),
         _const(A.STOP)),
    # 2. ACOS past the soft-down multiple
    Rule("acos_soft_down",
         lambda m, c: _acos_at_least(m, c.acos_soft_down_multiplier),
         _const(A.STRONG_DOWN)),
    # 3. big CVR lift at or under target ACOS
    Rule("cvr_strong_lift",
         lambda m, c: m.cvr_boost > 0.3 and m.acos_diff <= 0,
         lambda m, c: A.STRONG_UP if m.score_rank in (ScoreRank.S, ScoreRank.A) else A.MILD_UP),
    # 4. moderate CVR lift, ACOS within 20% of target
    Rule("cvr_lift",
         lambda m, c: m.cvr_boost > 0.1 and m.acos_diff <= m.acos_target * 0.2,
         _const(A.MILD_UP)),
    # 5. ACOS well under target with low risk
    Rule("acos_headroom",
         lambda m, c: m.acos_diff < -m.acos_target * 0.2 and m.risk_penalty < 0.3,
         lambda m, c: A.STRONG_UP if m.score_rank == ScoreRank.S else A.MILD_UP),
    # 6. CVR collapse with ACOS well over target
    Rule("cvr_collapse",
         lambda m, c: m.cvr_boost < -0.4 and m.acos_diff > m.acos_target * 0.5,
         _const(A.STRONG_DOWN)),
    # 7. CVR drop or ACOS over target
    Rule("cvr_drop_or_acos_over",
         lambda m, c: m.cvr_boost < -0.2 or m.acos_diff > m.acos_target * 0.3,
         _const(A.MILD_DOWN)),
    # 8. strong competition with thin click data
    Rule("competitor_pressure",
         lambda m, c: m.comp_strength > 0.7 and m.clicks_3h < c.min_clicks_for_confident,
         lambda m, c: A.MILD_UP if m.acos_diff <= 0 else A.MILD_DOWN),
)


def determine_action(metrics: KeywordMetrics, config: GlobalConfig) -> ActionType:
    for rule in ACTION_RULES:
        if rule.matches(metrics, config):
            return rule.action(metrics, config)
    return A.KEEP


def matched_rule(metrics: KeywordMetrics, config: GlobalConfig) -> str:
    """Name of the rule that decided the action, "default" if none matched."""
    for rule in ACTION_RULES:
        if rule.matches(metrics, config):
            return rule.name
    return "default"


def apply_brand_adjustment(action: ActionType, brand_type: BrandType) -> ActionType:
    """Own-brand traffic never gets a strong down or a stop."""
    if brand_type == BrandType.BRAND and action in (A.STRONG_DOWN, A.STOP):
        return A.MILD_DOWN
    return action


def apply_phase_freeze(action: ActionType, phase_type: PhaseType) -> ActionType:
    if phase_type == PhaseType.S_FREEZE:
        return A.KEEP
    return action
