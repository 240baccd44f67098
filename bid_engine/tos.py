"""
Top-of-search targeting checks
"""

from .config import GlobalConfig
from .models import KeywordMetrics, ScoreRank


def tos_value(metrics: KeywordMetrics) -> float:
    return metrics.tos_ctr_mult * metrics.tos_cvr_mult


def is_tos_targeted(metrics: KeywordMetrics, config: GlobalConfig) -> bool:
    """Keyword qualifies for an aggressive top-of-search push during a sale."""
    if config.mode != "S_MODE":
        return False
    return (
        metrics.clicks_3h >= config.min_clicks_for_tos
        and metrics.priority_score >= 0.8
        and tos_value(metrics) >= 1.5
        and metrics.tos_gap_cpc > 0
        and metrics.risk_penalty <= 0.4
    )


def is_tos_eligible_200(metrics: KeywordMetrics, config: GlobalConfig) -> bool:
    """Keyword may use the widest (200%) change-rate ceiling."""
    if not is_tos_targeted(metrics, config):
        return False
    if metrics.priority_score < 0.9 or tos_value(metrics) < 2.0:
        return False
    if metrics.score_rank not in (ScoreRank.S, ScoreRank.A):
        return False
    # budget must cover twice the expected 3h spend at the current bid
    needed = metrics.expected_clicks_3h * metrics.current_bid * 2
    return metrics.campaign_budget_remaining >= needed
