# Re-export the decision engine entry points
from .config import settings, GlobalConfig
from .logger import get_logger
from .models import ActionType, KeywordMetrics, KeywordRecommendation, WindowMetrics
from .engine import GuardContext, compute_bid_recommendations, evaluate_keyword

__all__ = [
    "settings",
    "GlobalConfig",
    "get_logger",
    "ActionType",
    "KeywordMetrics",
    "KeywordRecommendation",
    "WindowMetrics",
    "GuardContext",
    "compute_bid_recommendations",
    "evaluate_keyword",
]
