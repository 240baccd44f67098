import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from bid_engine.models import KeywordMetrics, ScoreRank


@pytest.fixture
def make_metrics():
    """Factory for a healthy, data-rich keyword; override any field."""

    def _make(**overrides):
        fields = dict(
            keyword_id="kw-1",
            campaign_id="cmp-1",
            ad_group_id="ag-1",
            asin="B000TEST01",
            keyword_text="protein powder",
            score_rank=ScoreRank.S,
            current_bid=100.0,
            baseline_cpc=100.0,
            competitor_cpc_current=120.0,
            competitor_cpc_baseline=120.0,
            acos_target=0.2,
            acos_actual=0.2,
            cvr_recent=0.05,
            cvr_baseline=0.05,
            clicks_3h=30,
            campaign_budget_remaining=100000.0,
            expected_clicks_3h=10.0,
        )
        fields.update(overrides)
        return KeywordMetrics(**fields)

    return _make
