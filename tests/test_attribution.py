"""
Unit tests for the attribution-delay safety valve
"""

from unittest.mock import patch

from bid_engine.attribution import (
    AttributionConfig,
    apply_safety_valve,
    is_recent_performance_good,
    should_be_acos_high,
    should_be_no_conversion,
)
from bid_engine.event_policy import EVENT_POLICIES, EventMode
from bid_engine.models import ActionType, WindowMetrics


class TestRecentPerformance:
    def test_recent_conversion_is_good(self, make_metrics):
        metrics = make_metrics(window_last_3d=WindowMetrics(clicks=5, conversions=1))
        assert is_recent_performance_good(metrics)

    def test_quiet_recent_window_is_not_good(self, make_metrics):
        metrics = make_metrics(
            window_last_3d=WindowMetrics(clicks=0, conversions=0),
            window_7d_excl_recent=WindowMetrics(clicks=100, conversions=5),
        )
        assert not is_recent_performance_good(metrics)

    def test_no_baseline(self, make_metrics):
        metrics = make_metrics(window_last_3d=WindowMetrics(clicks=10, conversions=0))
        assert not is_recent_performance_good(metrics)


class TestNoConversion:
    def setup_method(self):
        self.config = AttributionConfig()

    def test_settled_zero_conversions(self, make_metrics):
        metrics = make_metrics(
            window_7d_excl_recent=WindowMetrics(clicks=15, conversions=0),
            window_30d=WindowMetrics(clicks=60, conversions=1),
        )
        assert should_be_no_conversion(metrics, self.config)

    def test_not_enough_clicks(self, make_metrics):
        metrics = make_metrics(window_7d_excl_recent=WindowMetrics(clicks=9, conversions=0))
        assert not should_be_no_conversion(metrics, self.config)

    def test_too_many_monthly_orders(self, make_metrics):
        metrics = make_metrics(
            window_7d_excl_recent=WindowMetrics(clicks=15, conversions=0),
            window_30d=WindowMetrics(clicks=60, conversions=2),
        )
        assert not should_be_no_conversion(metrics, self.config)

    def test_big_sale_day_never_fires(self, make_metrics):
        metrics = make_metrics(window_7d_excl_recent=WindowMetrics(clicks=50, conversions=0))
        policy = EVENT_POLICIES[EventMode.BIG_SALE_DAY]
        assert not should_be_no_conversion(metrics, self.config, policy)


class TestAcosHigh:
    def high_acos_metrics(self, make_metrics, acos_7d, acos_30d):
        return make_metrics(
            window_7d_excl_recent=WindowMetrics(clicks=50, conversions=2, spend=acos_7d * 1000, sales=1000),
            window_30d=WindowMetrics(clicks=200, conversions=8, spend=acos_30d * 1000, sales=1000),
        )

    def test_both_windows_high(self, make_metrics):
        metrics = self.high_acos_metrics(make_metrics, 0.30, 0.25)
        assert should_be_acos_high(metrics, 0.2)

    def test_only_one_window_high(self, make_metrics):
        metrics = self.high_acos_metrics(make_metrics, 0.30, 0.20)
        assert not should_be_acos_high(metrics, 0.2)

    def test_event_policy_multipliers(self, make_metrics):
        # 0.28 clears 1.2x but not the sale-day 1.5x
        metrics = self.high_acos_metrics(make_metrics, 0.28, 0.25)
        assert should_be_acos_high(metrics, 0.2, policy=EVENT_POLICIES[EventMode.NONE])
        assert not should_be_acos_high(metrics, 0.2, policy=EVENT_POLICIES[EventMode.BIG_SALE_DAY])

    def test_missing_sales(self, make_metrics):
        assert not should_be_acos_high(make_metrics(), 0.2)


class TestSafetyValve:
    def test_good_recent_softens_stop(self, make_metrics):
        metrics = make_metrics(window_last_3d=WindowMetrics(clicks=5, conversions=1))
        assert apply_safety_valve(ActionType.STOP, metrics) == ActionType.MILD_DOWN
        assert apply_safety_valve(ActionType.STRONG_DOWN, metrics) == ActionType.MILD_DOWN

    def test_bad_recent_keeps_action(self, make_metrics):
        metrics = make_metrics(window_last_3d=WindowMetrics(clicks=10, conversions=0))
        assert apply_safety_valve(ActionType.STOP, metrics) == ActionType.STOP

    def test_other_actions_untouched(self, make_metrics):
        metrics = make_metrics(window_last_3d=WindowMetrics(clicks=5, conversions=1))
        for action in (ActionType.MILD_DOWN, ActionType.KEEP, ActionType.STRONG_UP):
            assert apply_safety_valve(action, metrics) == action

    def test_sale_day_forbids_strong_down(self, make_metrics):
        metrics = make_metrics(window_last_3d=WindowMetrics(clicks=10, conversions=0))
        policy = EVENT_POLICIES[EventMode.BIG_SALE_DAY]
        assert apply_safety_valve(ActionType.STRONG_DOWN, metrics, policy=policy) == ActionType.MILD_DOWN


class TestConfigFromSettings:
    @patch('bid_engine.attribution.settings')
    def test_reads_settings(self, mock_settings):
        mock_settings.attribution_safe_window_days = 4
        mock_settings.min_clicks_for_down = 12
        mock_settings.down_acos_multiplier_7d_excl = 1.3
        mock_settings.down_acos_multiplier_30d = 1.1
        mock_settings.no_conversion_max_orders_30d = 0
        mock_settings.recent_good_cvr_ratio = 1.5
        mock_settings.require_down_confirmation = True

        config = AttributionConfig.from_settings()

        assert config.min_clicks_for_down == 12
        assert config.no_conversion_max_orders_30d == 0
        assert config.require_down_confirmation is True
