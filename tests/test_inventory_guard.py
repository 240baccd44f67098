"""
Unit tests for the inventory guard
"""

import pytest
from unittest.mock import patch

from bid_engine.inventory_guard import (
    GuardType,
    InventoryGuardConfig,
    InventoryGuardMode,
    InventoryRiskStatus,
    OutOfStockBidPolicy,
    apply_inventory_guard,
    build_snapshot,
    calculate_inventory_risk_status,
)


class TestRiskStatus:
    @pytest.mark.parametrize("days,expected", [
        (None, InventoryRiskStatus.UNKNOWN),
        (0, InventoryRiskStatus.OUT_OF_STOCK),
        (-2, InventoryRiskStatus.OUT_OF_STOCK),
        (5, InventoryRiskStatus.LOW_STOCK_STRICT),
        (10, InventoryRiskStatus.LOW_STOCK),
        (19.5, InventoryRiskStatus.LOW_STOCK),
        (20, InventoryRiskStatus.NORMAL),
    ])
    def test_thresholds(self, days, expected):
        assert calculate_inventory_risk_status(days) == expected


class TestHardKill:
    def test_set_zero(self):
        snapshot = build_snapshot("B01", 0)
        result = apply_inventory_guard(snapshot, recommended_bid=150, current_bid=100)
        assert result.adjusted_bid == 0
        assert result.guard_type == GuardType.HARD_KILL
        assert result.was_applied
        assert not result.should_skip

    def test_skip_recommendation(self):
        config = InventoryGuardConfig(out_of_stock_bid_policy=OutOfStockBidPolicy.SKIP_RECOMMENDATION)
        result = apply_inventory_guard(build_snapshot("B01", 0), 150, 100, config)
        assert result.should_skip
        assert result.adjusted_bid == 0

    def test_guard_off(self):
        config = InventoryGuardConfig(mode=InventoryGuardMode.OFF)
        result = apply_inventory_guard(build_snapshot("B01", 0), 150, 100, config)
        assert result.adjusted_bid == 150
        assert result.guard_type == GuardType.NONE

    def test_unknown_never_triggers(self):
        result = apply_inventory_guard(build_snapshot("B01", None), 150, 100)
        assert result.adjusted_bid == 150
        assert not result.was_applied
        assert result.status == InventoryRiskStatus.UNKNOWN

    def test_missing_snapshot(self):
        result = apply_inventory_guard(None, 150, 100)
        assert result.adjusted_bid == 150
        assert result.status == InventoryRiskStatus.UNKNOWN


class TestSoftThrottle:
    def test_low_stock_caps_increase(self):
        result = apply_inventory_guard(build_snapshot("B01", 15), 150, 100)
        assert result.adjusted_bid == pytest.approx(115)
        assert result.guard_type == GuardType.SOFT_THROTTLE
        assert result.adjusted_max_up_ratio == 1.15
        assert result.adjusted_target_acos == 0.3

    def test_strict_tier(self):
        result = apply_inventory_guard(build_snapshot("B01", 5), 150, 100)
        assert result.adjusted_bid == pytest.approx(105)
        assert result.adjusted_max_up_ratio == 1.05
        assert result.adjusted_target_acos == pytest.approx(0.27)

    def test_strict_mode_compounds_acos_shrink(self):
        config = InventoryGuardConfig(mode=InventoryGuardMode.STRICT)
        result = apply_inventory_guard(build_snapshot("B01", 5), 150, 100, config, original_target_acos=0.3)
        assert result.adjusted_target_acos == pytest.approx(0.243)

    def test_never_overrides_a_decrease(self):
        result = apply_inventory_guard(build_snapshot("B01", 5), 80, 100)
        assert result.adjusted_bid == 80
        assert result.guard_type == GuardType.NONE
        assert not result.was_applied

    def test_normal_stock_untouched(self):
        result = apply_inventory_guard(build_snapshot("B01", 60), 150, 100)
        assert result.adjusted_bid == 150
        assert result.guard_type == GuardType.NONE


class TestConfigFromSettings:
    def test_invalid_values_fall_back(self):
        with patch("bid_engine.inventory_guard.settings") as mock_settings:
            mock_settings.inventory_guard_mode = "paranoid"
            mock_settings.out_of_stock_bid_policy = "explode"
            mock_settings.min_days_of_inventory_for_growth = 7
            mock_settings.min_days_of_inventory_for_normal = 14
            config = InventoryGuardConfig.from_settings()
        assert config.mode == InventoryGuardMode.NORMAL
        assert config.out_of_stock_bid_policy == OutOfStockBidPolicy.SET_ZERO
        assert config.min_days_of_inventory_for_growth == 7
