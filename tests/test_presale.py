"""
Unit tests for presale diagnosis and presale action rewrites
"""

import pytest

from bid_engine.event_policy import EventMode
from bid_engine.models import ActionType
from bid_engine.presale import (
    PeriodMetrics,
    PresaleDiagnosis,
    PresaleDiagnosisInput,
    PresaleType,
    SalePhase,
    adjust_action_for_presale,
    diagnose_presale,
    sale_phase_for_event,
    should_allow_down_in_hold_back,
)

BASELINE = PeriodMetrics(clicks=100, conversions=5, spend=200.0, sales=1000.0)


def diagnose(presale, phase=SalePhase.PRE_SALE):
    return diagnose_presale(PresaleDiagnosisInput(phase, BASELINE, presale))


def diagnosis(kind, baseline_acos=0.3, presale_acos=0.35, baseline_cvr=0.05):
    return PresaleDiagnosis(kind, None, None, baseline_cvr, None, baseline_acos, presale_acos, "test")


class TestDiagnosis:
    def test_buying(self):
        result = diagnose(PeriodMetrics(clicks=20, conversions=1, spend=40.0, sales=200.0))
        assert result.type == PresaleType.BUYING
        assert result.cvr_ratio == pytest.approx(1.0)
        assert result.acos_ratio == pytest.approx(1.0)

    def test_hold_back(self):
        result = diagnose(PeriodMetrics(clicks=50, conversions=1, spend=100.0, sales=200.0))
        assert result.type == PresaleType.HOLD_BACK
        assert result.cvr_ratio == pytest.approx(0.4)

    def test_mixed_signals(self):
        result = diagnose(PeriodMetrics(clicks=40, conversions=3, spend=100.0, sales=200.0))
        assert result.type == PresaleType.MIXED

    def test_thin_data_is_mixed(self):
        result = diagnose(PeriodMetrics(clicks=5, conversions=0))
        assert result.type == PresaleType.MIXED
        assert "not enough clicks" in result.reason

    def test_outside_presale(self):
        result = diagnose(PeriodMetrics(clicks=50, conversions=1), phase=SalePhase.NORMAL)
        assert result.type == PresaleType.NONE


class TestHoldBackDown:
    def test_bad_baseline_allows_down(self):
        assert should_allow_down_in_hold_back(diagnosis(PresaleType.HOLD_BACK), 0.2)

    def test_healthy_baseline_blocks_down(self):
        assert not should_allow_down_in_hold_back(diagnosis(PresaleType.HOLD_BACK, baseline_acos=0.2), 0.2)

    def test_improving_presale_blocks_down(self):
        result = diagnosis(PresaleType.HOLD_BACK, baseline_acos=0.3, presale_acos=0.25)
        assert not should_allow_down_in_hold_back(result, 0.2)

    def test_target_cvr_check(self):
        result = diagnosis(PresaleType.HOLD_BACK, baseline_cvr=0.05)
        assert not should_allow_down_in_hold_back(result, 0.2, target_cvr=0.05)
        assert should_allow_down_in_hold_back(result, 0.2, target_cvr=0.1)


class TestAdjustAction:
    def test_none_is_passthrough(self):
        adjustment = adjust_action_for_presale(ActionType.STOP, diagnosis(PresaleType.NONE), 0.2)
        assert adjustment.action == ActionType.STOP
        assert adjustment.max_up_ratio is None
        assert adjustment.min_down_ratio is None
        assert adjustment.reason is None

    def test_hold_back_blocks_stop(self):
        adjustment = adjust_action_for_presale(ActionType.STOP, diagnosis(PresaleType.HOLD_BACK), 0.2)
        assert adjustment.action == ActionType.KEEP
        assert "HOLD_BACK" in adjustment.reason

    def test_hold_back_softens_strong_down(self):
        adjustment = adjust_action_for_presale(ActionType.STRONG_DOWN, diagnosis(PresaleType.HOLD_BACK), 0.2)
        assert adjustment.action == ActionType.MILD_DOWN
        assert adjustment.min_down_ratio == pytest.approx(0.93)

    def test_hold_back_down_needs_bad_baseline(self):
        result = diagnosis(PresaleType.HOLD_BACK, baseline_acos=0.2)
        adjustment = adjust_action_for_presale(ActionType.MILD_DOWN, result, 0.2)
        assert adjustment.action == ActionType.KEEP

    def test_hold_back_caps_up(self):
        adjustment = adjust_action_for_presale(ActionType.STRONG_UP, diagnosis(PresaleType.HOLD_BACK), 0.2)
        assert adjustment.action == ActionType.MILD_UP
        assert adjustment.max_up_ratio == pytest.approx(1.1)

    def test_buying_keeps_strong_up(self):
        adjustment = adjust_action_for_presale(ActionType.STRONG_UP, diagnosis(PresaleType.BUYING), 0.2)
        assert adjustment.action == ActionType.STRONG_UP
        assert adjustment.max_up_ratio == pytest.approx(1.25)
        assert adjustment.reason is None

    def test_mixed_limits_down(self):
        adjustment = adjust_action_for_presale(ActionType.MILD_DOWN, diagnosis(PresaleType.MIXED), 0.2)
        assert adjustment.action == ActionType.MILD_DOWN
        assert adjustment.min_down_ratio == pytest.approx(0.9)


class TestSalePhase:
    def test_mapping(self):
        assert sale_phase_for_event(EventMode.BIG_SALE_PREP) == SalePhase.PRE_SALE
        assert sale_phase_for_event(EventMode.BIG_SALE_DAY) == SalePhase.MAIN_SALE
        assert sale_phase_for_event(EventMode.NONE) == SalePhase.NORMAL
