"""
Presale diagnosis

In the days before a big sale shoppers either buy early or hold back for the
sale price. The diagnosis compares a presale window against a baseline window
and picks a bid policy that keeps hold-back dips from being read as decay.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from .event_policy import EventMode
from .models import ActionType


class SalePhase(str, Enum):
    NORMAL = "NORMAL"
    PRE_SALE = "PRE_SALE"
    MAIN_SALE = "MAIN_SALE"
    COOL_DOWN = "COOL_DOWN"


class PresaleType(str, Enum):
    NONE = "NONE"
    BUYING = "BUYING"
    HOLD_BACK = "HOLD_BACK"
    MIXED = "MIXED"


@dataclass(frozen=True)
class PresaleThresholds:
    min_cvr_ratio_for_buying: float = 0.9
    max_acos_ratio_for_buying: float = 1.2
    max_cvr_ratio_for_hold_back: float = 0.6
    min_acos_ratio_for_hold_back: float = 1.3
    baseline_min_clicks: int = 20
    presale_min_clicks: int = 10


@dataclass(frozen=True)
class PeriodMetrics:
    clicks: int = 0
    conversions: int = 0
    spend: float = 0.0
    sales: float = 0.0

    @property
    def cvr(self) -> Optional[float]:
        return self.conversions / self.clicks if self.clicks > 0 else None

    @property
    def acos(self) -> Optional[float]:
        return self.spend / self.sales if self.sales > 0 else None


@dataclass(frozen=True)
class PresaleDiagnosisInput:
    sale_phase: SalePhase
    baseline: PeriodMetrics
    presale: PeriodMetrics
    baseline_days: int = 30
    presale_window_days: int = 5


@dataclass(frozen=True)
class PresaleDiagnosis:
    type: PresaleType
    cvr_ratio: Optional[float]
    acos_ratio: Optional[float]
    baseline_cvr: Optional[float]
    presale_cvr: Optional[float]
    baseline_acos: Optional[float]
    presale_acos: Optional[float]
    reason: str


@dataclass(frozen=True)
class PresaleBidPolicy:
    allow_stop_neg: bool
    allow_strong_down: bool
    allow_down: bool
    max_down_percent: float
    allow_strong_up: bool
    max_up_multiplier: float
    use_baseline_as_primary: bool


PRESALE_POLICIES: Dict[PresaleType, PresaleBidPolicy] = {
    PresaleType.NONE: PresaleBidPolicy(True, True, True, 15, True, 1.3, False),
    PresaleType.BUYING: PresaleBidPolicy(True, True, True, 15, True, 1.25, False),
    PresaleType.HOLD_BACK: PresaleBidPolicy(False, False, True, 7, False, 1.1, True),
    PresaleType.MIXED: PresaleBidPolicy(False, False, True, 10, False, 1.15, True),
}


def _ratio(presale: Optional[float], baseline: Optional[float]) -> Optional[float]:
    if presale is None or not baseline:
        return None
    return presale / baseline


def diagnose_presale(
    data: PresaleDiagnosisInput,
    thresholds: PresaleThresholds = PresaleThresholds(),
) -> PresaleDiagnosis:
    baseline_cvr, presale_cvr = data.baseline.cvr, data.presale.cvr
    baseline_acos, presale_acos = data.baseline.acos, data.presale.acos
    cvr_ratio = _ratio(presale_cvr, baseline_cvr)
    acos_ratio = _ratio(presale_acos, baseline_acos)

    def result(kind: PresaleType, reason: str) -> PresaleDiagnosis:
        return PresaleDiagnosis(kind, cvr_ratio, acos_ratio, baseline_cvr, presale_cvr,
                                baseline_acos, presale_acos, reason)

    if data.sale_phase != SalePhase.PRE_SALE:
        return result(PresaleType.NONE, f"sale phase {data.sale_phase.value}, not presale")

    if data.baseline.clicks < thresholds.baseline_min_clicks or data.presale.clicks < thresholds.presale_min_clicks:
        return result(PresaleType.MIXED, "not enough clicks to diagnose")

    if cvr_ratio is None:
        return result(PresaleType.MIXED, "CVR ratio unavailable")

    if cvr_ratio >= thresholds.min_cvr_ratio_for_buying and (
        acos_ratio is None or acos_ratio <= thresholds.max_acos_ratio_for_buying
    ):
        return result(PresaleType.BUYING, f"presale buying (CVR ratio {cvr_ratio:.2f})")

    if cvr_ratio <= thresholds.max_cvr_ratio_for_hold_back and (
        acos_ratio is None or acos_ratio >= thresholds.min_acos_ratio_for_hold_back
    ):
        return result(PresaleType.HOLD_BACK, f"shoppers holding back (CVR ratio {cvr_ratio:.2f})")

    return result(PresaleType.MIXED, f"mixed signals (CVR ratio {cvr_ratio:.2f})")


def get_presale_policy(presale_type: PresaleType) -> PresaleBidPolicy:
    return PRESALE_POLICIES[presale_type]


def should_allow_down_in_hold_back(
    diagnosis: PresaleDiagnosis,
    target_acos: float,
    target_cvr: Optional[float] = None,
) -> bool:
    """A hold-back down needs the baseline itself to be bad, not just the presale dip."""
    if diagnosis.baseline_acos is None or diagnosis.presale_acos is None:
        return False
    if diagnosis.baseline_acos <= target_acos * 1.2:
        return False
    if diagnosis.presale_acos < diagnosis.baseline_acos:
        return False
    if target_cvr is not None and diagnosis.baseline_cvr is not None:
        return diagnosis.baseline_cvr < target_cvr * 0.8
    return True


@dataclass(frozen=True)
class PresaleAdjustment:
    action: ActionType
    max_up_ratio: Optional[float]
    min_down_ratio: Optional[float]
    reason: Optional[str] = None


def adjust_action_for_presale(
    action: ActionType,
    diagnosis: PresaleDiagnosis,
    target_acos: float,
    target_cvr: Optional[float] = None,
) -> PresaleAdjustment:
    """Defensive and offensive rewrites of an action under the presale policy."""
    if diagnosis.type == PresaleType.NONE:
        return PresaleAdjustment(action, None, None)

    policy = get_presale_policy(diagnosis.type)
    original = action
    max_up_ratio = None
    min_down_ratio = None

    # defense
    if action == ActionType.STOP and not policy.allow_stop_neg:
        action = ActionType.KEEP
    elif action == ActionType.STRONG_DOWN and not policy.allow_strong_down:
        action = ActionType.MILD_DOWN if policy.allow_down else ActionType.KEEP
    if action == ActionType.MILD_DOWN and not policy.allow_down:
        action = ActionType.KEEP
    if action == ActionType.MILD_DOWN and diagnosis.type == PresaleType.HOLD_BACK:
        if not should_allow_down_in_hold_back(diagnosis, target_acos, target_cvr):
            action = ActionType.KEEP
    if action.is_down and action != ActionType.STOP:
        min_down_ratio = 1 - policy.max_down_percent / 100

    # offense
    if action == ActionType.STRONG_UP and not policy.allow_strong_up:
        action = ActionType.MILD_UP
    if action.is_up:
        max_up_ratio = policy.max_up_multiplier

    reason = None
    if action != original:
        reason = f"presale {diagnosis.type.value}: {original.value} -> {action.value}"
    return PresaleAdjustment(action, max_up_ratio, min_down_ratio, reason)


def sale_phase_for_event(event_mode) -> SalePhase:
    """Map the run's event mode onto a sale phase."""
    if event_mode == EventMode.BIG_SALE_PREP:
        return SalePhase.PRE_SALE
    if event_mode == EventMode.BIG_SALE_DAY:
        return SalePhase.MAIN_SALE
    return SalePhase.NORMAL
