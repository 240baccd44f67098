"""
Inventory guard
Stops or throttles bids for ASINs that are about to run out of stock
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import settings
from .logger import get_logger

logger = get_logger(__name__)


class InventoryRiskStatus(str, Enum):
    OUT_OF_STOCK = "OUT_OF_STOCK"
    LOW_STOCK_STRICT = "LOW_STOCK_STRICT"
    LOW_STOCK = "LOW_STOCK"
    NORMAL = "NORMAL"
    UNKNOWN = "UNKNOWN"


class InventoryGuardMode(str, Enum):
    OFF = "OFF"
    NORMAL = "NORMAL"
    STRICT = "STRICT"


class OutOfStockBidPolicy(str, Enum):
    SET_ZERO = "SET_ZERO"
    SKIP_RECOMMENDATION = "SKIP_RECOMMENDATION"


class GuardType(str, Enum):
    HARD_KILL = "HARD_KILL"
    SOFT_THROTTLE = "SOFT_THROTTLE"
    NONE = "NONE"


@dataclass(frozen=True)
class InventoryGuardConfig:
    mode: InventoryGuardMode = InventoryGuardMode.NORMAL
    out_of_stock_bid_policy: OutOfStockBidPolicy = OutOfStockBidPolicy.SET_ZERO
    min_days_of_inventory_for_growth: float = 10
    min_days_of_inventory_for_normal: float = 20
    max_up_ratio_low_stock: float = 1.15
    max_up_ratio_low_stock_strict: float = 1.05
    target_acos_multiplier_strict: float = 0.9

    @classmethod
    def from_settings(cls) -> "InventoryGuardConfig":
        try:
            mode = InventoryGuardMode(settings.inventory_guard_mode.upper())
        except ValueError:
            logger.warning(f"Unknown inventory guard mode '{settings.inventory_guard_mode}', using NORMAL")
            mode = InventoryGuardMode.NORMAL
        try:
            policy = OutOfStockBidPolicy(settings.out_of_stock_bid_policy.upper())
        except ValueError:
            logger.warning(f"Unknown out-of-stock policy '{settings.out_of_stock_bid_policy}', using SET_ZERO")
            policy = OutOfStockBidPolicy.SET_ZERO
        return cls(
            mode=mode,
            out_of_stock_bid_policy=policy,
            min_days_of_inventory_for_growth=settings.min_days_of_inventory_for_growth,
            min_days_of_inventory_for_normal=settings.min_days_of_inventory_for_normal,
        )


@dataclass(frozen=True)
class AsinInventorySnapshot:
    asin: str
    days_of_inventory: Optional[float]
    status: InventoryRiskStatus


def calculate_inventory_risk_status(
    days_of_inventory: Optional[float],
    config: InventoryGuardConfig = InventoryGuardConfig(),
) -> InventoryRiskStatus:
    if days_of_inventory is None:
        return InventoryRiskStatus.UNKNOWN
    if days_of_inventory <= 0:
        return InventoryRiskStatus.OUT_OF_STOCK
    if days_of_inventory < config.min_days_of_inventory_for_growth:
        return InventoryRiskStatus.LOW_STOCK_STRICT
    if days_of_inventory < config.min_days_of_inventory_for_normal:
        return InventoryRiskStatus.LOW_STOCK
    return InventoryRiskStatus.NORMAL


def build_snapshot(
    asin: str,
    days_of_inventory: Optional[float],
    config: InventoryGuardConfig = InventoryGuardConfig(),
) -> AsinInventorySnapshot:
    return AsinInventorySnapshot(
        asin=asin,
        days_of_inventory=days_of_inventory,
        status=calculate_inventory_risk_status(days_of_inventory, config),
    )


@dataclass(frozen=True)
class HardKillResult:
    should_kill: bool
    should_skip: bool = False
    reason: str = ""


@dataclass(frozen=True)
class ThrottleLimits:
    max_up_ratio: float
    target_acos: float
    reason: Optional[str] = None


@dataclass(frozen=True)
class InventoryGuardResult:
    adjusted_bid: float
    original_bid: float
    was_applied: bool
    guard_type: GuardType
    status: InventoryRiskStatus
    reason: Optional[str]
    should_skip: bool
    adjusted_max_up_ratio: float
    adjusted_target_acos: float


def check_hard_kill(
    snapshot: Optional[AsinInventorySnapshot],
    config: InventoryGuardConfig,
) -> HardKillResult:
    if config.mode == InventoryGuardMode.OFF or snapshot is None:
        return HardKillResult(should_kill=False)
    if snapshot.status != InventoryRiskStatus.OUT_OF_STOCK:
        return HardKillResult(should_kill=False)

    skip = config.out_of_stock_bid_policy == OutOfStockBidPolicy.SKIP_RECOMMENDATION
    return HardKillResult(
        should_kill=True,
        should_skip=skip,
        reason=f"ASIN {snapshot.asin} out of stock ({config.out_of_stock_bid_policy.value})",
    )


def throttle_limits(
    snapshot: Optional[AsinInventorySnapshot],
    config: InventoryGuardConfig,
    max_up_ratio: float,
    target_acos: float,
) -> ThrottleLimits:
    """Tightened up-ratio and target ACOS for low-stock ASINs."""
    if config.mode == InventoryGuardMode.OFF or snapshot is None:
        return ThrottleLimits(max_up_ratio, target_acos)

    if snapshot.status == InventoryRiskStatus.LOW_STOCK_STRICT:
        acos_multiplier = config.target_acos_multiplier_strict
        if config.mode == InventoryGuardMode.STRICT:
            acos_multiplier *= config.target_acos_multiplier_strict
        days = snapshot.days_of_inventory
        return ThrottleLimits(
            max_up_ratio=min(max_up_ratio, config.max_up_ratio_low_stock_strict),
            target_acos=target_acos * acos_multiplier,
            reason=f"low stock ({days:.0f} days): up ratio capped at {config.max_up_ratio_low_stock_strict}",
        )

    if snapshot.status == InventoryRiskStatus.LOW_STOCK:
        days = snapshot.days_of_inventory
        return ThrottleLimits(
            max_up_ratio=min(max_up_ratio, config.max_up_ratio_low_stock),
            target_acos=target_acos,
            reason=f"stock running down ({days:.0f} days): up ratio capped at {config.max_up_ratio_low_stock}",
        )

    return ThrottleLimits(max_up_ratio, target_acos)


def apply_inventory_guard(
    snapshot: Optional[AsinInventorySnapshot],
    recommended_bid: float,
    current_bid: float,
    config: InventoryGuardConfig = InventoryGuardConfig(),
    original_max_up_ratio: float = 1.3,
    original_target_acos: float = 0.3,
) -> InventoryGuardResult:
    """
    Adjust a single recommended bid for stock runway.

    Hard kill first (out of stock), then soft throttle (low stock). The
    throttle can only pull an increase back down, never raise a bid.
    """
    status = snapshot.status if snapshot else InventoryRiskStatus.UNKNOWN

    kill = check_hard_kill(snapshot, config)
    if kill.should_kill:
        logger.info(kill.reason)
        return InventoryGuardResult(
            adjusted_bid=0.0,
            original_bid=recommended_bid,
            was_applied=True,
            guard_type=GuardType.HARD_KILL,
            status=status,
            reason=kill.reason,
            should_skip=kill.should_skip,
            adjusted_max_up_ratio=original_max_up_ratio,
            adjusted_target_acos=original_target_acos,
        )

    limits = throttle_limits(snapshot, config, original_max_up_ratio, original_target_acos)
    adjusted_bid = recommended_bid
    if limits.reason:
        adjusted_bid = min(recommended_bid, current_bid * limits.max_up_ratio)

    throttled = adjusted_bid < recommended_bid
    return InventoryGuardResult(
        adjusted_bid=adjusted_bid,
        original_bid=recommended_bid,
        was_applied=throttled,
        guard_type=GuardType.SOFT_THROTTLE if throttled else GuardType.NONE,
        status=status,
        reason=limits.reason if throttled else None,
        should_skip=False,
        adjusted_max_up_ratio=limits.max_up_ratio,
        adjusted_target_acos=limits.target_acos,
    )
