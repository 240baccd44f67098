"""
Central configuration for the bid engine.
Uses pydantic-settings to load from environment with sane defaults.
"""

from dataclasses import dataclass

from pydantic_settings import BaseSettings
from pydantic import Field

from .models import OperatingMode


@dataclass(frozen=True)
class GlobalConfig:
    """Run-scoped decision settings. Built once per run and never mutated."""

    mode: str = "NORMAL"
    manual_mode: bool = False

    max_change_rate_normal: float = 0.6
    max_change_rate_smode_default: float = 1.5
    max_change_rate_smode_tos: float = 2.0

    min_clicks_for_decision: int = 5
    min_clicks_for_confident: int = 20
    min_clicks_for_tos: int = 40

    acos_hard_stop_multiplier: float = 3.0
    acos_soft_down_multiplier: float = 1.5

    min_bid: float = 10.0
    cpc_ceiling_floor: float = 50.0


class Settings(BaseSettings):
    # Core identifiers
    project_id: str = Field(default="amazon-ppc-474902", alias="GCP_PROJECT")
    dataset_id: str = Field(default="amazon_ppc", alias="BQ_DATASET")

    timezone: str = Field(default="Asia/Tokyo", alias="TIMEZONE")
    currency: str = Field(default="JPY", alias="CURRENCY")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Decision engine
    operating_mode: str = Field(default="NORMAL", alias="OPERATING_MODE")
    manual_mode: bool = Field(default=False, alias="MANUAL_MODE")
    max_change_rate_normal: float = Field(default=0.6, alias="MAX_CHANGE_RATE_NORMAL")
    max_change_rate_smode_default: float = Field(default=1.5, alias="MAX_CHANGE_RATE_SMODE")
    max_change_rate_smode_tos: float = Field(default=2.0, alias="MAX_CHANGE_RATE_SMODE_TOS")
    min_clicks_for_decision: int = Field(default=5, alias="MIN_CLICKS_FOR_DECISION")
    min_clicks_for_confident: int = Field(default=20, alias="MIN_CLICKS_FOR_CONFIDENT")
    min_clicks_for_tos: int = Field(default=40, alias="MIN_CLICKS_FOR_TOS")
    acos_hard_stop_multiplier: float = Field(default=3.0, alias="ACOS_HARD_STOP_MULTIPLIER")
    acos_soft_down_multiplier: float = Field(default=1.5, alias="ACOS_SOFT_DOWN_MULTIPLIER")
    min_bid: float = Field(default=10.0, alias="MIN_BID")
    default_target_acos: float = Field(default=0.30, alias="DEFAULT_TARGET_ACOS")
    cpc_ceiling_floor: float = Field(default=50.0, alias="CPC_CEILING_FLOOR")

    # Run switches (validated by their own modules, unknown values fall back safely)
    execution_mode: str = Field(default="SHADOW", alias="EXECUTION_MODE")
    event_mode: str = Field(default="NONE", alias="EVENT_MODE")
    event_mode_source: str = Field(default="MANUAL", alias="EVENT_MODE_SOURCE")

    # Inventory guard
    inventory_guard_mode: str = Field(default="NORMAL", alias="INVENTORY_GUARD_MODE")
    out_of_stock_bid_policy: str = Field(default="SET_ZERO", alias="OUT_OF_STOCK_BID_POLICY")
    min_days_of_inventory_for_growth: float = Field(default=10, alias="MIN_DAYS_INVENTORY_GROWTH")
    min_days_of_inventory_for_normal: float = Field(default=20, alias="MIN_DAYS_INVENTORY_NORMAL")

    # Attribution delay
    attribution_safe_window_days: int = Field(default=3, alias="ATTRIBUTION_SAFE_WINDOW_DAYS")
    min_clicks_for_down: int = Field(default=10, alias="MIN_CLICKS_FOR_DOWN")
    down_acos_multiplier_7d_excl: float = Field(default=1.2, alias="DOWN_ACOS_MULTIPLIER_7D_EXCL")
    down_acos_multiplier_30d: float = Field(default=1.05, alias="DOWN_ACOS_MULTIPLIER_30D")
    no_conversion_max_orders_30d: int = Field(default=1, alias="NO_CONVERSION_MAX_ORDERS_30D")
    recent_good_cvr_ratio: float = Field(default=1.2, alias="RECENT_GOOD_CVR_RATIO")
    require_down_confirmation: bool = Field(default=False, alias="REQUIRE_DOWN_CONFIRMATION")

    # TACOS
    tacos_profile: str = Field(default="SUPPLEMENT_NORMAL", alias="TACOS_PROFILE")
    tacos_lookback_days: int = Field(default=90, alias="TACOS_LOOKBACK_DAYS")

    class Config:
        populate_by_name = True
        case_sensitive = False

    def global_config(self) -> GlobalConfig:
        try:
            mode = OperatingMode(self.operating_mode.strip().upper())
        except ValueError:
            mode = OperatingMode.NORMAL
        return GlobalConfig(
            mode=mode.value,
            manual_mode=self.manual_mode,
            max_change_rate_normal=self.max_change_rate_normal,
            max_change_rate_smode_default=self.max_change_rate_smode_default,
            max_change_rate_smode_tos=self.max_change_rate_smode_tos,
            min_clicks_for_decision=self.min_clicks_for_decision,
            min_clicks_for_confident=self.min_clicks_for_confident,
            min_clicks_for_tos=self.min_clicks_for_tos,
            acos_hard_stop_multiplier=self.acos_hard_stop_multiplier,
            acos_soft_down_multiplier=self.acos_soft_down_multiplier,
            min_bid=self.min_bid,
            cpc_ceiling_floor=self.cpc_ceiling_floor,
        )


# Single settings instance
settings = Settings()

__all__ = ["settings", "Settings", "GlobalConfig"]
