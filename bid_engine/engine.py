"""
Bid recommendation engine

Turns one keyword's metrics into a KeywordRecommendation:

    determine action
      -> guard layers, in this fixed order:
         brand -> event -> inventory -> TACOS -> attribution delay -> presale
      -> coefficients -> rate clip -> bid projection

Each guard layer is a pure function (Decision, metrics, context) -> Decision.
Layers may rewrite the action, tighten the up/down ratio envelope or shrink
the working target ACOS. An inventory hard kill marks the decision as killed
and every later layer passes it through untouched.
"""

from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .action_logic import apply_brand_adjustment, apply_phase_freeze, determine_action, matched_rule
from .attribution import (
    AttributionConfig,
    apply_safety_valve,
    should_be_acos_high,
    should_be_no_conversion,
)
from .bid_calculation import project_bid
from .coefficients import calculate_coefficients
from .config import GlobalConfig
from .event_policy import EVENT_POLICIES, EventBidPolicy, EventMode
from .inventory_guard import (
    AsinInventorySnapshot,
    InventoryGuardConfig,
    check_hard_kill,
    throttle_limits,
)
from .logger import get_logger
from .models import ActionType, KeywordMetrics, KeywordRecommendation
from .presale import PresaleDiagnosis, adjust_action_for_presale
from .reasons import generate_reason_facts, generate_reason_impact, generate_reason_logic
from .tacos_health import TacosHealthEvaluation
from .tos import is_tos_eligible_200, is_tos_targeted

logger = get_logger(__name__)


@dataclass(frozen=True)
class GuardContext:
    """Read-only inputs shared by every keyword in a run."""

    config: GlobalConfig = field(default_factory=GlobalConfig)
    event_policy: EventBidPolicy = EVENT_POLICIES[EventMode.NONE]
    inventory: Mapping[str, AsinInventorySnapshot] = field(default_factory=dict)
    inventory_config: InventoryGuardConfig = field(default_factory=InventoryGuardConfig)
    tacos: Mapping[str, TacosHealthEvaluation] = field(default_factory=dict)
    presale: Mapping[str, PresaleDiagnosis] = field(default_factory=dict)
    attribution_config: AttributionConfig = field(default_factory=AttributionConfig)


@dataclass(frozen=True)
class Decision:
    action: ActionType
    target_acos: float
    max_up_ratio: Optional[float] = None
    min_down_ratio: Optional[float] = None
    killed: bool = False
    should_skip: bool = False
    notes: Tuple[str, ...] = ()

    def with_action(self, action: ActionType, note: str) -> "Decision":
        if action == self.action:
            return self
        return replace(self, action=action, notes=self.notes + (note,))

    def tighten(
        self,
        max_up_ratio: Optional[float] = None,
        min_down_ratio: Optional[float] = None,
    ) -> "Decision":
        up = self.max_up_ratio
        if max_up_ratio is not None:
            up = max_up_ratio if up is None else min(up, max_up_ratio)
        down = self.min_down_ratio
        if min_down_ratio is not None:
            down = min_down_ratio if down is None else max(down, min_down_ratio)
        return replace(self, max_up_ratio=up, min_down_ratio=down)


GuardLayer = Callable[[Decision, KeywordMetrics, GuardContext], Decision]


def brand_layer(decision: Decision, metrics: KeywordMetrics, ctx: GuardContext) -> Decision:
    action = apply_brand_adjustment(decision.action, metrics.brand_type)
    return decision.with_action(action, f"own brand: {decision.action.value} -> {action.value}")


def event_layer(decision: Decision, metrics: KeywordMetrics, ctx: GuardContext) -> Decision:
    policy = ctx.event_policy
    if policy.name == EventMode.NONE:
        return decision

    if not policy.allow_strong_down and decision.action in (ActionType.STOP, ActionType.STRONG_DOWN):
        decision = decision.with_action(
            ActionType.MILD_DOWN,
            f"{policy.name.value}: {decision.action.value} -> MILD_DOWN",
        )
    return decision.tighten(
        max_up_ratio=policy.max_bid_up_multiplier,
        min_down_ratio=policy.max_bid_down_multiplier,
    )


def inventory_layer(decision: Decision, metrics: KeywordMetrics, ctx: GuardContext) -> Decision:
    if not metrics.asin:
        return decision
    snapshot = ctx.inventory.get(metrics.asin)

    kill = check_hard_kill(snapshot, ctx.inventory_config)
    if kill.should_kill:
        return replace(
            decision,
            killed=True,
            should_skip=kill.should_skip,
            notes=decision.notes + (kill.reason,),
        )

    current_up = decision.max_up_ratio if decision.max_up_ratio is not None else float("inf")
    limits = throttle_limits(snapshot, ctx.inventory_config, current_up, decision.target_acos)
    if limits.reason is None:
        return decision
    notes = decision.notes + (limits.reason,) if decision.action.is_up else decision.notes
    return replace(
        decision.tighten(max_up_ratio=limits.max_up_ratio),
        target_acos=limits.target_acos,
        notes=notes,
    )


def tacos_layer(decision: Decision, metrics: KeywordMetrics, ctx: GuardContext) -> Decision:
    if decision.action != ActionType.STRONG_UP or not metrics.asin:
        return decision
    evaluation = ctx.tacos.get(metrics.asin)
    if evaluation is None:
        return decision

    gate = evaluation.strong_up
    decision = decision.tighten(max_up_ratio=gate.final_multiplier)
    if gate.reason:
        decision = replace(decision, notes=decision.notes + (gate.reason,))
    return decision


def attribution_layer(decision: Decision, metrics: KeywordMetrics, ctx: GuardContext) -> Decision:
    if not decision.action.is_down:
        return decision
    cfg = ctx.attribution_config
    policy = ctx.event_policy

    if cfg.require_down_confirmation:
        confirmed = should_be_acos_high(metrics, decision.target_acos, cfg, policy) or \
            should_be_no_conversion(metrics, cfg, policy)
        if not confirmed:
            return decision.with_action(ActionType.KEEP, "down not confirmed by settled windows")

    action = apply_safety_valve(decision.action, metrics, cfg, policy)
    return decision.with_action(action, f"attribution delay: {decision.action.value} -> {action.value}")


def presale_layer(decision: Decision, metrics: KeywordMetrics, ctx: GuardContext) -> Decision:
    if not metrics.asin:
        return decision
    diagnosis = ctx.presale.get(metrics.asin)
    if diagnosis is None:
        return decision

    adjustment = adjust_action_for_presale(decision.action, diagnosis, decision.target_acos)
    decision = decision.tighten(adjustment.max_up_ratio, adjustment.min_down_ratio)
    if adjustment.reason:
        decision = replace(decision, action=adjustment.action, notes=decision.notes + (adjustment.reason,))
    return decision


GUARD_LAYERS: Tuple[GuardLayer, ...] = (
    brand_layer,
    event_layer,
    inventory_layer,
    tacos_layer,
    attribution_layer,
    presale_layer,
)


def run_guard_layers(decision: Decision, metrics: KeywordMetrics, ctx: GuardContext) -> Decision:
    for layer in GUARD_LAYERS:
        if decision.killed:
            break
        decision = layer(decision, metrics, ctx)
    return decision


def evaluate_keyword(metrics: KeywordMetrics, ctx: GuardContext) -> KeywordRecommendation:
    config = ctx.config

    action = determine_action(metrics, config)
    logger.debug(f"{metrics.keyword_id}: rule {matched_rule(metrics, config)} -> {action.value}")
    action = apply_phase_freeze(action, metrics.phase_type)
    decision = run_guard_layers(Decision(action=action, target_acos=metrics.acos_target), metrics, ctx)
    action = decision.action

    targeted = is_tos_targeted(metrics, config)
    eligible_200 = is_tos_eligible_200(metrics, config)
    coeffs = calculate_coefficients(metrics, config, action, targeted)

    if decision.killed:
        new_bid, change_rate, clipped, clip_reason = 0.0, -1.0, False, None
    else:
        bid = project_bid(
            metrics,
            config,
            action,
            coeffs.raw_change_rate,
            tos_eligible_200=eligible_200,
            max_up_ratio=decision.max_up_ratio,
            min_down_ratio=decision.min_down_ratio,
        )
        new_bid, change_rate, clipped, clip_reason = bid.new_bid, bid.change_rate, bid.clipped, bid.clip_reason

    coeffs = replace(coeffs, clipped_change_rate=change_rate)
    impact = generate_reason_impact(metrics, action, new_bid, change_rate, clipped)
    reason_logic = generate_reason_logic(metrics, config, action, targeted, coeffs)
    if decision.killed:
        reason_logic = f"hard kill, bid set to 0 ({decision.notes[-1]}) | {action.value} overridden | {reason_logic}"
    if decision.notes:
        impact = " | ".join((impact,) + decision.notes)

    return KeywordRecommendation(
        keyword_id=metrics.keyword_id,
        campaign_id=metrics.campaign_id,
        ad_group_id=metrics.ad_group_id,
        action=action,
        change_rate=change_rate,
        current_bid=metrics.current_bid,
        new_bid=new_bid,
        clipped=clipped,
        clip_reason=clip_reason,
        is_tos_targeted=targeted,
        tos_eligible_200=eligible_200,
        coefficients=coeffs,
        reason_facts=generate_reason_facts(metrics),
        reason_logic=reason_logic,
        reason_impact=impact,
        guard_notes=decision.notes,
        should_skip=decision.should_skip,
        hard_killed=decision.killed,
        asin=metrics.asin,
        keyword_text=metrics.keyword_text,
    )


def _fallback_recommendation(metrics: KeywordMetrics, error: Exception) -> KeywordRecommendation:
    return KeywordRecommendation(
        keyword_id=metrics.keyword_id,
        campaign_id=metrics.campaign_id,
        ad_group_id=metrics.ad_group_id,
        action=ActionType.KEEP,
        change_rate=0.0,
        current_bid=metrics.current_bid,
        new_bid=metrics.current_bid,
        reason_impact=f"evaluation failed, bid kept: {error}",
        asin=metrics.asin,
        keyword_text=metrics.keyword_text,
    )


def compute_bid_recommendations(
    keywords: Sequence[KeywordMetrics],
    config: Optional[GlobalConfig] = None,
    context: Optional[GuardContext] = None,
) -> List[KeywordRecommendation]:
    """Evaluate every keyword independently. Output order matches input order."""
    if context is None:
        context = GuardContext(config=config or GlobalConfig())
    elif config is not None:
        context = replace(context, config=config)

    if not keywords:
        logger.warning("No keywords to evaluate")
        return []

    recommendations = []
    for metrics in keywords:
        try:
            recommendations.append(evaluate_keyword(metrics, context))
        except Exception as e:
            logger.error(f"Error evaluating keyword {metrics.keyword_id}: {e}", exc_info=True)
            recommendations.append(_fallback_recommendation(metrics, e))

    summary = summarize_recommendations(recommendations)
    logger.info(
        f"Computed {len(recommendations)} recommendations "
        f"(mode={context.config.mode}, event={context.event_policy.name.value})",
        extra={"summary": summary},
    )
    return recommendations


def summarize_recommendations(recommendations: Sequence[KeywordRecommendation]) -> Dict[str, object]:
    actions = Counter(rec.action.value for rec in recommendations)
    return {
        "total": len(recommendations),
        "actions": {action.value: actions.get(action.value, 0) for action in ActionType},
        "tos_targeted": sum(1 for rec in recommendations if rec.is_tos_targeted),
        "tos_eligible_200": sum(1 for rec in recommendations if rec.tos_eligible_200),
        "clipped": sum(1 for rec in recommendations if rec.clipped),
        "guarded": sum(1 for rec in recommendations if rec.guard_notes),
        "skipped": sum(1 for rec in recommendations if rec.should_skip),
        "hard_killed": sum(1 for rec in recommendations if rec.hard_killed),
    }
