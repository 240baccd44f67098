"""
Main bid optimization job
Runs hourly via Cloud Scheduler
"""

import sys
import uuid
from datetime import datetime
import pytz
from typing import Dict

from bid_engine.amazon_client import AmazonAdsClient
from bid_engine.attribution import AttributionConfig
from bid_engine.bigquery_client import BigQueryClient
from bid_engine.config import settings
from bid_engine.engine import GuardContext, compute_bid_recommendations, summarize_recommendations
from bid_engine.event_policy import get_event_bid_policy, resolve_event_mode
from bid_engine.execution_mode import ExecutionMode, get_execution_mode
from bid_engine.inventory_guard import InventoryGuardConfig
from bid_engine.logger import get_logger
from bid_engine.presale import (
    PresaleDiagnosis,
    PresaleDiagnosisInput,
    SalePhase,
    diagnose_presale,
    sale_phase_for_event,
)
from bid_engine.tacos_health import (
    TacosHealthEvaluation,
    TacosHealthEvaluationInput,
    evaluate_tacos_health,
    summarize_zones,
)

logger = get_logger(__name__)


class BidOptimizer:
    def __init__(self, bq_client: BigQueryClient = None, amazon_client: AmazonAdsClient = None):
        self.execution_mode = get_execution_mode()
        self.bq_client = bq_client or BigQueryClient()
        self.amazon_client = amazon_client or AmazonAdsClient(self.execution_mode)
        self.tz = pytz.timezone(settings.timezone)
        self.execution_id = str(uuid.uuid4())

        self.stats = {
            "keywords_evaluated": 0,
            "bids_updated": 0,
            "bids_unchanged": 0,
            "skipped": 0,
            "errors": 0,
            "total_bid_increase": 0.0,
            "total_bid_decrease": 0.0,
        }
        self.summary: Dict = {}

    def build_context(self, now: datetime) -> GuardContext:
        """Load every optional guard input. A failed load just disables that guard."""
        event = resolve_event_mode(now)
        policy = get_event_bid_policy(event.event_mode)

        inventory_config = InventoryGuardConfig.from_settings()
        inventory = self.bq_client.get_inventory_snapshots(inventory_config)

        tacos: Dict[str, TacosHealthEvaluation] = {}
        for asin, daily in self.bq_client.get_tacos_daily_series(settings.tacos_lookback_days).items():
            tacos[asin] = evaluate_tacos_health(
                TacosHealthEvaluationInput(asin=asin, daily=daily, profile_name=settings.tacos_profile)
            )
        if tacos:
            logger.info(f"TACOS zones: {summarize_zones(list(tacos.values()))}")

        presale: Dict[str, PresaleDiagnosis] = {}
        sale_phase = sale_phase_for_event(event.event_mode)
        if sale_phase == SalePhase.PRE_SALE:
            for asin, (baseline, window) in self.bq_client.get_presale_period_metrics().items():
                presale[asin] = diagnose_presale(PresaleDiagnosisInput(sale_phase, baseline, window))
            logger.info(f"Presale diagnosis for {len(presale)} ASINs")

        return GuardContext(
            config=settings.global_config(),
            event_policy=policy,
            inventory=inventory,
            inventory_config=inventory_config,
            tacos=tacos,
            presale=presale,
            attribution_config=AttributionConfig.from_settings(),
        )

    def run(self):
        """Main optimization workflow"""
        now = datetime.now(self.tz)
        logger.info("=" * 60)
        logger.info("🚀 Starting Bid Optimization Job")
        logger.info(f"Timestamp: {now.isoformat()}")
        logger.info(f"Execution ID: {self.execution_id}")
        logger.info(f"Execution Mode: {self.execution_mode.value}")
        logger.info("=" * 60)

        try:
            logger.info("📊 Step 1: Loading Guard Inputs")
            context = self.build_context(now)

            logger.info("🔍 Step 2: Loading Keywords")
            keywords = self.bq_client.get_keyword_metrics()
            logger.info(f"Found {len(keywords)} keywords to evaluate")

            if not keywords:
                logger.warning("⚠️ No keywords to optimize")
                return

            logger.info("🧮 Step 3: Computing Recommendations")
            recommendations = compute_bid_recommendations(keywords, context=context)
            self.summary = summarize_recommendations(recommendations)
            self._collect_stats(recommendations)

            logger.info("📝 Step 4: Logging Recommendations")
            self.bq_client.log_recommendations(
                recommendations,
                execution_id=self.execution_id,
                execution_mode=self.execution_mode.value,
            )

            if self.execution_mode == ExecutionMode.APPLY:
                logger.info("🔄 Step 5: Applying Bid Updates")
                update_results = self.amazon_client.apply_recommendations(recommendations)
                logger.info(f"✅ Successfully updated: {update_results['success']}")
                if update_results["failed"] > 0:
                    logger.error(f"❌ Failed updates: {update_results['failed']}")
                    self.stats["errors"] += update_results["failed"]
            else:
                logger.info("👀 SHADOW mode: recommendations recorded, no bids sent")

            self._print_summary()
            logger.info("✅ Bid Optimization Job Completed Successfully")

        except Exception as e:
            logger.error(f"❌ Bid optimization job failed: {e}", exc_info=True)
            self.stats["errors"] += 1
            sys.exit(1)

    def _collect_stats(self, recommendations):
        for rec in recommendations:
            self.stats["keywords_evaluated"] += 1
            if rec.should_skip:
                self.stats["skipped"] += 1
                continue
            change = rec.new_bid - rec.current_bid
            if change == 0:
                self.stats["bids_unchanged"] += 1
                continue
            self.stats["bids_updated"] += 1
            if change > 0:
                self.stats["total_bid_increase"] += change
            else:
                self.stats["total_bid_decrease"] += abs(change)

    def _print_summary(self):
        """Print job summary statistics"""
        logger.info("=" * 60)
        logger.info("📊 JOB SUMMARY")
        logger.info("=" * 60)
        logger.info(f"Keywords Evaluated:  {self.stats['keywords_evaluated']}")
        logger.info(f"Bids Changed:        {self.stats['bids_updated']}")
        logger.info(f"Bids Unchanged:      {self.stats['bids_unchanged']}")
        logger.info(f"Skipped:             {self.stats['skipped']}")
        logger.info(f"Errors:              {self.stats['errors']}")
        logger.info(f"Actions:             {self.summary.get('actions', {})}")
        logger.info(f"TOS Targeted:        {self.summary.get('tos_targeted', 0)}")
        logger.info(f"Clipped:             {self.summary.get('clipped', 0)}")
        logger.info(f"Hard Killed:         {self.summary.get('hard_killed', 0)}")
        logger.info(f"Total Bid Increase:  {self.stats['total_bid_increase']:.0f}")
        logger.info(f"Total Bid Decrease:  {self.stats['total_bid_decrease']:.0f}")
        logger.info("=" * 60)


def main():
    """Entry point for Cloud Run Job"""
    optimizer = BidOptimizer()
    optimizer.run()


if __name__ == "__main__":
    main()
