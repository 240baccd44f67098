"""
BigQuery operations for the bid engine
Reads decision inputs and writes the recommendation log
"""

import json

from google.cloud import bigquery
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
import pytz

from .config import settings
from .inventory_guard import AsinInventorySnapshot, InventoryGuardConfig, build_snapshot
from .logger import get_logger
from .models import (
    BrandType,
    KeywordMetrics,
    KeywordRecommendation,
    PhaseType,
    ScoreRank,
    WindowMetrics,
)
from .presale import PeriodMetrics
from .tacos_health import DailyTacosMetrics

logger = get_logger(__name__)


def _enum(enum_cls, value, default):
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        return default


def _window(row: Dict, suffix: str) -> WindowMetrics:
    return WindowMetrics(
        impressions=int(row.get(f"impressions_{suffix}") or 0),
        clicks=int(row.get(f"clicks_{suffix}") or 0),
        conversions=int(row.get(f"conversions_{suffix}") or 0),
        spend=float(row.get(f"spend_{suffix}") or 0),
        sales=float(row.get(f"sales_{suffix}") or 0),
    )


def _opt_float(value) -> Optional[float]:
    return None if value is None else float(value)


def keyword_metrics_from_row(row: Dict) -> KeywordMetrics:
    """Build KeywordMetrics from a keyword_decision_inputs row."""
    return KeywordMetrics(
        keyword_id=str(row["keyword_id"]),
        campaign_id=str(row.get("campaign_id") or ""),
        ad_group_id=str(row.get("ad_group_id") or ""),
        asin=row.get("asin"),
        keyword_text=row.get("keyword_text") or "",
        match_type=row.get("match_type") or "EXACT",
        phase_type=_enum(PhaseType, row.get("phase_type"), PhaseType.NORMAL),
        brand_type=_enum(BrandType, row.get("brand_type"), BrandType.GENERIC),
        score_rank=_enum(ScoreRank, row.get("score_rank"), ScoreRank.C),
        current_bid=float(row.get("current_bid") or 0),
        baseline_cpc=float(row.get("baseline_cpc") or 0),
        acos_target=float(row.get("acos_target") or settings.default_target_acos),
        acos_actual=_opt_float(row.get("acos_actual")),
        cvr_recent=_opt_float(row.get("cvr_recent")),
        cvr_baseline=_opt_float(row.get("cvr_baseline")),
        ctr_recent=_opt_float(row.get("ctr_recent")),
        ctr_baseline=_opt_float(row.get("ctr_baseline")),
        clicks_1h=int(row.get("clicks_1h") or 0),
        clicks_3h=int(row.get("clicks_3h") or 0),
        impressions_1h=int(row.get("impressions_1h") or 0),
        impressions_3h=int(row.get("impressions_3h") or 0),
        rank_current=row.get("rank_current"),
        rank_target=row.get("rank_target"),
        competitor_cpc_current=float(row.get("competitor_cpc_current") or 0),
        competitor_cpc_baseline=float(row.get("competitor_cpc_baseline") or 0),
        comp_strength=float(row.get("comp_strength") or 0),
        risk_penalty=float(row.get("risk_penalty") or 0),
        priority_score=float(row.get("priority_score") or 0),
        tos_ctr_mult=float(row.get("tos_ctr_mult") or 1),
        tos_cvr_mult=float(row.get("tos_cvr_mult") or 1),
        tos_gap_cpc=float(row.get("tos_gap_cpc") or 0),
        campaign_budget_remaining=float(row.get("campaign_budget_remaining") or 0),
        expected_clicks_3h=float(row.get("expected_clicks_3h") or 0),
        window_7d=_window(row, "7d"),
        window_7d_excl_recent=_window(row, "7d_excl_recent"),
        window_last_3d=_window(row, "last_3d"),
        window_30d=_window(row, "30d"),
        organic_rank=row.get("organic_rank"),
        organic_rank_trend=_opt_float(row.get("organic_rank_trend")),
    )


class BigQueryClient:
    def __init__(self, project_id: str = None, dataset_id: str = None, client: bigquery.Client = None):
        self.project_id = project_id or settings.project_id
        self.dataset_id = dataset_id or settings.dataset_id
        self.client = client or bigquery.Client(project=self.project_id)
        self.tz = pytz.timezone(settings.timezone)

    def _table(self, name: str) -> str:
        return f"{self.project_id}.{self.dataset_id}.{name}"

    def get_keyword_metrics(self, min_clicks_7d: int = 0) -> List[KeywordMetrics]:
        """
        Load decision inputs for all enabled keywords.
        Returns [] when the query fails.
        """
        query = f"""
        SELECT *
        FROM `{self._table("keyword_decision_inputs")}`
        WHERE state = 'ENABLED'
          AND (clicks_7d >= @min_clicks OR conversions_30d > 0)
        ORDER BY spend_7d DESC
        """
        job_config = bigquery.QueryJobConfig(
            query_parameters=[
                bigquery.ScalarQueryParameter("min_clicks", "INT64", min_clicks_7d),
            ]
        )

        try:
            rows = self.client.query(query, job_config=job_config).result()
        except Exception as e:
            logger.error(f"Error fetching keyword metrics: {e}")
            return []

        keywords = []
        skipped = 0
        try:
            for row in rows:
                try:
                    keywords.append(keyword_metrics_from_row(dict(row)))
                except (KeyError, TypeError, ValueError) as e:
                    skipped += 1
                    logger.warning(f"Skipping malformed keyword row {dict(row).get('keyword_id')}: {e}")
        except Exception as e:
            logger.error(f"Error reading keyword metrics: {e}")
            return []

        logger.info(f"Loaded {len(keywords)} keywords for evaluation ({skipped} malformed rows skipped)")
        return keywords

    def get_inventory_snapshots(
        self,
        config: InventoryGuardConfig = InventoryGuardConfig(),
    ) -> Dict[str, AsinInventorySnapshot]:
        """Latest days-of-inventory per ASIN. Empty dict disables the guard."""
        query = f"""
        SELECT asin, days_of_inventory
        FROM `{self._table("asin_inventory_snapshot")}`
        QUALIFY ROW_NUMBER() OVER (PARTITION BY asin ORDER BY snapshot_at DESC) = 1
        """

        try:
            rows = self.client.query(query).result()
            snapshots = {
                row["asin"]: build_snapshot(row["asin"], _opt_float(row["days_of_inventory"]), config)
                for row in rows
            }
            logger.info(f"Loaded inventory for {len(snapshots)} ASINs")
            return snapshots
        except Exception as e:
            logger.error(f"Error fetching inventory snapshots: {e}")
            return {}

    def get_tacos_daily_series(self, days: int = 90) -> Dict[str, List[DailyTacosMetrics]]:
        """Daily total revenue and ad spend per ASIN for the last N days."""
        query = f"""
        SELECT
          asin,
          CAST(date AS STRING) AS date,
          SUM(total_sales) AS revenue,
          SUM(ad_spend) AS ad_spend
        FROM `{self._table("asin_daily_sales")}`
        WHERE date >= DATE_SUB(CURRENT_DATE(), INTERVAL @days DAY)
        GROUP BY asin, date
        ORDER BY asin, date
        """
        job_config = bigquery.QueryJobConfig(
            query_parameters=[bigquery.ScalarQueryParameter("days", "INT64", days)]
        )

        try:
            rows = self.client.query(query, job_config=job_config).result()
            series: Dict[str, List[DailyTacosMetrics]] = {}
            for row in rows:
                series.setdefault(row["asin"], []).append(
                    DailyTacosMetrics(
                        date=row["date"],
                        revenue=float(row["revenue"] or 0),
                        ad_spend=float(row["ad_spend"] or 0),
                    )
                )
            logger.info(f"Loaded {days}d TACOS series for {len(series)} ASINs")
            return series
        except Exception as e:
            logger.error(f"Error fetching TACOS series: {e}")
            return {}

    def get_presale_period_metrics(
        self,
        baseline_days: int = 30,
        presale_days: int = 5,
    ) -> Dict[str, Tuple[PeriodMetrics, PeriodMetrics]]:
        """
        Baseline and presale window aggregates per ASIN.
        The baseline window ends where the presale window starts.
        """
        query = f"""
        SELECT
          asin,
          SUM(IF(date < DATE_SUB(CURRENT_DATE(), INTERVAL @presale_days DAY), clicks, 0)) AS baseline_clicks,
          SUM(IF(date < DATE_SUB(CURRENT_DATE(), INTERVAL @presale_days DAY), conversions, 0)) AS baseline_conversions,
          SUM(IF(date < DATE_SUB(CURRENT_DATE(), INTERVAL @presale_days DAY), spend, 0)) AS baseline_spend,
          SUM(IF(date < DATE_SUB(CURRENT_DATE(), INTERVAL @presale_days DAY), sales, 0)) AS baseline_sales,
          SUM(IF(date >= DATE_SUB(CURRENT_DATE(), INTERVAL @presale_days DAY), clicks, 0)) AS presale_clicks,
          SUM(IF(date >= DATE_SUB(CURRENT_DATE(), INTERVAL @presale_days DAY), conversions, 0)) AS presale_conversions,
          SUM(IF(date >= DATE_SUB(CURRENT_DATE(), INTERVAL @presale_days DAY), spend, 0)) AS presale_spend,
          SUM(IF(date >= DATE_SUB(CURRENT_DATE(), INTERVAL @presale_days DAY), sales, 0)) AS presale_sales
        FROM `{self._table("asin_daily_ad_metrics")}`
        WHERE date >= DATE_SUB(CURRENT_DATE(), INTERVAL @total_days DAY)
        GROUP BY asin
        """
        job_config = bigquery.QueryJobConfig(
            query_parameters=[
                bigquery.ScalarQueryParameter("presale_days", "INT64", presale_days),
                bigquery.ScalarQueryParameter("total_days", "INT64", baseline_days + presale_days),
            ]
        )

        try:
            rows = self.client.query(query, job_config=job_config).result()
            periods = {}
            for row in rows:
                periods[row["asin"]] = tuple(
                    PeriodMetrics(
                        clicks=int(row[f"{prefix}_clicks"] or 0),
                        conversions=int(row[f"{prefix}_conversions"] or 0),
                        spend=float(row[f"{prefix}_spend"] or 0),
                        sales=float(row[f"{prefix}_sales"] or 0),
                    )
                    for prefix in ("baseline", "presale")
                )
            logger.info(f"Loaded presale windows for {len(periods)} ASINs")
            return periods
        except Exception as e:
            logger.error(f"Error fetching presale windows: {e}")
            return {}

    def log_recommendations(
        self,
        recommendations: Sequence[KeywordRecommendation],
        execution_id: str,
        execution_mode: str,
    ) -> int:
        """
        Write recommendations to the audit log table.
        Returns the number of rows written.
        """
        if not recommendations:
            return 0

        table_id = self._table("keyword_recommendation_log")
        now = datetime.now(self.tz).isoformat()
        rows = [
            {
                "execution_id": execution_id,
                "execution_mode": execution_mode,
                "keyword_id": rec.keyword_id,
                "campaign_id": rec.campaign_id,
                "ad_group_id": rec.ad_group_id,
                "asin": rec.asin,
                "keyword_text": rec.keyword_text,
                "action": rec.action.value,
                "old_bid": rec.current_bid,
                "new_bid": rec.new_bid,
                "change_rate": rec.change_rate,
                "clipped": rec.clipped,
                "clip_reason": rec.clip_reason,
                "is_tos_targeted": rec.is_tos_targeted,
                "should_skip": rec.should_skip,
                "hard_killed": rec.hard_killed,
                "coefficients": json.dumps(rec.coefficients.as_dict()),
                "reason_facts": rec.reason_facts,
                "reason_logic": rec.reason_logic,
                "reason_impact": rec.reason_impact,
                "recommended_at": now,
            }
            for rec in recommendations
        ]

        try:
            self._ensure_recommendation_log_table_exists()
            errors = self.client.insert_rows_json(table_id, rows)
            if errors:
                logger.error(f"Error logging recommendations: {errors}")
                return 0
            logger.info(f"✅ Logged {len(rows)} recommendations ({execution_mode})")
            return len(rows)
        except Exception as e:
            logger.error(f"Error logging to BigQuery: {e}")
            return 0

    def _ensure_recommendation_log_table_exists(self):
        """Create keyword_recommendation_log table if it doesn't exist"""
        table_id = self._table("keyword_recommendation_log")

        schema = [
            bigquery.SchemaField("execution_id", "STRING", mode="REQUIRED"),
            bigquery.SchemaField("execution_mode", "STRING"),
            bigquery.SchemaField("keyword_id", "STRING", mode="REQUIRED"),
            bigquery.SchemaField("campaign_id", "STRING"),
            bigquery.SchemaField("ad_group_id", "STRING"),
            bigquery.SchemaField("asin", "STRING"),
            bigquery.SchemaField("keyword_text", "STRING"),
            bigquery.SchemaField("action", "STRING"),
            bigquery.SchemaField("old_bid", "FLOAT64"),
            bigquery.SchemaField("new_bid", "FLOAT64"),
            bigquery.SchemaField("change_rate", "FLOAT64"),
            bigquery.SchemaField("clipped", "BOOL"),
            bigquery.SchemaField("clip_reason", "STRING"),
            bigquery.SchemaField("is_tos_targeted", "BOOL"),
            bigquery.SchemaField("should_skip", "BOOL"),
            bigquery.SchemaField("hard_killed", "BOOL"),
            bigquery.SchemaField("coefficients", "STRING"),
            bigquery.SchemaField("reason_facts", "STRING"),
            bigquery.SchemaField("reason_logic", "STRING"),
            bigquery.SchemaField("reason_impact", "STRING"),
            bigquery.SchemaField("recommended_at", "TIMESTAMP"),
        ]

        table = bigquery.Table(table_id, schema=schema)

        try:
            self.client.create_table(table, exists_ok=True)
        except Exception as e:
            logger.warning(f"Could not create keyword_recommendation_log table: {e}")
