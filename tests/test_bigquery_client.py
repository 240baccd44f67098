"""
Unit tests for BigQuery reads and the recommendation log
"""

import json

import pytest
from unittest.mock import MagicMock

from bid_engine.bigquery_client import BigQueryClient, keyword_metrics_from_row
from bid_engine.inventory_guard import InventoryRiskStatus
from bid_engine.models import ActionType, BrandType, KeywordRecommendation, PhaseType, ScoreRank


def query_returning(rows):
    client = MagicMock()
    client.query.return_value.result.return_value = rows
    return client


def failing_client():
    client = MagicMock()
    client.query.side_effect = Exception("BigQuery unavailable")
    return client


KEYWORD_ROW = {
    "keyword_id": 123,
    "campaign_id": "c1",
    "ad_group_id": "g1",
    "asin": "B01",
    "keyword_text": "vitamin d",
    "phase_type": "s_final",
    "brand_type": "BRAND",
    "score_rank": "unknown",
    "current_bid": 80,
    "acos_target": None,
    "acos_actual": 0.25,
    "cvr_recent": None,
    "clicks_3h": 12,
    "clicks_7d_excl_recent": 30,
    "conversions_7d_excl_recent": 2,
    "sales_30d": 5000,
}


class TestRowMapping:
    def test_keyword_row(self):
        metrics = keyword_metrics_from_row(KEYWORD_ROW)
        assert metrics.keyword_id == "123"
        assert metrics.phase_type == PhaseType.S_FINAL
        assert metrics.brand_type == BrandType.BRAND
        assert metrics.score_rank == ScoreRank.C
        assert metrics.current_bid == 80.0
        assert metrics.acos_target == 0.30
        assert metrics.acos_actual == 0.25
        assert metrics.cvr_recent is None
        assert metrics.window_7d_excl_recent.clicks == 30
        assert metrics.window_7d_excl_recent.conversions == 2
        assert metrics.window_30d.sales == 5000.0
        assert metrics.tos_ctr_mult == 1.0


class TestReads:
    def test_keyword_metrics(self):
        bq = BigQueryClient("proj", "ds", client=query_returning([KEYWORD_ROW]))
        keywords = bq.get_keyword_metrics(min_clicks_7d=5)

        assert len(keywords) == 1
        query = bq.client.query.call_args[0][0]
        assert "`proj.ds.keyword_decision_inputs`" in query

    def test_malformed_keyword_row_skipped(self):
        bad_row = {k: v for k, v in KEYWORD_ROW.items() if k != "keyword_id"}
        good_row = dict(KEYWORD_ROW, keyword_id=456)
        bq = BigQueryClient("proj", "ds", client=query_returning([bad_row, good_row]))

        keywords = bq.get_keyword_metrics()

        assert [kw.keyword_id for kw in keywords] == ["456"]

    def test_unparseable_number_skips_only_that_row(self):
        rows = [dict(KEYWORD_ROW, current_bid="n/a"), KEYWORD_ROW]
        keywords = BigQueryClient("proj", "ds", client=query_returning(rows)).get_keyword_metrics()

        assert len(keywords) == 1
        assert keywords[0].current_bid == 80.0

    def test_inventory_snapshots(self):
        rows = [
            {"asin": "B01", "days_of_inventory": 0},
            {"asin": "B02", "days_of_inventory": 45.5},
            {"asin": "B03", "days_of_inventory": None},
        ]
        snapshots = BigQueryClient("proj", "ds", client=query_returning(rows)).get_inventory_snapshots()

        assert snapshots["B01"].status == InventoryRiskStatus.OUT_OF_STOCK
        assert snapshots["B02"].status == InventoryRiskStatus.NORMAL
        assert snapshots["B03"].status == InventoryRiskStatus.UNKNOWN

    def test_tacos_series_grouped_by_asin(self):
        rows = [
            {"asin": "B01", "date": "2025-01-01", "revenue": 1000, "ad_spend": 100},
            {"asin": "B01", "date": "2025-01-02", "revenue": None, "ad_spend": 20},
            {"asin": "B02", "date": "2025-01-01", "revenue": 500, "ad_spend": 50},
        ]
        series = BigQueryClient("proj", "ds", client=query_returning(rows)).get_tacos_daily_series(30)

        assert [d.date for d in series["B01"]] == ["2025-01-01", "2025-01-02"]
        assert series["B01"][1].revenue == 0.0
        assert series["B02"][0].tacos == pytest.approx(0.1)

    def test_presale_windows(self):
        row = {"asin": "B01"}
        for prefix, values in (("baseline", (100, 5, 200, 1000)), ("presale", (20, 1, 40, 200))):
            for name, value in zip(("clicks", "conversions", "spend", "sales"), values):
                row[f"{prefix}_{name}"] = value
        periods = BigQueryClient("proj", "ds", client=query_returning([row])).get_presale_period_metrics()

        baseline, presale = periods["B01"]
        assert baseline.clicks == 100
        assert presale.acos == pytest.approx(0.2)

    @pytest.mark.parametrize("method,args,empty", [
        ("get_keyword_metrics", (), []),
        ("get_inventory_snapshots", (), {}),
        ("get_tacos_daily_series", (90,), {}),
        ("get_presale_period_metrics", (), {}),
    ])
    def test_query_errors_return_empty(self, method, args, empty):
        bq = BigQueryClient("proj", "ds", client=failing_client())
        assert getattr(bq, method)(*args) == empty


class TestRecommendationLog:
    def rec(self):
        return KeywordRecommendation(
            keyword_id="kw-1",
            campaign_id="c1",
            ad_group_id="g1",
            action=ActionType.MILD_UP,
            change_rate=0.2,
            current_bid=100.0,
            new_bid=120.0,
        )

    def test_rows_written(self):
        client = MagicMock()
        client.insert_rows_json.return_value = []
        bq = BigQueryClient("proj", "ds", client=client)

        written = bq.log_recommendations([self.rec()], execution_id="run-1", execution_mode="SHADOW")

        assert written == 1
        client.create_table.assert_called_once()
        table_id, rows = client.insert_rows_json.call_args[0]
        assert table_id == "proj.ds.keyword_recommendation_log"
        assert rows[0]["action"] == "MILD_UP"
        assert rows[0]["old_bid"] == 100.0
        assert rows[0]["execution_mode"] == "SHADOW"
        assert rows[0]["hard_killed"] is False
        coefficients = json.loads(rows[0]["coefficients"])
        assert coefficients["base_change_rate"] == 0.0
        assert coefficients["tos_coeff"] == 1.0

    def test_insert_errors(self):
        client = MagicMock()
        client.insert_rows_json.return_value = [{"index": 0, "errors": ["bad"]}]
        bq = BigQueryClient("proj", "ds", client=client)
        assert bq.log_recommendations([self.rec()], "run-1", "APPLY") == 0

    def test_nothing_to_log(self):
        client = MagicMock()
        assert BigQueryClient("proj", "ds", client=client).log_recommendations([], "run-1", "SHADOW") == 0
        client.insert_rows_json.assert_not_called()
