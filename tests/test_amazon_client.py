"""
Unit tests for the Amazon Ads bid update client
"""

from unittest.mock import MagicMock, patch

from bid_engine.amazon_client import AmazonAdsClient, build_bid_updates
from bid_engine.execution_mode import ExecutionMode
from bid_engine.models import ActionType, KeywordRecommendation


def rec(keyword_id, current, new, action=ActionType.MILD_UP, should_skip=False):
    return KeywordRecommendation(
        keyword_id=keyword_id,
        campaign_id="c1",
        ad_group_id="g1",
        action=action,
        change_rate=0.0,
        current_bid=current,
        new_bid=new,
        should_skip=should_skip,
    )


class TestBuildBidUpdates:
    def test_only_changed_bids(self):
        updates = build_bid_updates([
            rec("up", 100.0, 120.0),
            rec("same", 100.0, 100.0, ActionType.KEEP),
            rec("skip", 100.0, 0.0, ActionType.STOP, should_skip=True),
            rec("stop", 100.0, 0.0, ActionType.STOP),
        ])

        assert updates == [
            {"keywordId": "up", "bid": 120.0},
            {"keywordId": "stop", "state": "paused"},
        ]


class TestAmazonAdsClient:
    def setup_method(self):
        self.updates = [{"keywordId": str(i), "bid": 50.0} for i in range(250)]

    @patch('bid_engine.amazon_client.requests')
    def test_shadow_sends_nothing(self, mock_requests):
        client = AmazonAdsClient(ExecutionMode.SHADOW)
        result = client.batch_update_keyword_bids(self.updates)

        assert result == {"success": 0, "failed": 0, "errors": [], "shadow": 250}
        mock_requests.put.assert_not_called()
        mock_requests.post.assert_not_called()

    @patch.object(AmazonAdsClient, '_put_batch')
    def test_apply_batches_of_100(self, mock_put):
        client = AmazonAdsClient(ExecutionMode.APPLY)
        result = client.batch_update_keyword_bids(self.updates)

        assert [len(call.args[0]) for call in mock_put.call_args_list] == [100, 100, 50]
        assert result["success"] == 250
        assert result["failed"] == 0

    @patch.object(AmazonAdsClient, '_put_batch')
    def test_failed_batch_is_counted(self, mock_put):
        mock_put.side_effect = [None, Exception("throttled"), None]
        client = AmazonAdsClient(ExecutionMode.APPLY)
        result = client.batch_update_keyword_bids(self.updates)

        assert result["success"] == 150
        assert result["failed"] == 100
        assert result["errors"] == ["throttled"]

    @patch.object(AmazonAdsClient, '_get_secret')
    @patch('bid_engine.amazon_client.requests')
    def test_headers_authenticate_once(self, mock_requests, mock_secret):
        mock_secret.side_effect = lambda name: f"{name}-value"
        mock_requests.post.return_value = MagicMock(json=lambda: {"access_token": "tok"})
        client = AmazonAdsClient(ExecutionMode.APPLY)

        headers = client._get_headers()
        client._get_headers()

        assert headers["Authorization"] == "Bearer tok"
        assert headers["Amazon-Advertising-API-Scope"] == "amazon_profile_id-value"
        assert mock_requests.post.call_count == 1

    @patch.object(AmazonAdsClient, 'batch_update_keyword_bids')
    def test_apply_recommendations(self, mock_batch):
        mock_batch.return_value = {"success": 1, "failed": 0, "errors": []}
        client = AmazonAdsClient(ExecutionMode.APPLY)

        client.apply_recommendations([rec("up", 100.0, 120.0), rec("same", 100.0, 100.0)])

        mock_batch.assert_called_once_with([{"keywordId": "up", "bid": 120.0}])
