"""
Amazon Advertising API client wrapper
Pushes keyword bid changes when the run is in APPLY mode
"""

import requests
from google.cloud import secretmanager
from typing import Dict, List, Optional, Sequence
from tenacity import retry, stop_after_attempt, wait_exponential

from .config import settings
from .execution_mode import ExecutionMode, get_execution_mode
from .logger import get_logger
from .models import KeywordRecommendation

logger = get_logger(__name__)


def build_bid_updates(recommendations: Sequence[KeywordRecommendation]) -> List[Dict]:
    """
    Keyword bid payloads for recommendations that actually change a bid.

    Skipped recommendations and unchanged bids are left out. A zero bid pauses
    the keyword instead of sending bid=0.
    """
    updates = []
    for rec in recommendations:
        if rec.should_skip or rec.new_bid == rec.current_bid:
            continue
        if rec.new_bid <= 0:
            updates.append({"keywordId": rec.keyword_id, "state": "paused"})
        else:
            updates.append({"keywordId": rec.keyword_id, "bid": rec.new_bid})
    return updates


class AmazonAdsClient:
    """
    Wrapper for Amazon Advertising API
    Handles authentication and API calls
    """

    BASE_URL = "https://advertising-api-fe.amazon.com"
    TOKEN_URL = "https://api.amazon.co.jp/auth/o2/token"
    BATCH_SIZE = 100

    def __init__(self, execution_mode: Optional[ExecutionMode] = None):
        self.execution_mode = execution_mode or get_execution_mode()
        self.client_id = None
        self.client_secret = None
        self.refresh_token = None
        self.profile_id = None
        self.access_token = None

    @property
    def is_shadow(self) -> bool:
        return self.execution_mode == ExecutionMode.SHADOW

    def _get_secret(self, secret_name: str) -> str:
        """Fetch secret from Google Secret Manager"""
        try:
            client = secretmanager.SecretManagerServiceClient()
            name = f"projects/{settings.project_id}/secrets/{secret_name}/versions/latest"
            response = client.access_secret_version(request={"name": name})
            return response.payload.data.decode("UTF-8")
        except Exception as e:
            logger.error(f"Error fetching secret {secret_name}: {e}")
            raise

    def _load_credentials(self):
        if self.client_id is None:
            self.client_id = self._get_secret("amazon_client_id")
            self.client_secret = self._get_secret("amazon_client_secret")
            self.refresh_token = self._get_secret("amazon_refresh_token")
            self.profile_id = self._get_secret("amazon_profile_id")

    def _authenticate(self):
        """Get access token using refresh token"""
        self._load_credentials()
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }

        try:
            response = requests.post(self.TOKEN_URL, data=payload, timeout=30)
            response.raise_for_status()
            self.access_token = response.json()["access_token"]
            logger.info("✅ Authenticated with Amazon Ads API")
        except Exception as e:
            logger.error(f"❌ Amazon API authentication failed: {e}")
            raise

    def _get_headers(self) -> Dict[str, str]:
        """Get headers for API requests"""
        if self.access_token is None:
            self._authenticate()
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Amazon-Advertising-API-ClientId": self.client_id,
            "Amazon-Advertising-API-Scope": self.profile_id,
            "Content-Type": "application/json",
        }

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=4, max=10), reraise=True)
    def _put_batch(self, batch: List[Dict]):
        response = requests.put(
            f"{self.BASE_URL}/v2/sp/keywords",
            headers=self._get_headers(),
            json=batch,
            timeout=60,
        )
        if response.status_code == 401:
            logger.warning("Access token expired, re-authenticating...")
            self.access_token = None
        response.raise_for_status()

    def batch_update_keyword_bids(self, updates: List[Dict]) -> Dict:
        """
        Batch update multiple keywords

        Args:
            updates: List of {"keywordId": str, "bid": float} or
                     {"keywordId": str, "state": "paused"}

        Returns:
            {"success": int, "failed": int, "errors": List}
        """
        if self.is_shadow:
            logger.info(f"[SHADOW] Would update {len(updates)} keywords")
            return {"success": 0, "failed": 0, "errors": [], "shadow": len(updates)}

        results = {"success": 0, "failed": 0, "errors": []}

        for i in range(0, len(updates), self.BATCH_SIZE):
            batch = updates[i:i + self.BATCH_SIZE]

            try:
                self._put_batch(batch)
                results["success"] += len(batch)
                logger.info(f"✅ Batch updated {len(batch)} keywords")
            except Exception as e:
                results["failed"] += len(batch)
                results["errors"].append(str(e))
                logger.error(f"❌ Batch update failed: {e}")

        return results

    def apply_recommendations(self, recommendations: Sequence[KeywordRecommendation]) -> Dict:
        return self.batch_update_keyword_bids(build_bid_updates(recommendations))
