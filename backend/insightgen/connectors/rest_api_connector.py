"""REST API data connector: pulls JSON records from an HTTP endpoint."""
from __future__ import annotations

import logging
from typing import Optional

import httpx
import pandas as pd

from insightgen.connectors.base import BaseConnector
from insightgen.insight_models import SourceType

logger = logging.getLogger(__name__)


class RestAPIConnector(BaseConnector):
    source_type = SourceType.JSON_API

    def __init__(self, config: dict):
        super().__init__(config)
        self.headers = self.config.get("headers", {})
        self.auth_token = self.config.get("auth_token")

    def _request(self, url: str):
        headers = {**self.headers}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        with httpx.Client(timeout=30, follow_redirects=True) as client:
            resp = client.get(url, headers=headers)
            resp.raise_for_status()
            return resp.json()

    @staticmethod
    def _records(data):
        """Top-level list, or the first list found in a top-level object."""
        if isinstance(data, dict):
            for value in data.values():
                if isinstance(value, list):
                    return value
            return [data]
        return data

    def extract_data(self, *, limit: Optional[int] = None) -> pd.DataFrame:
        rows = self._records(self._request(self.url))
        if not isinstance(rows, list):
            raise ValueError(f"Expected list or dict, got {type(rows).__name__}")
        df = pd.json_normalize(rows)
        if limit:
            df = df.head(limit)
        return df
