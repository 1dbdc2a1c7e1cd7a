"""Google Sheets data connector."""
from __future__ import annotations

import json
import logging
from typing import Optional

import gspread
import pandas as pd
from google.oauth2.service_account import Credentials

from insightgen.connectors.base import BaseConnector
from insightgen.insight_models import SourceType

logger = logging.getLogger(__name__)


class SheetsConnector(BaseConnector):
    source_type = SourceType.GOOGLE_SHEETS

    def __init__(self, config: dict):
        super().__init__(config)
        self.credentials_json = self.config.get("credentials_json")

    def _get_client(self):
        if self.credentials_json:
            creds_data = json.loads(self.credentials_json) if isinstance(self.credentials_json, str) else self.credentials_json
            creds = Credentials.from_service_account_info(
                creds_data,
                scopes=["https://www.googleapis.com/auth/spreadsheets.readonly"],
            )
            return gspread.authorize(creds)
        # Public sheet via anonymous access
        return gspread.Client(auth=None)

    def _open_sheet(self):
        gc = self._get_client()
        if self.url.startswith("http"):
            return gc.open_by_url(self.url)
        return gc.open_by_key(self.url)

    def extract_data(self, *, limit: Optional[int] = None) -> pd.DataFrame:
        ws = self._open_sheet().sheet1
        df = pd.DataFrame(ws.get_all_records())
        if limit:
            df = df.head(limit)
        return df
