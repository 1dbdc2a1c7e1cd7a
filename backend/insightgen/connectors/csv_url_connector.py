"""CSV-over-HTTP data connector."""
from __future__ import annotations

import io
import logging
from typing import Optional

import httpx
import pandas as pd

from insightgen.connectors.base import BaseConnector
from insightgen.insight_models import SourceType

logger = logging.getLogger(__name__)


class CsvUrlConnector(BaseConnector):
    source_type = SourceType.CSV_URL

    def _download(self) -> str:
        with httpx.Client(timeout=30, follow_redirects=True) as client:
            resp = client.get(self.url)
            resp.raise_for_status()
            return resp.text

    def extract_data(self, *, limit: Optional[int] = None) -> pd.DataFrame:
        df = pd.read_csv(io.StringIO(self._download()), nrows=limit)
        logger.info(f"Read {len(df)} rows from {self.url}")
        return df
