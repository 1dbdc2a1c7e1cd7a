"""
Base connector interface.
Every data source connector inherits from this class.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import pandas as pd

from insightgen.insight_models import SourceType

PREVIEW_ROWS = 5


class BaseConnector(ABC):
    """Reads rows from one remote data source given by its connection URL."""

    source_type: SourceType

    def __init__(self, config: dict):
        self.config = config or {}
        self.url = self.config.get("url", "")

    @abstractmethod
    def extract_data(self, *, limit: Optional[int] = None) -> pd.DataFrame:
        """Fetch the source's rows into a DataFrame."""
        ...

    def test_connection(self) -> tuple[str, str]:
        """
        Check that the source is reachable and readable.
        Returns (status, message) where status is "connected" or "error".
        """
        try:
            df = self.extract_data(limit=PREVIEW_ROWS)
            return "connected", f"Read {len(df)} sample rows ({len(df.columns)} columns)"
        except Exception as e:
            return "error", f"Connection failed: {type(e).__name__}: {e}"
