"""
Connector factory: maps source types to connector classes.
"""

import logging
import os
from typing import Dict, Optional, Type

from insightgen.connectors.base import BaseConnector
from insightgen.connectors.csv_url_connector import CsvUrlConnector
from insightgen.connectors.rest_api_connector import RestAPIConnector
from insightgen.connectors.sheets_connector import SheetsConnector
from insightgen.insight_models import SourceType

logger = logging.getLogger(__name__)

# manual uploads have no remote endpoint
CONNECTOR_REGISTRY: Dict[SourceType, Optional[Type[BaseConnector]]] = {
    SourceType.GOOGLE_SHEETS: SheetsConnector,
    SourceType.CSV_URL: CsvUrlConnector,
    SourceType.JSON_API: RestAPIConnector,
    SourceType.MANUAL_UPLOAD: None,
}

_missing = set(SourceType) - set(CONNECTOR_REGISTRY)
if _missing:
    raise RuntimeError(f"No connector entry for {sorted(m.value for m in _missing)}")


def get_connector(source_type: str, connection_url: str) -> BaseConnector:
    """
    Instantiate the connector for a source type.

    Raises ValueError for unknown types and for types with nothing to connect to.
    """
    try:
        stype = SourceType(source_type)
    except ValueError:
        raise ValueError(
            f"Unknown source type '{source_type}'. "
            f"Available: {sorted(t.value for t in SourceType)}"
        )
    cls = CONNECTOR_REGISTRY[stype]
    if cls is None:
        raise ValueError(f"Source type '{stype.value}' has no remote connection to test")
    config = {"url": connection_url}
    if stype is SourceType.GOOGLE_SHEETS:
        config["credentials_json"] = os.getenv("GOOGLE_SHEETS_CREDENTIALS_JSON")
    return cls(config)
