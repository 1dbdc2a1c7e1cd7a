"""Data source connectors package."""
from insightgen.connectors.factory import get_connector, CONNECTOR_REGISTRY

__all__ = ["get_connector", "CONNECTOR_REGISTRY"]
