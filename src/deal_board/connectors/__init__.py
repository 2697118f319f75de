"""Deal sources feeding the catalog."""

from deal_board.connectors.base import BaseDealSource
from deal_board.connectors.registry import SourceRegistry

__all__ = ["BaseDealSource", "SourceRegistry"]
