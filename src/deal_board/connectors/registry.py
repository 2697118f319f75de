"""Lookup of deal sources by name."""

from typing import Type

from deal_board.connectors.api import ApiDealSource
from deal_board.connectors.base import BaseDealSource
from deal_board.connectors.seed import SeedDealSource


class SourceRegistry:
    """Maps source ids ('seed', 'api') to BaseDealSource classes."""

    _sources: dict[str, Type[BaseDealSource]] = {
        SeedDealSource.source_id: SeedDealSource,
        ApiDealSource.source_id: ApiDealSource,
    }

    @classmethod
    def register(cls, source_cls: Type[BaseDealSource]) -> Type[BaseDealSource]:
        """Add a source under its source_id. Usable as a class decorator."""
        if not source_cls.source_id:
            raise ValueError(f"{source_cls.__name__} has no source_id")
        cls._sources[source_cls.source_id.lower()] = source_cls
        return source_cls

    @classmethod
    def get(cls, source_id: str, **kwargs) -> BaseDealSource:
        """Instantiate the named source with kwargs; ValueError for unknown ids."""
        source_cls = cls._sources.get(source_id.lower())
        if source_cls is None:
            raise ValueError(f"Unknown source: {source_id}. Available: {cls.available_sources()}")
        return source_cls(**kwargs)

    @classmethod
    def available_sources(cls) -> list[str]:
        return list(cls._sources)
