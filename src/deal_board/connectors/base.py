"""Abstract base class for deal sources."""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from deal_board.models.deal import Deal
from deal_board.models.raw import RawDeal

from .parsers import normalize_deal


class BaseDealSource(ABC):
    """
    A place deal records come from (bundled seed file, applicant platform API).
    Subclasses list and look up raw records; normalization is shared.
    """

    source_id: str = ""

    @abstractmethod
    def search(self, query: Optional[str] = None, filters: Optional[dict] = None) -> list[RawDeal]:
        """Raw records matching query/filters; all records when both are empty."""

    @abstractmethod
    def fetch_details(self, raw_id: str) -> RawDeal:
        """One raw record by deal id."""

    def normalize(self, raw: RawDeal) -> Deal:
        return normalize_deal(raw)

    def fetch_all(self) -> list[Deal]:
        """Every record, normalized."""
        return [self.normalize(r) for r in self.search()]

    def fetch_incremental(self, since: Optional[date] = None) -> list[Deal]:
        """Deals submitted on or after `since`, filtered client-side."""
        deals = self.fetch_all()
        if since is None:
            return deals
        return [d for d in deals if d.submitted_date >= since]
