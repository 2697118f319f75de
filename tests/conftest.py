"""Pytest fixtures for deal-board tests."""

import tempfile
from pathlib import Path

import pytest

from deal_board.connectors.seed import SeedDealSource
from deal_board.models.deal import Deal
from deal_board.pipeline import DealPipeline


@pytest.fixture
def temp_db() -> Path:
    """Temporary database path for isolated tests."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = Path(f.name)
    yield path
    path.unlink(missing_ok=True)


@pytest.fixture
def seed_deals() -> list[Deal]:
    """The ten bundled sample deals DGT-2026-001..010."""
    return SeedDealSource().fetch_all()


@pytest.fixture
def pipeline(temp_db: Path) -> DealPipeline:
    """Pipeline on a fresh database, single worker for deterministic logs."""
    return DealPipeline(temp_db, workers=1)


@pytest.fixture
def seeded_pipeline(pipeline: DealPipeline, seed_deals: list[Deal]) -> DealPipeline:
    """Pipeline with the sample deals already in the catalog."""
    pipeline.ingest(seed_deals)
    return pipeline


@pytest.fixture
def investor_yaml(tmp_path: Path) -> Path:
    """Filter set YAML in the nested assessment/risk layout."""
    path = tmp_path / "investor.yaml"
    path.write_text(
        """
investor_id: inv-small-ticket
passing_threshold: 0.6
assessment:
  - dimension: funding_amount
    operator: "<="
    threshold: 60
    weight: 0.7
  - dimension: industry
    operator: member
    threshold: [catering, retail]
    weight: 0.3
risk:
  - dimension: revenue_share_ratio
    operator: "<="
    threshold: 0.1
""",
        encoding="utf-8",
    )
    return path
