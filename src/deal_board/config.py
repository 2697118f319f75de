"""
Settings loaded from environment variables with sensible defaults.

DEAL_BOARD_DB           SQLite database path (default: deal_board.db)
DEAL_BOARD_WORKERS      evaluation worker threads (default: 4)
DEAL_BOARD_PAGE_SIZE    default opportunity page size (default: 20)
DEAL_BOARD_API_URL      base URL of the applicant platform, for `ingest --source api`
DEAL_BOARD_WEBHOOK_URL  where resubmission events are POSTed (optional)
DEAL_BOARD_LOG_LEVEL    logging level name (default: WARNING)
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the pipeline and CLI."""

    model_config = SettingsConfigDict(
        env_file=None,
        env_ignore_empty=True,
        extra="ignore",
        populate_by_name=True,
    )

    db_path: Path = Field(default=Path("deal_board.db"), validation_alias="DEAL_BOARD_DB")
    workers: int = Field(default=4, ge=1, validation_alias="DEAL_BOARD_WORKERS")
    page_size: int = Field(default=20, ge=1, validation_alias="DEAL_BOARD_PAGE_SIZE")
    api_url: Optional[str] = Field(default=None, validation_alias="DEAL_BOARD_API_URL")
    webhook_url: Optional[str] = Field(default=None, validation_alias="DEAL_BOARD_WEBHOOK_URL")
    log_level: str = Field(default="WARNING", validation_alias="DEAL_BOARD_LOG_LEVEL")
