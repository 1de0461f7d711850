# === FILE: site_reader/config.py ===
"""
Loading and validation of SiteReader configuration.
Pydantic describes the schema; YAML or JSON files provide the values.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator


class CrawlerConfig(BaseModel):
    """Settings for a single crawl session."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_pages: int = Field(10, ge=1, description="Hard limit on pages scraped per crawl.")
    concurrency: int = Field(3, ge=1, description="Pages fetched simultaneously in one batch.")
    navigation_timeout: float = Field(30.0, gt=0, description="Per-page navigation timeout (seconds).")
    settle_delay: float = Field(1.0, ge=0, description="Pause after DOM load for client-side rendering.")
    headless: bool = Field(True, description="Run the browser without a window.")
    user_agent: Optional[str] = Field(None, min_length=1, description="User-Agent override.")
    extract_emails: bool = Field(True, description="Collect e-mail addresses from pages.")
    launch_limit: int = Field(5, ge=1, description="Browsers allowed to run at once in the process.")


class ServerConfig(BaseModel):
    """Settings for the HTTP front-end and its job queue."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = "0.0.0.0"
    port: int = Field(3000, ge=1, le=65535)
    default_max_pages: int = Field(10, ge=1)
    max_pages_cap: int = Field(50, ge=1)
    max_length_cap: int = Field(100_000, ge=1)
    job_timeout: float = Field(300.0, gt=0, description="Deadline for one HTTP scrape (seconds).")
    worker_concurrency: int = Field(15, ge=1, description="Crawl jobs processed at once.")
    max_waiting_jobs: int = Field(100, ge=1, description="Waiting jobs accepted before answering 503.")
    job_attempts: int = Field(3, ge=1)
    backoff_delay: float = Field(2.0, ge=0, description="First retry delay, doubled per attempt.")
    keep_completed_for: float = Field(3600.0, ge=0)
    keep_completed_count: int = Field(1000, ge=0)
    keep_failed_for: float = Field(86400.0, ge=0)

    @model_validator(mode="after")
    def _default_within_cap(self) -> ServerConfig:
        if self.default_max_pages > self.max_pages_cap:
            raise ValueError("default_max_pages must not exceed max_pages_cap")
        return self


class Settings(BaseModel):
    """Top-level configuration document."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    crawler: CrawlerConfig = Field(default_factory=CrawlerConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    def with_overrides(
        self,
        crawler: Optional[Dict[str, Any]] = None,
        server: Optional[Dict[str, Any]] = None,
    ) -> Settings:
        """Return a copy with some fields replaced; the original stays untouched."""
        new_crawler = self.crawler
        new_server = self.server
        if crawler:
            new_crawler = CrawlerConfig(**{**self.crawler.model_dump(), **crawler})
        if server:
            new_server = ServerConfig(**{**self.server.model_dump(), **server})
        return Settings(crawler=new_crawler, server=new_server)


DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None] = None) -> Settings:
    """
    Read YAML or JSON and return validated Settings.

    Without an explicit path, ``configs/default.yaml`` is used when it exists
    and the built-in defaults otherwise. A missing explicit path raises
    FileNotFoundError.
    """
    if path is None:
        if not DEFAULT_CFG.is_file():
            return Settings()
        path_obj = DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    return Settings(**data)


__all__ = ["CrawlerConfig", "ServerConfig", "Settings", "load_config", "DEFAULT_CFG"]
