# site_reader/server.py
"""
HTTP front-end for the crawl engine, built on ``aiohttp.web``.

Endpoints:
  POST /scrape   {url, maxPages?, maxLength?} -> aggregated text and counters
  GET  /health   queue, request and browser counters
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from aiohttp import web
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from site_reader.config import ServerConfig, Settings
from site_reader.crawler.browser import BrowserLauncher, launch_chromium
from site_reader.exceptions import InvalidInputError, JobTimeoutError, QueueFullError
from site_reader.jobs import JobQueue, make_scrape_processor
from site_reader.limiter import LaunchLimiter
from site_reader.utils import validate_seed_url

__all__ = ["ScrapeParams", "parse_scrape_request", "create_app", "run_server"]

_log = logging.getLogger("SiteReader")


class ScrapeRequest(BaseModel):
    """Raw request body; numbers may arrive as numeric strings."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    url: Optional[str] = None
    max_pages: Optional[int] = Field(None, alias="maxPages")
    max_length: Optional[int] = Field(None, alias="maxLength")


@dataclass(slots=True, frozen=True)
class ScrapeParams:
    url: str
    max_pages: int
    max_length: Optional[int]


def _first_error_field(exc: ValidationError) -> str:
    errors = exc.errors()
    return str(errors[0]["loc"][0]) if errors and errors[0].get("loc") else ""


def parse_scrape_request(body: Any, config: ServerConfig) -> ScrapeParams:
    """Validate a /scrape body: clamp maxPages and maxLength, reject the rest."""
    if not isinstance(body, dict):
        raise InvalidInputError("Request body must be a JSON object")
    try:
        req = ScrapeRequest.model_validate(body)
    except ValidationError as exc:
        field_name = _first_error_field(exc)
        if field_name == "maxLength":
            raise InvalidInputError("maxLength must be a positive number") from exc
        if field_name == "maxPages":
            raise InvalidInputError(
                f"maxPages must be a positive number (max {config.max_pages_cap})"
            ) from exc
        raise InvalidInputError("Invalid URL format") from exc

    if not req.url:
        raise InvalidInputError("URL is required")
    validate_seed_url(req.url)

    max_pages = config.default_max_pages if req.max_pages is None else req.max_pages
    max_pages = min(max(1, max_pages), config.max_pages_cap)

    max_length = req.max_length
    if max_length is not None:
        if max_length < 1:
            raise InvalidInputError("maxLength must be a positive number")
        max_length = min(max_length, config.max_length_cap)

    return ScrapeParams(url=req.url.strip(), max_pages=max_pages, max_length=max_length)


@dataclass
class ServerState:
    settings: Settings
    queue: JobQueue
    limiter: LaunchLimiter
    active_requests: int = 0


STATE_KEY = web.AppKey("site_reader_state", ServerState)


def _error(status: int, error: str, message: Optional[str] = None) -> web.Response:
    payload: Dict[str, Any] = {"error": error}
    if message is not None:
        payload["message"] = message
    return web.json_response(payload, status=status)


async def handle_scrape(request: web.Request) -> web.Response:
    state = request.app[STATE_KEY]
    config = state.settings.server
    state.active_requests += 1
    try:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error(400, "Request body must be valid JSON")

        try:
            params = parse_scrape_request(body, config)
        except InvalidInputError as exc:
            return _error(400, str(exc))

        try:
            job = state.queue.add(params.url, params.max_pages, params.max_length)
        except QueueFullError as exc:
            _log.warning("Rejecting scrape of %s: %s", params.url, exc)
            return _error(503, "Service temporarily unavailable", str(exc))

        try:
            result = await state.queue.wait_until_finished(job, timeout=config.job_timeout)
        except JobTimeoutError as exc:
            state.queue.cancel(job)
            _log.error("Scraping error: %s", exc)
            return _error(500, "Failed to scrape website", str(exc))
        except Exception as exc:
            _log.error("Scraping error for %s: %s", params.url, exc)
            return _error(500, "Failed to scrape website", str(exc))
        return web.json_response(result)
    finally:
        state.active_requests -= 1


async def handle_health(request: web.Request) -> web.Response:
    state = request.app[STATE_KEY]
    counts = state.queue.counts()
    return web.json_response(
        {
            "status": "ok",
            "queue": {
                "waiting": counts["waiting"] + counts["delayed"],
                "active": counts["active"],
                "completed": counts["completed"],
                "failed": counts["failed"],
            },
            "activeRequests": state.active_requests,
            "browsers": state.limiter.snapshot(),
        }
    )


async def _start_queue(app: web.Application) -> None:
    await app[STATE_KEY].queue.start()


async def _stop_queue(app: web.Application) -> None:
    await app[STATE_KEY].queue.close()


def create_app(
    settings: Optional[Settings] = None,
    *,
    limiter: Optional[LaunchLimiter] = None,
    launcher: BrowserLauncher = launch_chromium,
    queue: Optional[JobQueue] = None,
) -> web.Application:
    """Build the application; the job queue starts and stops with it."""
    settings = settings or Settings()
    limiter = limiter or LaunchLimiter(settings.crawler.launch_limit)
    if queue is None:
        processor = make_scrape_processor(settings.crawler, limiter, launcher)
        queue = JobQueue.from_config(processor, settings.server)

    app = web.Application()
    app[STATE_KEY] = ServerState(settings=settings, queue=queue, limiter=limiter)
    app.router.add_post("/scrape", handle_scrape)
    app.router.add_get("/health", handle_health)
    app.on_startup.append(_start_queue)
    app.on_cleanup.append(_stop_queue)
    return app


def run_server(settings: Settings) -> None:
    """Serve until interrupted."""
    cfg = settings.server
    _log.info("Scraping API server running on %s:%d", cfg.host, cfg.port)
    _log.info("Health check: http://%s:%d/health", cfg.host, cfg.port)
    web.run_app(create_app(settings), host=cfg.host, port=cfg.port, print=None)
