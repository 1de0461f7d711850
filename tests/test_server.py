# File: tests/test_server.py
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web

from site_reader.config import ServerConfig, Settings
from site_reader.exceptions import InvalidInputError, QueueFullError
from site_reader.jobs import JobQueue
from site_reader.limiter import LaunchLimiter
from site_reader.server import create_app, parse_scrape_request

SEED = "https://example.com/"


async def _serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


class RecordingProcessor:
    def __init__(self, error: Exception | None = None, delay: float = 0.0) -> None:
        self.error = error
        self.delay = delay
        self.jobs = []

    async def __call__(self, job):
        self.jobs.append(job)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {"text": "hello", "pagesScraped": job.max_pages, "urls": [job.url]}


class FullQueue(JobQueue):
    def add(self, url, max_pages, max_length=None):
        raise QueueFullError(self.max_waiting)


def settings_with(**server) -> Settings:
    return Settings().with_overrides(server={"backoff_delay": 0.0, **server})


# --------------------------------------------------------------------------- #
#                            Request validation                               #
# --------------------------------------------------------------------------- #


@pytest.mark.parametrize(
    "body,pages,length",
    [
        ({"url": SEED}, 10, None),
        ({"url": SEED, "maxPages": 3}, 3, None),
        ({"url": SEED, "maxPages": "4"}, 4, None),
        ({"url": SEED, "maxPages": 500}, 50, None),
        ({"url": SEED, "maxPages": -5}, 1, None),
        ({"url": SEED, "maxPages": 0}, 1, None),
        ({"url": SEED, "maxLength": 250}, 10, 250),
        ({"url": SEED, "maxLength": 10**9}, 10, 100_000),
        ({"url": SEED, "extra": True}, 10, None),
    ],
)
def test_parse_clamps_limits(body, pages, length):
    params = parse_scrape_request(body, ServerConfig())
    assert params.url == SEED
    assert params.max_pages == pages
    assert params.max_length == length


@pytest.mark.parametrize(
    "body,message",
    [
        ([SEED], "Request body must be a JSON object"),
        ({}, "URL is required"),
        ({"url": ""}, "URL is required"),
        ({"url": 42}, "Invalid URL format"),
        ({"url": "not a url"}, "Invalid URL format"),
        ({"url": "mailto:me@example.com"}, "Invalid URL format"),
        ({"url": SEED, "maxPages": "many"}, "maxPages must be a positive number (max 50)"),
        ({"url": SEED, "maxLength": 0}, "maxLength must be a positive number"),
        ({"url": SEED, "maxLength": "long"}, "maxLength must be a positive number"),
    ],
)
def test_parse_rejects(body, message):
    with pytest.raises(InvalidInputError) as info:
        parse_scrape_request(body, ServerConfig())
    assert str(info.value).startswith(message)


# --------------------------------------------------------------------------- #
#                                 Endpoints                                   #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_scrape_endpoint_runs_job(unused_tcp_port: int):
    processor = RecordingProcessor()
    app = create_app(settings_with(), queue=JobQueue(processor, backoff_delay=0.0))

    async for base in _serve_app(app, unused_tcp_port):
        async with aiohttp.ClientSession() as session:
            async with session.post(f"{base}/scrape", json={"url": SEED, "maxPages": 70}) as resp:
                assert resp.status == 200
                data = await resp.json()

    assert data == {"text": "hello", "pagesScraped": 50, "urls": [SEED]}
    assert processor.jobs[0].max_length is None


@pytest.mark.asyncio()
async def test_scrape_endpoint_with_browser(unused_tcp_port: int, site, crawler_config):
    site.add(SEED, "<h1>Title</h1><p>Body text.</p>", links=["/next"])
    site.add(SEED + "next", "<p>Second page.</p>")
    settings = Settings(crawler=crawler_config, server=ServerConfig(backoff_delay=0.0))
    app = create_app(settings, limiter=LaunchLimiter(1), launcher=site.launch)

    async for base in _serve_app(app, unused_tcp_port):
        async with aiohttp.ClientSession() as session:
            async with session.post(f"{base}/scrape", json={"url": SEED, "maxPages": 5}) as resp:
                assert resp.status == 200
                data = await resp.json()

    assert data["pagesScraped"] == 2
    assert data["urls"] == [SEED, SEED + "next"]
    assert "Second page." in data["text"]
    assert data["truncated"] is False
    assert data["tokenEstimate"] == -(-data["characterCount"] // 4)


@pytest.mark.asyncio()
async def test_bad_requests(unused_tcp_port: int):
    processor = RecordingProcessor()
    app = create_app(settings_with(), queue=JobQueue(processor))

    async for base in _serve_app(app, unused_tcp_port):
        async with aiohttp.ClientSession() as session:
            async with session.post(f"{base}/scrape", json={"maxPages": 2}) as resp:
                assert resp.status == 400
                assert (await resp.json()) == {"error": "URL is required"}
            async with session.post(f"{base}/scrape", json={"url": "nope"}) as resp:
                assert resp.status == 400
                assert (await resp.json())["error"].startswith("Invalid URL format")
            async with session.post(
                f"{base}/scrape", data="{broken", headers={"Content-Type": "application/json"}
            ) as resp:
                assert resp.status == 400

    assert processor.jobs == []


@pytest.mark.asyncio()
async def test_full_queue_answers_503(unused_tcp_port: int):
    app = create_app(settings_with(), queue=FullQueue(RecordingProcessor(), max_waiting=1))

    async for base in _serve_app(app, unused_tcp_port):
        async with aiohttp.ClientSession() as session:
            async with session.post(f"{base}/scrape", json={"url": SEED}) as resp:
                assert resp.status == 503
                data = await resp.json()

    assert data["error"] == "Service temporarily unavailable"
    assert "full" in data["message"]


@pytest.mark.asyncio()
async def test_failed_job_answers_500(unused_tcp_port: int):
    processor = RecordingProcessor(error=RuntimeError("Failed to launch browser"))
    app = create_app(settings_with(), queue=JobQueue(processor, attempts=2, backoff_delay=0.0))

    async for base in _serve_app(app, unused_tcp_port):
        async with aiohttp.ClientSession() as session:
            async with session.post(f"{base}/scrape", json={"url": SEED}) as resp:
                assert resp.status == 500
                data = await resp.json()

    assert data == {"error": "Failed to scrape website", "message": "Failed to launch browser"}
    assert len(processor.jobs) == 2


@pytest.mark.asyncio()
async def test_job_timeout_answers_500_and_cancels(unused_tcp_port: int):
    processor = RecordingProcessor(delay=10)
    queue = JobQueue(processor)
    app = create_app(settings_with(job_timeout=0.1), queue=queue)

    async for base in _serve_app(app, unused_tcp_port):
        async with aiohttp.ClientSession() as session:
            async with session.post(f"{base}/scrape", json={"url": SEED}) as resp:
                assert resp.status == 500
                data = await resp.json()
            await asyncio.sleep(0.01)
            counts = queue.counts()

    assert data["message"].startswith("Job timeout")
    assert counts["active"] == 0
    assert counts["failed"] == 1


@pytest.mark.asyncio()
async def test_health(unused_tcp_port: int):
    limiter = LaunchLimiter(4)
    app = create_app(settings_with(), limiter=limiter, queue=JobQueue(RecordingProcessor()))

    async for base in _serve_app(app, unused_tcp_port):
        async with aiohttp.ClientSession() as session:
            async with session.post(f"{base}/scrape", json={"url": SEED}) as resp:
                assert resp.status == 200
            async with session.get(f"{base}/health") as resp:
                assert resp.status == 200
                data = await resp.json()

    assert data == {
        "status": "ok",
        "queue": {"waiting": 0, "active": 0, "completed": 1, "failed": 0},
        "activeRequests": 0,
        "browsers": {"active": 0, "waiting": 0, "capacity": 4},
    }
