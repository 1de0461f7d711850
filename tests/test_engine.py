# File: tests/test_engine.py
import math

import pytest

from site_reader.engine import scrape
from site_reader.exceptions import BrowserLaunchError, InvalidInputError
from site_reader.limiter import LaunchLimiter

SEED = "https://example.com/"


@pytest.mark.asyncio()
async def test_seed_without_links_yields_one_page(site, crawler_config, limiter):
    site.add(SEED, "<p>Lonely page.</p>")

    result = await scrape(SEED, 10, config=crawler_config, limiter=limiter, launcher=site.launch)

    assert result.pages_scraped == 1
    assert result.urls == [SEED]
    assert result.text == "Lonely page."
    assert result.token_estimate == math.ceil(len("Lonely page.") / 4)


@pytest.mark.asyncio()
async def test_five_links_budget_three(site, crawler_config, limiter):
    children = [f"{SEED}p{i}" for i in range(5)]
    site.add(SEED, "<p>home</p>", links=children)
    for url in children:
        site.add(url, f"<p>page {url[-1]}</p>")

    result = await scrape(SEED, 3, config=crawler_config, limiter=limiter, launcher=site.launch)

    assert result.pages_scraped == 3
    assert len(result.urls) == len(set(result.urls)) == 3


@pytest.mark.asyncio()
async def test_max_length_truncates(site, crawler_config, limiter):
    site.add(SEED, "<p>" + "word " * 100 + "</p>")

    result = await scrape(SEED, 1, 50, config=crawler_config, limiter=limiter, launcher=site.launch)

    assert result.truncated
    assert len(result.text) == 53
    assert result.original_token_estimate == math.ceil(result.original_character_count / 4)
    assert result.emails == []


@pytest.mark.asyncio()
async def test_budget_defaults_to_config(site, crawler_config, limiter):
    children = [f"{SEED}p{i}" for i in range(5)]
    site.add(SEED, "<p>home</p>", links=children)
    for url in children:
        site.add(url, "<p>child</p>")
    config = crawler_config.model_copy(update={"max_pages": 2})

    result = await scrape(SEED, config=config, limiter=limiter, launcher=site.launch)
    assert result.pages_scraped == 2


@pytest.mark.asyncio()
@pytest.mark.parametrize("url", ["", "example.com", "ftp://example.com/", "http://"])
async def test_invalid_seed(url, site, crawler_config, limiter):
    with pytest.raises(InvalidInputError):
        await scrape(url, 5, config=crawler_config, limiter=limiter, launcher=site.launch)
    assert not site.browsers


@pytest.mark.asyncio()
async def test_invalid_max_length(site, crawler_config, limiter):
    with pytest.raises(InvalidInputError):
        await scrape(SEED, 5, 0, config=crawler_config, limiter=limiter, launcher=site.launch)


@pytest.mark.asyncio()
async def test_launch_failure_is_fatal(site, crawler_config):
    site.launch_error = OSError("no chromium")
    limiter = LaunchLimiter(1)
    with pytest.raises(BrowserLaunchError):
        await scrape(SEED, 5, config=crawler_config, limiter=limiter, launcher=site.launch)
    assert limiter.active == 0
