# === FILE: site_reader/cli.py ===
#!/usr/bin/env python3
"""
Command-line entry point for SiteReader.

Commands:
  scrape    Crawl a site and print (or save) its aggregated text
  serve     Run the HTTP API (POST /scrape, GET /health)
  config    Show the effective configuration

Global options:
  --config PATH       YAML/JSON config (default: configs/default.yaml if present)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Log file (stdout only if omitted)
  --log-format FORMAT Log record format

scrape options:
  URL                 Seed URL (or START_URLS / START_URL environment variables)
  --max-pages INT     Page budget (default 20, env MAX_PAGES)
  --max-length INT    Character budget for the aggregated text
  --json PATH         Save the full result as JSON
  --pretty            Indent JSON output
  --timeout SEC       Deadline for the whole crawl

Example:
  site-reader scrape https://example.com --max-pages 5 --json result.json --pretty
"""
import asyncio
import os
import sys
from pathlib import Path

import click

from site_reader import __version__
from site_reader.config import load_config
from site_reader.engine import scrape
from site_reader.limiter import LaunchLimiter
from site_reader.logger import init_logging
from site_reader.report.json_report import render_json
from site_reader.server import run_server

CONTEXT_SETTINGS = dict(help_option_names=["--help"])
PREVIEW_CHARS = 500


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _seed_from_env() -> str | None:
    raw = os.environ.get("START_URLS") or os.environ.get("START_URL")
    if not raw:
        return None
    urls = [u.strip() for u in raw.split(",") if u.strip()]
    return urls[0] if urls else None


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteReader, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    envvar='SITE_READER_CONFIG',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to a YAML or JSON configuration file.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Log file (stdout if omitted)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Log record format string'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """SiteReader: readable text of a whole website."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        settings = load_config(config_path)
    except Exception as e:
        print_error(f'Failed to load configuration: {e}')
    ctx.ensure_object(dict)
    ctx.obj['settings'] = settings


@cli.command('scrape', context_settings=CONTEXT_SETTINGS)
@click.argument('url', required=False)
@click.option(
    '--max-pages', '-n', 'max_pages',
    type=click.IntRange(min=1),
    default=20, show_default=True,
    envvar='MAX_PAGES',
    help='Maximum number of pages to scrape'
)
@click.option(
    '--max-length', '-m', 'max_length',
    type=click.IntRange(min=1),
    default=None,
    help='Truncate the aggregated text to this many characters'
)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Save the result as JSON'
)
@click.option(
    '--pretty', is_flag=True,
    help='Indent JSON output (2 spaces)'
)
@click.option(
    '--timeout', 'timeout',
    type=float,
    default=None,
    help='Deadline for the whole crawl (seconds)'
)
@click.pass_context
def scrape_cmd(ctx, url, max_pages, max_length, json_output, pretty, timeout):
    """Crawl URL and print page count, size and a preview of the text."""
    settings = ctx.obj['settings']
    url = url or _seed_from_env()
    if not url:
        print_error('No URL given (argument, START_URLS or START_URL)')

    click.echo(f'Starting crawl of {url} (max {max_pages} pages)...')
    limiter = LaunchLimiter(settings.crawler.launch_limit)
    job = scrape(url, max_pages, max_length, config=settings.crawler, limiter=limiter)
    try:
        if timeout:
            result = asyncio.run(asyncio.wait_for(job, timeout=timeout))
        else:
            result = asyncio.run(job)
    except asyncio.TimeoutError:
        print_error(f'Crawl did not finish within {timeout} seconds')
    except Exception as e:
        print_error(f'Scraping failed: {e}')

    if json_output:
        try:
            saved = render_json(result, json_output, pretty=pretty)
            click.echo(f'JSON result: {saved}')
        except OSError as e:
            print_error(f'Failed to save JSON: {e}')

    click.echo(f'\nScraped {result.pages_scraped} pages')
    click.echo(f'Total text length: {result.character_count} characters')
    if result.truncated:
        click.echo(f'Truncated from {result.original_character_count} characters')
    if result.emails:
        click.echo(f'Emails found: {", ".join(result.emails)}')
    click.echo(f'\nAggregated text:\n{result.text[:PREVIEW_CHARS]}...')


@cli.command('serve', context_settings=CONTEXT_SETTINGS)
@click.option('--host', default=None, help='Interface to bind (config server.host)')
@click.option('--port', type=click.IntRange(1, 65535), default=None, envvar='PORT',
              help='Port to listen on (config server.port, env PORT)')
@click.pass_context
def serve(ctx, host, port):
    """Run the HTTP API."""
    settings = ctx.obj['settings']
    overrides = {k: v for k, v in (('host', host), ('port', port)) if v is not None}
    if overrides:
        settings = settings.with_overrides(server=overrides)
    run_server(settings)


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Print the effective configuration as JSON."""
    settings = ctx.obj['settings']
    click.echo(settings.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
