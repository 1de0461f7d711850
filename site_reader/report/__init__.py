# File: site_reader/report/__init__.py
"""site_reader.report: saving crawl results to files."""

from site_reader.report.json_report import render_json

__all__ = ["render_json"]
