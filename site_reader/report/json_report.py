# site_reader/report/json_report.py

"""
Writing a crawl result to a JSON file.
"""
import json
from pathlib import Path

from site_reader.aggregator import CrawlResult


def render_json(result: CrawlResult, output_path: Path | str, *, pretty: bool = True) -> Path:
    """
    Save *result* as JSON (e-mails included) and return the file path.

    :param result: aggregated crawl result
    :param output_path: target JSON file; parent folders are created
    :param pretty: indent with two spaces
    :return: Path of the written file

    Example:
    ```python
    from site_reader.report.json_report import render_json
    path = render_json(result, 'reports/example.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    data = result.to_dict(include_emails=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2 if pretty else None)

    return output
