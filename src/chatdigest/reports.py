"""Markdown report files: naming, saving, listing and HTML rendering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import markdown

from chatdigest.errors import ReportNotFound
from chatdigest.messaging.models import TimeWindow

_LOG = logging.getLogger(__name__)

REPORT_SUFFIX = ".md"


@dataclass(frozen=True)
class SavedReport:
    path: Path
    markdown: str
    html: str


def _is_single_day(window: TimeWindow) -> bool:
    return window.start.date() == window.end.date()


def report_filename(window: TimeWindow) -> str:
    """``Analysis-<from>.md`` for one day, ``Analysis-<from>_to_<to>.md`` otherwise."""
    start = window.start.strftime("%m-%d-%Y-%H-%M")
    if _is_single_day(window):
        return f"Analysis-{start}{REPORT_SUFFIX}"
    end = window.end.strftime("%m-%d-%Y-%H-%M")
    return f"Analysis-{start}_to_{end}{REPORT_SUFFIX}"


def report_title(window: TimeWindow) -> str:
    if _is_single_day(window):
        return f"# Chat Analysis for {window.start.strftime('%m-%d-%Y')}"
    return (
        f"# Chat Analysis from {window.start.strftime('%m-%d-%Y')} "
        f"to {window.end.strftime('%m-%d-%Y')}"
    )


def render_html(text: str) -> str:
    return markdown.markdown(text, extensions=["extra", "sane_lists"])


def write_report(
    summary: str,
    window: TimeWindow,
    reports_dir: str | Path,
    *,
    now: datetime | None = None,
) -> SavedReport:
    """Save the summary under ``reports_dir`` and return it with rendered HTML."""
    now = now or datetime.now(timezone.utc)
    generated = now.astimezone(timezone.utc).strftime("%B %d, %Y at %I:%M %p UTC")
    content = f"{report_title(window)}\n\n*Report generated on {generated}*\n\n{summary}"

    directory = Path(reports_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / report_filename(window)
    path.write_text(content, encoding="utf-8")
    _LOG.info("Report file saved: %s (%d chars)", path, len(content))
    return SavedReport(path=path, markdown=content, html=render_html(content))


def list_reports(reports_dir: str | Path) -> list[str]:
    """Report filenames, reverse lexical order."""
    directory = Path(reports_dir)
    directory.mkdir(parents=True, exist_ok=True)
    return sorted((p.name for p in directory.iterdir() if p.suffix == REPORT_SUFFIX), reverse=True)


def read_report(reports_dir: str | Path, filename: str) -> tuple[str, str]:
    """Return ``(markdown, html)`` for a saved report.

    Raises:
        ReportNotFound: missing file, or a name that escapes ``reports_dir``.
    """
    base = Path(reports_dir).resolve()
    path = (base / filename).resolve()
    if base not in path.parents or not path.is_file():
        raise ReportNotFound(filename)
    text = path.read_text(encoding="utf-8")
    return text, render_html(text)
