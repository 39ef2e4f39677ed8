"""Render analytics reports using Jinja2 templates."""
from __future__ import annotations

import logging
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from src.reporting.context import build_report_context
from src.reporting.models import AnalyticsSnapshot

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).parent / "templates"

# Markdown/slack templates don’t need HTML escaping – it breaks apostrophes etc.
# Disable autoescape to preserve original characters.
_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)

# Slack rejects longer chat messages; longer reports are uploaded as files.
MAX_MESSAGE_CHARS = 2800


def render_report(snapshot: AnalyticsSnapshot, *, event_name: str = "") -> str:
    """Render a Slack-friendly markdown report from an analytics snapshot."""

    context = build_report_context(snapshot, event_name=event_name)
    template = _env.get_template("analytics.md.j2")
    return template.render(**context.to_dict())


def post_report_to_slack(
    *, snapshot: AnalyticsSnapshot, client, channel: str, event_name: str = ""
):
    """Send the rendered report to Slack *channel* using *client* (WebClient)."""

    report_text = render_report(snapshot, event_name=event_name)
    report_len = len(report_text)
    logger.debug(
        "Report generated for event=%s channel=%s len=%d",
        snapshot.event_id,
        channel,
        report_len,
    )

    if report_len < MAX_MESSAGE_CHARS:
        return client.chat_postMessage(channel=channel, text=report_text)

    logger.debug(
        "Uploading report as file (len=%d >= %d) via files_upload_v2",
        report_len,
        MAX_MESSAGE_CHARS,
    )
    return client.files_upload_v2(
        channel=channel,
        title=f"Feedback Analytics {snapshot.event_id}",
        content=report_text,
        filename=f"analytics_{snapshot.event_id}.md",
    )
