"""
Content transformations for alert titles and messages.

Pure functions turning raw notification text into the title and HTML body
used for emails and work items. No I/O happens here.
"""

import html
import re
from typing import Optional

from .models import AlertStatus


ANNOTATIONS_MARKER = "Annotations:"
EMPHASIZED_LABELS = ("Value:", "Labels:", " - ")

_PARENTHESIZED = re.compile(r"\(.*?\)")
_VALUE_BEFORE_BACKLOG = re.compile(r"Value: .*?(Messages_behind=\d+)")
_BACKLOG = re.compile(r"(Messages_behind=\d+)")


def strong(text: str) -> str:
    return f"<strong>{text}</strong>"


def derive_title(raw_title: str) -> str:
    """
    Remove the first parenthesized group from a title.

    ``"Queue backlog high (env=prod)"`` becomes ``"Queue backlog high"``.
    Titles without parentheses are only stripped of surrounding whitespace.
    """
    return _PARENTHESIZED.sub("", raw_title, count=1).strip()


def truncate_annotations(raw_message: str) -> str:
    """Drop everything from the first ``Annotations:`` marker onwards."""
    return raw_message.split(ANNOTATIONS_MARKER, 1)[0]


def collapse_value(text: str) -> str:
    """Reduce ``Value: <anything> Messages_behind=N`` to ``Value: Messages_behind=N``."""
    return _VALUE_BEFORE_BACKLOG.sub(r"Value: \1", text, count=1)


def highlight_backlog(text: str) -> str:
    """Wrap every ``Messages_behind=N`` in emphasis markup."""
    return _BACKLOG.sub(lambda match: strong(match.group(1)), text)


def summary_line(summary: str) -> str:
    return f'<br>{strong("Summary:")} <span style="color: red;">{html.escape(summary, quote=False)}</span>'


def derive_message(raw_message: str, status: Optional[str] = None, summary: Optional[str] = None) -> str:
    """
    Build the HTML message body stored on work items.

    Args:
        raw_message: Message text as sent by the alerting system
        status: Alert status; the summary is only shown while firing
        summary: Optional summary annotation

    Returns:
        HTML-safe message body
    """
    message = html.escape(truncate_annotations(raw_message), quote=False)
    message = highlight_backlog(collapse_value(message))

    if status == AlertStatus.FIRING.value and summary and summary.strip():
        message += summary_line(summary.strip())

    return message


def emphasize_fields(body: str) -> str:
    """Emphasize the ``Value:``, ``Labels:`` and `` - `` separators of a message body."""
    for label in EMPHASIZED_LABELS:
        body = body.replace(label, strong(label))
    return body


def render_email_html(
    alert_id: str,
    title: str,
    message: str,
    footer_text: str,
    logo_url: Optional[str] = None,
) -> str:
    """Render the notification email body for a firing alert."""
    body = emphasize_fields(message)

    footer = f"<br><br><strong><em>{html.escape(footer_text)}</em></strong>"
    if logo_url:
        footer += (
            f'<br><img src="{html.escape(logo_url)}" alt="Logo" '
            'width="142" height="60" />'
        )
    footer += f"<br>{strong('Message ID:')} {html.escape(alert_id)}"

    return (
        f"<p>{strong('Title:')} <b>{html.escape(title, quote=False)}</b></p>\n"
        f"<p>{strong('Message:')}</p>\n"
        f'<pre style="white-space: pre-wrap;">{body}</pre>\n'
        f"{footer}"
    )
