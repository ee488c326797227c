"""
Email templates for club event reminders.

All templates use inline CSS for maximum email client compatibility.
Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from html import escape
from typing import TYPE_CHECKING

from clubcal.reminders.messages import format_lead_time, reminder_subject

if TYPE_CHECKING:
    from clubcal.db.models import Event

# Color constants
BG_PAGE = "#F4F5F7"
BG_CARD = "#FFFFFF"
ACCENT = "#2563EB"
TEXT_PRIMARY = "#111827"
TEXT_SECONDARY = "#6B7280"
BORDER = "#E5E7EB"


def _base_layout(content: str, app_name: str = "Debate Club Calendar") -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{app_name}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 32px 16px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width: 600px; width: 100%;">
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 12px; padding: 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px;">
                            <p style="color: {TEXT_SECONDARY}; font-size: 12px; line-height: 1.5; margin: 0;">
                                You asked {app_name} to remind you about this event.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _link(url: str, label: str) -> str:
    return f'<a href="{escape(url, quote=True)}" style="color: {ACCENT};">{escape(label)}</a>'


def event_reminder(event: Event, offset_minutes: int, when: str) -> tuple[str, str, str]:
    """
    Reminder sent ahead of an event's start.

    Args:
        event: The event being reminded about.
        offset_minutes: Effective lead time, restated in the copy.
        when: Pre-formatted start time.
    """
    subject = reminder_subject(event)
    lead = format_lead_time(offset_minutes)

    where = event.location_label
    if event.location_link:
        where = f"{where} ({event.location_link})"

    text_lines = [
        f'Reminder: "{event.title}" starts in {lead}.',
        f"When: {when}",
        f"Where: {where}",
        event.description,
    ]
    if event.registration_url:
        text_lines.append(f"Register: {event.registration_url}")
    text_body = "\n".join(line for line in text_lines if line)

    where_html = escape(event.location_label)
    if event.location_link:
        where_html = f"{where_html} ({_link(event.location_link, event.location_link)})"
    register_html = (
        f'<p style="margin: 16px 0 0;">{_link(event.registration_url, "Register")}</p>'
        if event.registration_url
        else ""
    )
    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; margin: 0 0 12px;">{escape(event.title)}</h1>
<p style="color: {TEXT_PRIMARY}; font-size: 15px; margin: 0 0 16px;">Starts in {escape(lead)}.</p>
<p style="color: {TEXT_SECONDARY}; font-size: 14px; margin: 0 0 4px;"><strong>When:</strong> {escape(when)}</p>
<p style="color: {TEXT_SECONDARY}; font-size: 14px; margin: 0 0 16px;"><strong>Where:</strong> {where_html}</p>
<p style="color: {TEXT_PRIMARY}; font-size: 14px; line-height: 1.6; margin: 0;">{escape(event.description)}</p>
{register_html}"""

    return subject, _base_layout(content), text_body
