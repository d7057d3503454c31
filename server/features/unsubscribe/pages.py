from __future__ import annotations

from datetime import datetime, timezone
from html import escape

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 50px auto; padding: 20px; text-align: center; background-color: #f8fafc; line-height: 1.6; }}
    .container {{ background: white; padding: 40px; border-radius: 12px; border: 1px solid {border}; }}
    .icon {{ font-size: 64px; color: {accent}; margin-bottom: 24px; display: block; }}
    h1 {{ color: {heading}; margin-bottom: 16px; font-size: 28px; font-weight: 600; }}
    p {{ color: #6b7280; margin-bottom: 16px; font-size: 16px; }}
    .email {{ background: #f1f5f9; padding: 12px 16px; border-radius: 8px; font-family: 'SF Mono', Monaco, monospace; margin: 20px 0; color: #0f766e; font-weight: 500; }}
    .note {{ margin-top: 24px; padding: 16px; background: #f8fafc; border-radius: 8px; font-size: 14px; color: #6b7280; }}
  </style>
</head>
<body>
  <div class="container">
    <span class="icon">{icon}</span>
    <h1>{heading_text}</h1>
{body}
  </div>
</body>
</html>
"""


def _render(*, title: str, icon: str, heading_text: str, body: str, accent: str, heading: str, border: str) -> str:
    return _PAGE.format(
        title=escape(title),
        icon=icon,
        heading_text=escape(heading_text),
        body=body,
        accent=accent,
        heading=heading,
        border=border,
    )


def success_page(email: str, campaign_name: str | None, *, year: int | None = None) -> str:
    year = year or datetime.now(timezone.utc).year
    campaign_line = (
        f'    <p class="email">Campaign: {escape(campaign_name)}</p>\n' if campaign_name else ""
    )
    body = (
        "    <p>Your unsubscribe request has been processed.</p>\n"
        f'    <div class="email">{escape(email)}</div>\n'
        "    <p>You have been removed from our mailing list and will no longer receive our marketing emails.</p>\n"
        f"{campaign_line}"
        '    <div class="note"><strong>Was this a mistake?</strong><br>'
        "Contact us and we will subscribe you again.</div>\n"
        f'    <p style="font-size: 12px; margin-top: 32px;">&copy; {year}</p>'
    )
    return _render(
        title="Unsubscribed",
        icon="&#10003;",
        heading_text="You have been unsubscribed",
        body=body,
        accent="#10b981",
        heading="#1f2937",
        border="#e2e8f0",
    )


def already_unsubscribed_page(email: str) -> str:
    body = (
        f'    <p>The address <span class="email">{escape(email)}</span> was already unsubscribed.</p>\n'
        "    <p>You will not receive any more of our marketing emails.</p>"
    )
    return _render(
        title="Already unsubscribed",
        icon="&#8505;",
        heading_text="You are already unsubscribed",
        body=body,
        accent="#3b82f6",
        heading="#1f2937",
        border="#e2e8f0",
    )


def error_page(title: str, message: str) -> str:
    body = (
        f"    <p>{escape(message)}</p>\n"
        '    <div class="note"><strong>Need help?</strong><br>'
        "If the problem persists, please contact our support team.</div>"
    )
    return _render(
        title=f"Error - {title}",
        icon="&#9888;",
        heading_text=title,
        body=body,
        accent="#ef4444",
        heading="#dc2626",
        border="#fecaca",
    )
