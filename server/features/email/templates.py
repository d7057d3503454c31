from __future__ import annotations

from html import escape
from urllib.parse import urlencode

MAX_CONTENT_LENGTH = 100_000

_FOOTER_TEMPLATE = """
    <div style="margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e5e5; font-size: 12px; color: #666; text-align: center; font-family: Arial, sans-serif;">
      <p style="margin: 0 0 10px 0;">If you no longer want to receive emails like this, you can <a href="{link}" style="color: #0f766e; text-decoration: underline;" target="_blank">unsubscribe here</a>.</p>
      <p style="margin: 10px 0 0 0; font-size: 11px; color: #999;">This email was sent by {sender_name}</p>
    </div>
"""

_DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>
    body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px; background-color: #ffffff; }}
    img {{ max-width: 100%; height: auto; }}
    a {{ color: #0f766e; }}
  </style>
</head>
<body>
{body}
</body>
</html>
"""


def build_unsubscribe_link(base_url: str, *, contact_id: str, campaign_id: str) -> str:
    query = urlencode({"contact": contact_id, "campaign": campaign_id})
    return f"{base_url.rstrip('/')}/unsubscribe?{query}"


def add_unsubscribe_footer(html: str, *, unsubscribe_link: str, sender_name: str) -> str:
    footer = _FOOTER_TEMPLATE.format(
        link=escape(unsubscribe_link, quote=True),
        sender_name=escape(sender_name),
    )
    if "</body>" in html:
        return html.replace("</body>", f"{footer}</body>", 1)
    return f"{html}{footer}"


def render_campaign_email(
    content: str,
    *,
    subject: str,
    unsubscribe_link: str,
    sender_name: str,
) -> str:
    with_footer = add_unsubscribe_footer(
        content,
        unsubscribe_link=unsubscribe_link,
        sender_name=sender_name,
    )
    if "<html" in with_footer.lower():
        return with_footer
    return _DOCUMENT_TEMPLATE.format(title=escape(subject), body=with_footer)


def validate_email_content(content: str) -> list[str]:
    errors: list[str] = []
    if not content or not content.strip():
        errors.append("Email content cannot be empty.")
    if len(content) > MAX_CONTENT_LENGTH:
        errors.append("Email content is too long.")
    if "<script" in content.lower():
        errors.append("JavaScript is not allowed in email content.")
    return errors
