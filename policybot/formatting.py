"""
Notice formatting helpers.
"""

import html
import re

_TAG_RE = re.compile(r"<[^>]+>")


def html_to_text(html_body: str) -> str:
    """
    Plain-text fallback for a simple HTML notice.

    Line breaks become newlines; every other tag is dropped.
    """
    text = html_body.replace("<br/>", "\n").replace("</li>", "\n")
    return html.unescape(_TAG_RE.sub("", text)).strip()
