"""Strip user-supplied text down to plain text before it is persisted."""

import re
from html.parser import HTMLParser
from typing import List, Optional

# Elements whose text content is dropped along with the tags
_DROP_CONTENT_TAGS = {"script", "style", "textarea", "option", "noscript"}
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class _TextExtractor(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self._parts: List[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in _DROP_CONTENT_TAGS:
            self._skip_depth += 1

    def handle_endtag(self, tag):
        if tag in _DROP_CONTENT_TAGS and self._skip_depth:
            self._skip_depth -= 1

    def handle_data(self, data):
        if not self._skip_depth:
            self._parts.append(data)

    def text(self) -> str:
        return "".join(self._parts)


def sanitize_text(value: Optional[str]) -> str:
    """Remove every HTML tag and trim; None becomes an empty string."""
    if not value:
        return ""
    parser = _TextExtractor()
    parser.feed(value)
    parser.close()
    return parser.text().strip()


def sanitize_email(value: Optional[str]) -> str:
    """Sanitized, lower-cased e-mail, or an empty string if it no longer looks like one."""
    cleaned = sanitize_text(value).lower()
    return cleaned if _EMAIL_RE.match(cleaned) else ""
