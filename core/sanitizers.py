"""
Input sanitization for user-generated text.

Project/task names, descriptions and comments pass through these
functions before validation and storage.
"""
import re
from typing import Optional

import bleach


# Allowed HTML tags for rich text (descriptions, comments)
ALLOWED_TAGS = [
    'p', 'br', 'strong', 'em', 'u', 'a', 'ul', 'ol', 'li',
    'blockquote', 'code', 'pre'
]

ALLOWED_ATTRIBUTES = {
    'a': ['href', 'title'],
}

HEX_COLOR_RE = re.compile(r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')


def sanitize_text(text: Optional[str], strip: bool = True) -> str:
    """
    Sanitize plain text input.

    - Strips leading/trailing whitespace
    - Removes control characters (newlines and tabs are kept)
    - Returns empty string for None input

    Length is not truncated here; callers validate bounds on the result.
    """
    if text is None:
        return ""

    text = str(text)
    if strip:
        text = text.strip()

    return re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', text)


def sanitize_html(html: Optional[str]) -> str:
    """Clean HTML content down to a small formatting allow-list."""
    if html is None:
        return ""

    return bleach.clean(
        str(html).strip(),
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        strip=True,
    )


def sanitize_title(title: Optional[str]) -> str:
    """
    Sanitize single-line names (task titles, project names, subtasks).

    - No control characters
    - Single line, whitespace collapsed
    """
    text = sanitize_text(title)
    text = re.sub(r'[\r\n]+', ' ', text)
    return re.sub(r'\s+', ' ', text)


def is_hex_color(value) -> bool:
    return isinstance(value, str) and bool(HEX_COLOR_RE.match(value))
