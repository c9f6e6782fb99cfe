import re
from typing import Optional

import bleach
from bs4 import BeautifulSoup

_WHITESPACE = re.compile(r"\s+")

# elements dropped together with their text
NON_TEXT_TAGS = ["script", "style", "textarea", "option", "noscript"]


def sanitize_text(text: Optional[str]) -> str:
    """Strip every tag and attribute, then collapse whitespace."""
    if not text:
        return ""
    soup = BeautifulSoup(str(text), "html.parser")
    for tag in soup.find_all(NON_TEXT_TAGS):
        tag.decompose()
    cleaned = bleach.clean(str(soup), tags=set(), attributes={}, strip=True, strip_comments=True)
    return _WHITESPACE.sub(" ", cleaned).strip()
