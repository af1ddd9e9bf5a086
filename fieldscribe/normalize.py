"""Text normalizers.

``html_to_markdown`` is the default markup converter handed to the
aggregator. It is intentionally small: paragraphs, bold, italics, lists
and line breaks survive, every other tag is dropped.
"""

import re
from typing import Iterable, Optional

_SCRIPT_RE = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_UUID_LINK_RE = re.compile(r"@UUID\[[^\]]+\](\{[^}]*\})?")
_DATA_ATTR_RE = re.compile(r"\sdata-[a-zA-Z-]+=\"[^\"]*\"")

_REPLACEMENTS = (
    (re.compile(r"\r\n"), "\n"),
    (re.compile(r"</?(strong|b)>", re.IGNORECASE), "**"),
    (re.compile(r"</?(em|i)>", re.IGNORECASE), "_"),
    (re.compile(r"<h([1-6])[^>]*>", re.IGNORECASE), lambda m: "#" * int(m.group(1)) + " "),
    (re.compile(r"</h[1-6]>", re.IGNORECASE), "\n\n"),
    (re.compile(r"<p[^>]*>", re.IGNORECASE), ""),
    (re.compile(r"</p>", re.IGNORECASE), "\n\n"),
    (re.compile(r"<li[^>]*>", re.IGNORECASE), "- "),
    (re.compile(r"</li>", re.IGNORECASE), "\n"),
    (re.compile(r"</?ul[^>]*>", re.IGNORECASE), "\n"),
    (re.compile(r"<br\s*/?>", re.IGNORECASE), "\n"),
    (re.compile(r"<[^>]+>"), ""),
    (re.compile(r"[ \t]+\n"), "\n"),
    (re.compile(r"\n{3,}"), "\n\n"),
)


def strip_boilerplate(html: Optional[str]) -> str:
    """Remove scripts, ``@UUID[...]`` link tokens and ``data-*`` attributes."""
    text = str(html or "")
    text = _SCRIPT_RE.sub("", text)
    text = _UUID_LINK_RE.sub("", text)
    text = _DATA_ATTR_RE.sub("", text)
    return text.strip()


def html_to_markdown(html: Optional[str]) -> str:
    """Convert narrative HTML into Markdown. Pure and deterministic."""
    text = strip_boilerplate(html)
    for pattern, replacement in _REPLACEMENTS:
        text = pattern.sub(replacement, text)
    return text.strip()


def synthesize_description(primary: Optional[str], fallbacks: Iterable[Optional[str]] = ()) -> str:
    """Markdown for the first of ``primary``/``fallbacks`` with content."""
    for candidate in (primary, *fallbacks):
        text = str(candidate or "").strip()
        if text:
            return html_to_markdown(text)
    return ""
