"""Container documents (journal-like records made of pages).

Descriptions on these live in an embedded page collection rather than in an
attribute tree, so the resolvers do not apply. Writing prefers an existing
text page, then creates one; documents without pages take the legacy
top-level ``content`` field.
"""

import logging
from typing import Any, List, Optional

from fieldscribe.paths import get_property
from fieldscribe.protocols import ContainerDocument

logger = logging.getLogger(__name__)

TEXT_PAGE_TYPE = "text"
PAGE_DOCUMENT_NAME = "JournalEntryPage"
HTML_FORMAT = 1


def list_pages(journal: ContainerDocument) -> Optional[List[Any]]:
    """Pages of ``journal`` as a list, or None when it has no page collection."""
    pages = get_property(journal, "pages")
    if pages is None:
        return None
    contents = getattr(pages, "contents", None)
    if contents is not None:
        return list(contents)
    if isinstance(pages, (list, tuple)):
        return list(pages)
    return []


def _page_text(page: Any) -> str:
    text = get_property(page, "text.content")
    if text is None:
        text = get_property(page, "text")
    return text if isinstance(text, str) else ""


def find_text_page(pages: List[Any]) -> Optional[Any]:
    """First page typed ``text``, else the first page with string content."""
    for page in pages:
        if get_property(page, "type") == TEXT_PAGE_TYPE:
            return page
    for page in pages:
        if isinstance(get_property(page, "text.content"), str):
            return page
    return None


async def write_journal_description(journal: ContainerDocument, html: Any) -> str:
    """Write ``html`` as the journal's description.

    Returns which target was used: ``"page"``, ``"new_page"`` or
    ``"content"``. Host errors propagate.
    """
    safe = "" if html is None else str(html)
    pages = list_pages(journal)
    if pages is not None:
        target = find_text_page(pages)
        if target is not None:
            await target.update({"text": {"content": safe, "format": HTML_FORMAT}})
            logger.debug("Updated text page on journal %s", get_property(journal, "id"))
            return "page"
        await journal.create_embedded_documents(
            PAGE_DOCUMENT_NAME,
            [
                {
                    "name": "Description",
                    "type": TEXT_PAGE_TYPE,
                    "text": {"content": safe, "format": HTML_FORMAT},
                }
            ],
        )
        logger.debug("Created description page on journal %s", get_property(journal, "id"))
        return "new_page"
    await journal.update({"content": safe})
    return "content"


def journal_text(journal: ContainerDocument) -> str:
    """All page text joined with blank lines (legacy ``content`` if no pages)."""
    pages = list_pages(journal)
    if pages is None:
        content = get_property(journal, "content")
        return content if isinstance(content, str) else ""
    texts = [t for t in (_page_text(p) for p in pages) if t]
    return "\n\n".join(texts)
