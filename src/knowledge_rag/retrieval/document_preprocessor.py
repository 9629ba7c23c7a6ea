"""knowledge_rag.retrieval.document_preprocessor

Text extraction for the supported binary and markup formats.

This module contains helpers for:
- sanitising HTML (dropping navigation, footer, sidebar and header regions)
  and converting it to plain text
- extracting text from PDF bytes

Functions
---------
preprocess_html
    Remove unwanted tags and CSS-selected regions from an HTML document.
html_to_text
    Convert (sanitised) HTML to normalised plain text.
pdf_bytes_to_text
    Extract the text of every page of a PDF.
"""

import io
import re

from bs4 import BeautifulSoup, UnicodeDammit
from pypdf import PdfReader
from pypdf.errors import PdfReadError

DEFAULT_REMOVE_TAGS = ["script", "style", "noscript", "template", "svg"]
DEFAULT_SKIP_SELECTORS = ["nav", "footer", ".sidebar", "header"]
BLOCK_TAGS = [
    "p", "div", "li", "ul", "ol", "pre", "blockquote", "section", "article",
    "h1", "h2", "h3", "h4", "h5", "h6", "tr", "table", "dd", "dt",
]

_BLANK_LINES = re.compile(r"\n\s*\n+")
_INLINE_SPACE = re.compile(r"[ \t\r\f\v]+")


def preprocess_html(
        html: str | bytes,
        tags: list[str] = None,
        selectors: list[str] = None) -> BeautifulSoup:
    """Parse an HTML document and remove unwanted elements.

    Parameters
    ----------
    html : str or bytes
        HTML content. Bytes are decoded with :class:`bs4.UnicodeDammit`.
    tags : list[str], optional
        Tag names to remove entirely. Defaults to scripts, styles and similar
        non-content tags.
    selectors : list[str], optional
        CSS selectors whose matches are removed (e.g., ``["nav", ".sidebar"]``).
        Defaults to navigation, footer, sidebar and header regions.

    Returns
    -------
    BeautifulSoup
        The sanitised document tree.
    """
    dammit = UnicodeDammit(html, smart_quotes_to="unicode")
    fixed_html = dammit.unicode_markup or ""

    soup = BeautifulSoup(fixed_html, "html.parser")

    for tag in soup(tags if tags is not None else DEFAULT_REMOVE_TAGS):
        tag.decompose()

    for selector in (selectors if selectors is not None else DEFAULT_SKIP_SELECTORS):
        for element in soup.select(selector):
            element.decompose()

    return soup


def html_to_text(
        html: str | bytes,
        tags: list[str] = None,
        selectors: list[str] = None) -> str:
    """Convert an HTML page to plain text.

    Block boundaries become newlines, runs of inline whitespace collapse to a
    single space and consecutive blank lines collapse to one.

    Examples
    --------
    >>> html_to_text("<nav>Menu</nav><p>Hello   <b>world</b></p>")
    'Hello world'
    """
    soup = preprocess_html(html, tags=tags, selectors=selectors)

    for br in soup.find_all("br"):
        br.replace_with("\n")
    for element in soup.find_all(BLOCK_TAGS):
        element.append("\n")

    text = soup.get_text()
    lines = [_INLINE_SPACE.sub(" ", line).strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = _BLANK_LINES.sub("\n\n", text)
    return text.strip()


def pdf_bytes_to_text(data: bytes) -> str:
    """Extract text from a PDF document.

    Parameters
    ----------
    data : bytes
        Raw PDF bytes.

    Returns
    -------
    str
        Page texts joined by newlines, in page order. Pages without
        extractable text contribute nothing.

    Raises
    ------
    ValueError
        If ``data`` is not a readable PDF.
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, OSError) as exc:
        raise ValueError(f"Could not read PDF: {exc}") from exc

    return "\n".join(text for text in pages if text.strip())


__all__ = [
    "preprocess_html",
    "html_to_text",
    "pdf_bytes_to_text",
    "DEFAULT_SKIP_SELECTORS",
]
