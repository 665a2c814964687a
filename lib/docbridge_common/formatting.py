"""
HTML normalization for imported documents.

The source service renders a complete HTML document (doctype, <html>, <head>)
while the content record only stores the body fragment. This module reduces
the document to the contents of <body>, optionally drops the single <div>
the renderer wraps around its output, and sanitizes plain-text fields.
"""

import logging
import re
from html.parser import HTMLParser

from bs4 import BeautifulSoup

from docbridge_common.result import ErrorKind, Ok, Result, err

logger = logging.getLogger(__name__)

OPENING_BODY_TAG = re.compile(r"^\s*<body\b[^>]*>\s*", re.IGNORECASE)
CLOSING_BODY_TAG = re.compile(r"\s*</body\s*>\s*$", re.IGNORECASE)

OPENING_WRAPPER_DIV = re.compile(r"^\s*<div>", re.IGNORECASE)
CLOSING_WRAPPER_DIV = re.compile(r"</div>\s*$", re.IGNORECASE)

# Elements that never have a closing tag
VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

CONTROL_CHARACTERS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


class StructuralCheck(HTMLParser):
    """
    Tokenizer pass that flags end tags without a matching open element.

    An end tag may implicitly close elements opened after its match (an open
    <p> closed by </div>, for example), which is tolerated. An end tag with no
    open element of the same name anywhere on the stack is fatal. Unclosed
    elements at the end of the input are not.

    Also records whether the input carries its own document shell.
    """

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.stack: list[str] = []
        self.errors: list[str] = []
        self.has_document_shell = False

    def handle_decl(self, decl):
        if decl.lower().startswith("doctype"):
            self.has_document_shell = True

    def handle_starttag(self, tag, attrs):
        if tag in ("html", "body"):
            self.has_document_shell = True
        if tag not in VOID_ELEMENTS:
            self.stack.append(tag)

    def handle_startendtag(self, tag, attrs):
        pass

    def handle_endtag(self, tag):
        if tag in VOID_ELEMENTS:
            return
        if tag not in self.stack:
            self.errors.append(f"Unexpected end tag: {tag}")
            return
        while self.stack:
            if self.stack.pop() == tag:
                break


def _check(html: str) -> StructuralCheck:
    checker = StructuralCheck()
    checker.feed(html)
    checker.close()
    return checker


def find_structural_errors(html: str) -> list[str]:
    """Return fatal structural errors found in ``html`` (empty if none)."""
    return _check(html).errors


def is_full_document(html: str) -> bool:
    """True when ``html`` carries its own document shell (doctype, <html> or <body>)."""
    return _check(html).has_document_shell


def get_body_contents(html: str) -> str:
    """
    Reduce a full HTML document to the inner markup of its <body>.

    Args:
        html: Full HTML document (or a bare fragment)

    Returns:
        Body inner markup, or "" when there is no body or the markup is
        structurally invalid
    """
    errors = find_structural_errors(html)
    if errors:
        logger.warning(f"Discarding structurally invalid HTML: {errors[:3]}")
        return ""

    soup = BeautifulSoup(html, "lxml")
    if soup.body is None:
        return ""

    body = str(soup.body)
    body = OPENING_BODY_TAG.sub("", body, count=1)
    body = CLOSING_BODY_TAG.sub("", body, count=1)

    return body


def strip_wrapping_div(html: str) -> str:
    """
    Remove one attribute-less <div> that wraps the entire fragment.

    Fragments with attributed divs, sibling elements outside the div, or
    no matching close tag are returned unchanged.
    """
    if not OPENING_WRAPPER_DIV.search(html) or not CLOSING_WRAPPER_DIV.search(html):
        return html

    soup = BeautifulSoup(html, "html.parser")
    nodes = [
        node
        for node in soup.contents
        if not (isinstance(node, str) and not node.strip())
    ]

    if len(nodes) != 1:
        return html

    wrapper = nodes[0]
    if getattr(wrapper, "name", None) != "div" or wrapper.attrs:
        return html

    return wrapper.decode_contents().strip()


def sanitize_text_field(text: str | None) -> str:
    """
    Reduce a value to plain single-line text.

    Strips tags, removes control characters, and collapses whitespace.
    """
    if not text:
        return ""

    plain = BeautifulSoup(text, "html.parser").get_text()
    plain = CONTROL_CHARACTERS.sub("", plain)
    return re.sub(r"\s+", " ", plain).strip()


class HtmlBodyExtractor:
    """Pre-persist content filter: full document in, body fragment out."""

    def __init__(self, strip_wrapper: bool = True):
        """
        Args:
            strip_wrapper: Remove the single <div> the renderer wraps around
                the document body
        """
        self.strip_wrapper = strip_wrapper

    def extract(self, full_html: str | bytes) -> Result[str]:
        """
        Extract the body fragment from a rendered document.

        Args:
            full_html: Rendered document as text or UTF-8 bytes

        Returns:
            Ok with the fragment ("" for nothing to import), or Err when
            bytes cannot be decoded as UTF-8
        """
        if isinstance(full_html, bytes):
            try:
                full_html = full_html.decode("utf-8")
            except UnicodeDecodeError as e:
                return err(
                    ErrorKind.EXTRACTION,
                    "invalid_encoding",
                    "The document content is not valid UTF-8",
                    position=e.start,
                )

        full_html = full_html or ""
        fragment = get_body_contents(full_html)

        # The renderer's wrapper only exists on full documents; bare fragments pass through
        if self.strip_wrapper and fragment and is_full_document(full_html):
            fragment = strip_wrapping_div(fragment)

        return Ok(fragment)
