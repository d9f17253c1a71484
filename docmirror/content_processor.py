import logging
import re
from datetime import datetime
from urllib.parse import urldefrag, urljoin

from bs4 import BeautifulSoup, Comment
from markdownify import markdownify as md_convert

from docmirror.models import Link

logger = logging.getLogger(__name__)

REMOVED_TAGS = ["script", "style", "nav", "footer", "header"]

CODE_LANGUAGES = {
    "javascript": "javascript",
    "js": "javascript",
    "typescript": "typescript",
    "ts": "typescript",
    "python": "python",
    "py": "python",
    "java": "java",
    "cpp": "cpp",
    "c++": "cpp",
    "csharp": "csharp",
    "c#": "csharp",
    "php": "php",
    "ruby": "ruby",
    "go": "go",
    "rust": "rust",
    "sql": "sql",
    "html": "html",
    "css": "css",
    "scss": "scss",
    "json": "json",
    "xml": "xml",
    "yaml": "yaml",
    "yml": "yaml",
    "bash": "bash",
    "shell": "bash",
    "sh": "bash",
}

_LANGUAGE_CLASS_RE = re.compile(r"(?:language-|lang-)([a-zA-Z0-9+#-]+)")


def normalize_url(href, base):
    """Resolve a link against the page it was found on and drop any fragment."""
    return urldefrag(urljoin(base, href.strip()))[0]


def extract_links_from_html(html, origin):
    """
    Extract all links from HTML content and normalize URLs.

    Finds all anchor tags in the HTML, extracts their href attributes,
    and resolves relative URLs using the origin URL. Document order is kept.

    Args:
        html (str): The HTML content to extract links from.
        origin (str): The origin URL for resolving relative links.

    Returns:
        list: Link objects with text and absolute href.
    """
    soup = BeautifulSoup(html, "html.parser")
    links = []
    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if not href.startswith("#"):
            href = urljoin(origin, href)
        links.append(Link(text=a.get_text().strip(), href=href))
    return links


def detect_code_language(class_name):
    """
    Guess a code block's language from its CSS classes.

    Args:
        class_name (str): Space separated class attribute.

    Returns:
        str: A language tag for the fence, or "" when unknown.
    """
    if not class_name:
        return ""
    lowered = class_name.lower()
    match = _LANGUAGE_CLASS_RE.search(lowered)
    if match:
        return CODE_LANGUAGES.get(match.group(1), match.group(1))
    for token in re.split(r"[\s_]+", lowered):
        if token in CODE_LANGUAGES:
            return CODE_LANGUAGES[token]
    return ""


def clean_html(html, base_url):
    """
    Remove page chrome and resolve relative URLs in an HTML fragment.

    Comments and script/style/nav/footer/header elements are dropped,
    image and link targets are made absolute, and empty or "#" anchors
    are replaced by their text. Link extraction and Markdown conversion
    both work on this cleaned fragment.

    Args:
        html (str): The HTML fragment.
        base_url (str): URL the fragment was taken from.

    Returns:
        str: The cleaned HTML.
    """
    soup = BeautifulSoup(html, "html.parser")
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    for tag in soup.find_all(REMOVED_TAGS):
        tag.decompose()

    for img in soup.find_all("img", src=True):
        src = img["src"].strip()
        if src and not src.startswith(("http", "data:")):
            img["src"] = urljoin(base_url, src)

    for a in soup.find_all("a"):
        href = (a.get("href") or "").strip()
        if not href or href == "#":
            a.unwrap()
        elif not href.startswith(("http", "#", "mailto:")):
            a["href"] = urljoin(base_url, href)
    return str(soup)


def _code_language(pre):
    code = pre.find("code")
    classes = (code or pre).get("class") or []
    return detect_code_language(" ".join(classes))


class MarkdownConverter:
    """
    Convert rendered page bodies to Markdown documents.

    HTML is cleaned with BeautifulSoup, converted with markdownify, then
    tidied so every document has consistent spacing.
    """

    def __init__(self, heading_style="ATX", bullets="-"):
        self.heading_style = heading_style
        self.bullets = bullets

    def to_markdown(self, html, base_url):
        """
        Convert an HTML fragment to Markdown.

        Relative links and images are resolved against base_url. A failed
        conversion returns the raw HTML behind an error marker instead of
        raising.

        Args:
            html (str): The HTML to convert.
            base_url (str): URL the fragment was taken from.

        Returns:
            str: Markdown text ending with a single newline, or "" for empty input.
        """
        if not html or not isinstance(html, str):
            return ""
        try:
            cleaned = self.preprocess_html(html, base_url)
            markdown = md_convert(
                cleaned,
                heading_style=self.heading_style,
                bullets=self.bullets,
                code_language_callback=_code_language,
            )
            return self.postprocess_markdown(markdown)
        except Exception as e:
            logger.error(f"HTML to Markdown conversion failed for {base_url}: {e}")
            return f"<!-- conversion failed: {e} -->\n\n{html}"

    def preprocess_html(self, html, base_url):
        return clean_html(html, base_url)

    def postprocess_markdown(self, markdown):
        # Trailing whitespace only; leading indentation carries list nesting and code
        lines = [line.rstrip() for line in markdown.split("\n")]
        markdown = re.sub(r"\n{3,}", "\n\n", "\n".join(lines))
        return markdown.strip("\n") + "\n"

    def create_document(self, title, source_url, markdown, updated=None):
        """
        Assemble the final Markdown file for a content page.

        Args:
            title (str): Page title, used as the top heading when present.
            source_url (str): The page URL, recorded in the header.
            markdown (str): The converted page body.
            updated (datetime, optional): Timestamp for the header. Defaults to now.

        Returns:
            str: The complete document.
        """
        stamp = (updated or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
        parts = []
        if title:
            parts.append(f"# {title}\n\n")
        parts.append(f"> Source: {source_url}\n")
        parts.append(f"> Updated: {stamp}\n\n")
        parts.append(markdown or "")
        return "".join(parts)
