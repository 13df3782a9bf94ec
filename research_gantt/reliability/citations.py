import html
import re
from dataclasses import dataclass
from urllib.parse import urlparse

from research_gantt.documents import split_corpus

SAFE_URL_SCHEMES = {"http", "https"}

HTML_LINK_RE = re.compile(r"<a\s[^>]*?href\s*=\s*[\"']([^\"']+)[\"'][^>]*>(.*?)</a>", re.IGNORECASE | re.DOTALL)
MARKDOWN_LINK_RE = re.compile(r"(?<!!)\[([^\]]+)\]\(\s*<?([^)\s>]+)>?(?:\s+\"[^\"]*\")?\s*\)")
PARAGRAPH_BOUNDARY_RE = re.compile(r"\n\s*\n|</?(?:p|li|ul|ol|h[1-6]|tr|td|table)\b[^>]*>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")


@dataclass
class Citation:
    source: str
    url: str | None
    tier: str


def is_safe_url(url: str | None) -> bool:
    if not url:
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme.lower() in SAFE_URL_SCHEMES and bool(parsed.netloc)


def safe_url_or_none(url: str | None) -> str | None:
    return url.strip() if is_safe_url(url) else None


def _phrase_pattern(phrase: str) -> re.Pattern[str] | None:
    words = [re.escape(w) for w in phrase.split()]
    if not words:
        return None
    return re.compile(r"\s+".join(words), re.IGNORECASE)


def _paragraph_span(text: str, start: int, end: int, lo: int, hi: int) -> tuple[int, int]:
    para_start, para_end = lo, hi
    for boundary in PARAGRAPH_BOUNDARY_RE.finditer(text, lo, hi):
        if boundary.end() <= start:
            para_start = boundary.end()
        elif boundary.start() >= end:
            para_end = boundary.start()
            break
    return para_start, para_end


def _nearest(matches: list[re.Match[str]], start: int, end: int) -> re.Match[str] | None:
    def distance(m: re.Match[str]) -> int:
        if m.end() <= start:
            return start - m.end()
        if m.start() >= end:
            return m.start() - end
        return 0

    return min(matches, key=distance) if matches else None


def _link_text(raw: str) -> str:
    return html.unescape(_TAG_RE.sub("", raw)).strip()


def _locate(corpus: str, phrase: str) -> tuple[str, re.Match[str], int, int] | None:
    pattern = _phrase_pattern(phrase or "")
    if pattern is None:
        return None
    for filename, lo, hi in split_corpus(corpus):
        match = pattern.search(corpus, lo, hi)
        if match:
            return filename, match, lo, hi
    return None


def find_phrase(corpus: str, phrase: str) -> str | None:
    """Filename of the first block containing ``phrase`` verbatim (whitespace-insensitive)."""
    located = _locate(corpus, phrase)
    return located[0] if located else None


def resolve_citation(corpus: str, phrase: str) -> Citation | None:
    """Apply the source hierarchy to a phrase found in the corpus.

    HTML ``<a>`` link in the same paragraph first, then a Markdown link, then
    the filename of the wrapped block the phrase came from (url None).
    """
    located = _locate(corpus, phrase)
    if located is None:
        return None
    filename, match, lo, hi = located
    start, end = match.start(), match.end()
    para_start, para_end = _paragraph_span(corpus, start, end, lo, hi)

    html_links = [m for m in HTML_LINK_RE.finditer(corpus, para_start, para_end)]
    best = _nearest(html_links, start, end)
    if best is not None:
        source = _link_text(best.group(2)) or html.unescape(best.group(1))
        return Citation(source=source, url=safe_url_or_none(html.unescape(best.group(1))), tier="html")

    md_links = [m for m in MARKDOWN_LINK_RE.finditer(corpus, para_start, para_end)]
    best = _nearest(md_links, start, end)
    if best is not None:
        return Citation(source=best.group(1).strip(), url=safe_url_or_none(best.group(2)), tier="markdown")

    return Citation(source=filename, url=None, tier="file")


def corpus_urls(corpus: str) -> set[str]:
    """Every safe href or Markdown link target present in the corpus."""
    urls = {safe_url_or_none(html.unescape(m.group(1))) for m in HTML_LINK_RE.finditer(corpus)}
    urls |= {safe_url_or_none(m.group(2)) for m in MARKDOWN_LINK_RE.finditer(corpus)}
    urls.discard(None)
    return urls
