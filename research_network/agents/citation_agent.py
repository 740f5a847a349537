import logging
import re
from datetime import datetime
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from research_network.core.types import Citation, Finding
from research_network.core.utils import URL_PATTERN, extract_url, truncate

logger = logging.getLogger(__name__)

MAX_CITATIONS = 20
MAX_TITLE_LENGTH = 100

_LIST_MARKER = re.compile(r"^\d+[.)]\s*")


def derive_title(source: str) -> str:
    """Readable title for a source string or bare URL."""
    text = source.strip()
    if URL_PATTERN.fullmatch(text):
        parsed = urlparse(text)
        host = parsed.netloc[4:] if parsed.netloc.startswith("www.") else parsed.netloc
        path = parsed.path.strip("/").split("/")[-1] if parsed.path.strip("/") else ""
        title = f"{host}: {path.replace('-', ' ').replace('_', ' ')}" if path else host
        return truncate(title, MAX_TITLE_LENGTH)
    # Drop an inline URL and leftover list markers from titles like "1. Foo (https://...)".
    title = URL_PATTERN.sub("", text).strip(" -*()[]:.\t")
    title = _LIST_MARKER.sub("", title)
    return truncate(title or text, MAX_TITLE_LENGTH)


class CitationAgent:
    """
    Turns the sources and links behind a session's findings into citations.

    Entries are collected from every finding's search payload (links first,
    then sources), deduplicated by exact string in first-seen order, and
    capped at MAX_CITATIONS.
    """

    def __init__(self, max_citations: int = MAX_CITATIONS):
        self.max_citations = max_citations

    def collect_sources(self, findings: List[Finding]) -> List[Tuple[str, Finding]]:
        seen = set()
        entries: List[Tuple[str, Finding]] = []
        for finding in findings:
            if finding.search is None:
                continue
            for source in [*finding.search.links, *finding.search.sources]:
                source = (source or "").strip()
                if not source or source in seen:
                    continue
                seen.add(source)
                entries.append((source, finding))
        return entries

    def build_citations(self, session_id: str, findings: List[Finding]) -> List[Citation]:
        entries = self.collect_sources(findings)[:self.max_citations]
        accessed = datetime.now().strftime("%Y-%m-%d")
        citations = []
        for position, (source, finding) in enumerate(entries, start=1):
            url: Optional[str] = extract_url(source)
            title = derive_title(source)
            text = f"[{position}] {title}."
            if url:
                text += f" Available at: {url}."
            text += f" Accessed {accessed}."
            citations.append(Citation(
                session_id=session_id,
                finding_id=finding.id,
                position=position,
                source_title=title,
                citation_text=text,
                source_url=url,
            ))
        logger.info("Built %d citations for session %s", len(citations), session_id)
        return citations
