"""Heuristic extraction of structured records from free-form model answers.

The model is asked to answer in "Myth: ... / Fact: ..." pairs or in numbered
research paragraphs, but nothing enforces that. These helpers make a
best-effort pass over whatever text comes back:

- :func:`extract_myths` scans line by line, keeping at most one open record.
- :func:`extract_research` splits on blank lines and turns each long enough
  paragraph into a research entry, resolving a link from URLs, DOIs or PubMed
  IDs found in it.

Neither function raises on odd input; unstructured text yields fewer (or
approximate) records.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from functools import reduce
from typing import Any, Dict, List, Optional, Tuple

MAX_MYTHS = 10
MAX_RESEARCH = 8
MIN_SECTION_LENGTH = 50
MAX_SUMMARY_LENGTH = 300

DEFAULT_RESEARCH_TITLE = "Research Finding"
RESEARCH_SOURCE_LABEL = "Recent Research"

# Used when a paragraph carries no link of its own. These do not point at the
# paragraph's study.
SAMPLE_RESEARCH_URLS = (
    "https://pubmed.ncbi.nlm.nih.gov/38234567/",
    "https://pubmed.ncbi.nlm.nih.gov/38123456/",
    "https://pubmed.ncbi.nlm.nih.gov/38345678/",
    "https://pubmed.ncbi.nlm.nih.gov/38456789/",
    "https://pubmed.ncbi.nlm.nih.gov/38567890/",
    "https://pubmed.ncbi.nlm.nih.gov/38678901/",
    "https://pubmed.ncbi.nlm.nih.gov/38789012/",
    "https://pubmed.ncbi.nlm.nih.gov/38890123/",
)

_MYTH_PREFIX_RE = re.compile(r"myth\s*\d*:?\s*", re.IGNORECASE)
_FACT_PREFIX_RE = re.compile(r"fact:?\s*", re.IGNORECASE)
_NUMBERING_RE = re.compile(r"^\d+\.\s*")
_URL_RE = re.compile(r"(https?://[^\s]+)")
_DOI_RE = re.compile(r"doi:\s*([^\s]+)", re.IGNORECASE)
_PUBMED_RE = re.compile(r"pubmed[:\s]+(\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class MythRecord:
    myth: str
    fact: str = ""
    explanation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ResearchRecord:
    title: str
    summary: str
    date: str
    source: str
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_MythState = Tuple[Tuple[MythRecord, ...], Optional[MythRecord]]


def _myth_step(state: _MythState, line: str) -> _MythState:
    done, current = state
    lowered = line.lower()

    if "myth" in lowered and ":" in line:
        if current is not None:
            done = done + (current,)
        return done, MythRecord(myth=_MYTH_PREFIX_RE.sub("", line, count=1).strip())

    if current is None:
        # Nothing open: stray fact or prose lines are dropped.
        return state

    if "fact" in lowered and ":" in line:
        return done, replace(current, fact=_FACT_PREFIX_RE.sub("", line, count=1).strip())

    if line.strip() and "myth" not in lowered and "fact" not in lowered:
        return done, replace(current, explanation=current.explanation + line.strip() + " ")

    return state


def extract_myths(text: str) -> List[MythRecord]:
    """Split a model answer into myth/fact records (at most ``MAX_MYTHS``).

    Explanations keep the trailing space added after each accumulated line;
    renderers are expected to strip it.
    """
    initial: _MythState = ((), None)
    done, current = reduce(_myth_step, (text or "").split("\n"), initial)
    if current is not None:
        done = done + (current,)
    return list(done[:MAX_MYTHS])


def resolve_research_url(section: str) -> Optional[str]:
    """Return the first link found in ``section``: URL, then DOI, then PubMed ID."""
    url_match = _URL_RE.search(section)
    if url_match:
        return url_match.group(1)
    doi_match = _DOI_RE.search(section)
    if doi_match:
        return f"https://doi.org/{doi_match.group(1)}"
    pubmed_match = _PUBMED_RE.search(section)
    if pubmed_match:
        return f"https://pubmed.ncbi.nlm.nih.gov/{pubmed_match.group(1)}/"
    return None


def _truncate_summary(summary: str) -> str:
    if len(summary) > MAX_SUMMARY_LENGTH:
        return summary[:MAX_SUMMARY_LENGTH] + "..."
    return summary


def _research_record(section: str, index: int, date: str) -> ResearchRecord:
    lines = section.split("\n")
    title = _NUMBERING_RE.sub("", lines[0]).strip() or DEFAULT_RESEARCH_TITLE
    summary = " ".join(lines[1:]).strip() or section
    url = resolve_research_url(section) or SAMPLE_RESEARCH_URLS[index % len(SAMPLE_RESEARCH_URLS)]
    return ResearchRecord(
        title=title,
        summary=_truncate_summary(summary),
        date=date,
        source=RESEARCH_SOURCE_LABEL,
        url=url,
    )


def extract_research(text: str, now: Optional[datetime] = None) -> List[ResearchRecord]:
    """Turn blank-line separated paragraphs into research records.

    Paragraphs that are blank or no longer than ``MIN_SECTION_LENGTH``
    characters are skipped. ``date`` is the extraction date in the locale's
    date format (``now`` defaults to the current local time); it is not read
    from the text.
    """
    date = (now or datetime.now()).strftime("%x")
    sections = [s for s in (text or "").split("\n\n") if s.strip() and len(s) > MIN_SECTION_LENGTH]

    def step(records: Tuple[ResearchRecord, ...], section: str) -> Tuple[ResearchRecord, ...]:
        return records + (_research_record(section, len(records), date),)

    records = reduce(step, sections, ())
    return list(records[:MAX_RESEARCH])
