"""Candidate scoring and ranking.

Deterministic weighted sum over a path's text:

    biography/bio as a whole segment   +1000
    contains "descr"                    +500
    contains "summary"                  +120
    contains "notes"                    +100
    minus the number of segments

The segment penalty makes the shorter path win among equally-keyworded
candidates. Ties after that keep declaration/discovery order.
"""

import re
from typing import Iterable, List

from fieldscribe.types import Candidate

BIO_WEIGHT = 1000
DESCRIPTION_WEIGHT = 500
SUMMARY_WEIGHT = 120
NOTES_WEIGHT = 100

_BIO_SEGMENT = re.compile(r"(^|\.)(biography|bio)(\.|$)", re.IGNORECASE)
_DESCRIPTION = re.compile(r"descr", re.IGNORECASE)
_SUMMARY = re.compile(r"summary", re.IGNORECASE)
_NOTES = re.compile(r"notes", re.IGNORECASE)


def score(path: str) -> int:
    """Score a path. Defined for every string, including the empty one."""
    text = str(path or "")
    total = 0
    if _BIO_SEGMENT.search(text):
        total += BIO_WEIGHT
    if _DESCRIPTION.search(text):
        total += DESCRIPTION_WEIGHT
    if _SUMMARY.search(text):
        total += SUMMARY_WEIGHT
    if _NOTES.search(text):
        total += NOTES_WEIGHT
    return total - len(text.split("."))


def unique(paths: Iterable[str]) -> List[str]:
    """Deduplicate keeping the first occurrence."""
    return list(dict.fromkeys(p for p in paths if p))


def score_candidates(paths: Iterable[str]) -> List[Candidate]:
    """Deduplicate, score and rank paths into Candidates."""
    candidates = [Candidate(path=p, score=score(p), order=i) for i, p in enumerate(unique(paths))]
    # sorted() is stable, so equal scores keep their order.
    return sorted(candidates, key=lambda c: -c.score)


def rank(paths: Iterable[str]) -> List[str]:
    """Rank paths by descending score; ties keep their original order."""
    return [c.path for c in score_candidates(paths)]
