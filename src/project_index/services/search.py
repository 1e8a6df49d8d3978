"""Fuzzy search and recency-aware ordering of the project list.

Matching is position-independent: a field's similarity is the best
``SequenceMatcher`` ratio between the query and any same-length window of the
field, so "bill" scores the same at the start or the end of a name. Fields
are weighted (name 0.7, description 0.3); a project matches when at least one
field clears the threshold, and its score combines the matching fields as
``1 - prod((1 - s) ** w)``.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from difflib import SequenceMatcher

from src.project_index.schemas.project import Project, ProjectSections

NAME_WEIGHT = 0.7
DESCRIPTION_WEIGHT = 0.3
DEFAULT_THRESHOLD = 0.6
DEFAULT_RECENT_COUNT = 5

# Keeps a perfect field match from zeroing out the product
_EPSILON = 1e-3


@dataclass(frozen=True)
class SearchMatch:
    project: Project
    score: float


def field_similarity(query: str, text: str | None) -> float:
    """Best similarity in [0, 1] between ``query`` and any window of ``text``."""
    if not text:
        return 0.0
    query = query.casefold()
    text = text.casefold()
    if query in text:
        return 1.0

    window = len(query)
    matcher = SequenceMatcher(None, autojunk=False)
    # seq2 is the side SequenceMatcher caches, so the query goes there
    matcher.set_seq2(query)
    if len(text) <= window:
        matcher.set_seq1(text)
        return matcher.ratio()

    best = 0.0
    for start in range(len(text) - window + 1):
        matcher.set_seq1(text[start : start + window])
        if matcher.real_quick_ratio() <= best or matcher.quick_ratio() <= best:
            continue
        best = max(best, matcher.ratio())
        if best == 1.0:
            break
    return best


def score_project(
    project: Project, query: str, threshold: float = DEFAULT_THRESHOLD
) -> float | None:
    """Weighted relevance of a project for ``query``, or None if it doesn't match."""
    distance = 1.0
    matched = False
    for weight, text in ((NAME_WEIGHT, project.name), (DESCRIPTION_WEIGHT, project.description)):
        similarity = field_similarity(query, text)
        if similarity >= threshold:
            matched = True
            distance *= max(1.0 - similarity, _EPSILON) ** weight
    return 1.0 - distance if matched else None


def search_projects(
    projects: Sequence[Project],
    query: str,
    threshold: float = DEFAULT_THRESHOLD,
) -> list[SearchMatch]:
    """Matching projects by descending score; ties keep backend order."""
    query = query.strip()
    if not query:
        return []
    matches = []
    for project in projects:
        score = score_project(project, query, threshold)
        if score is not None:
            matches.append(SearchMatch(project=project, score=score))
    # sorted() is stable, so equal scores stay in backend order
    return sorted(matches, key=lambda m: m.score, reverse=True)


def build_sections(
    projects: Sequence[Project],
    recent_ids: Sequence[str],
    recent_count: int = DEFAULT_RECENT_COUNT,
) -> ProjectSections:
    """Split into a recent section (recency order) and the remainder (backend order).

    Recent IDs that no longer exist are skipped; ``recent_count`` of 0
    disables the recent section.
    """
    by_id = {p.id: p for p in projects}
    recent: list[Project] = []
    for project_id in recent_ids:
        if len(recent) >= recent_count:
            break
        project = by_id.get(project_id)
        if project is not None and project not in recent:
            recent.append(project)

    recent_set = {p.id for p in recent}
    remainder = [p for p in projects if p.id not in recent_set]
    return ProjectSections(recent=recent, projects=remainder, searching=False)


def display_sections(
    projects: Sequence[Project],
    query: str,
    recent_ids: Sequence[str],
    recent_count: int = DEFAULT_RECENT_COUNT,
    threshold: float = DEFAULT_THRESHOLD,
) -> ProjectSections:
    """The list a UI shows: sectioned when idle, one ranked list while searching."""
    if not query.strip():
        return build_sections(projects, recent_ids, recent_count)
    matches = search_projects(projects, query, threshold)
    return ProjectSections(recent=[], projects=[m.project for m in matches], searching=True)
