"""
projects/similarity.py

Title similarity used to suggest linking a newly opened document to an
existing project.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional, Union

from models import Project
from settings import DEFAULT_GENERIC_TITLES
from utils import levenshtein_distance, parse_iso

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class SimilarProject:
    """A project whose name resembles a document title."""
    project_id: str
    project_name: str
    created_at: str


def normalize_title(title: str) -> str:
    """Lowercase and drop all whitespace."""
    return re.sub(r"\s+", "", (title or "").lower())


def is_generic_title(title: str, generic_titles: Optional[Iterable[str]] = None) -> bool:
    titles = DEFAULT_GENERIC_TITLES if generic_titles is None else generic_titles
    normalized = normalize_title(title)
    return any(normalized == normalize_title(t) for t in titles)


def title_similarity(a: str, b: str) -> float:
    """``1 - levenshtein / max_len`` over normalized titles."""
    na, nb = normalize_title(a), normalize_title(b)
    max_len = max(len(na), len(nb))
    if max_len == 0:
        return 1.0
    return 1.0 - levenshtein_distance(na, nb) / max_len


def is_similar_title(a: str, b: str, threshold: float = 0.7,
                     generic_titles: Optional[Iterable[str]] = None) -> bool:
    """
    Decide whether two titles name the same deck.

    Empty titles and generic default titles ("Untitled presentation") never
    match anything.
    """
    if not a or not b:
        return False
    if is_generic_title(a, generic_titles) or is_generic_title(b, generic_titles):
        return False
    na, nb = normalize_title(a), normalize_title(b)
    if not na or not nb:
        return False
    if na == nb:
        return True
    return title_similarity(a, b) >= threshold


def find_similar(title: str,
                 all_projects: Union[Mapping[str, Project], Iterable[Project]],
                 threshold: float = 0.7,
                 generic_titles: Optional[Iterable[str]] = None) -> List[SimilarProject]:
    """
    Projects whose name is similar to ``title``, newest ``created_at`` first.

    Args:
        title: The document title.
        all_projects: ``{project_id: Project}`` or an iterable of Project.
        threshold: Minimum similarity in ``[0, 1]``.
        generic_titles: Denylist; defaults to DEFAULT_GENERIC_TITLES.
    """
    projects = all_projects.values() if isinstance(all_projects, Mapping) else all_projects
    generic = list(generic_titles) if generic_titles is not None else None

    matches = [
        SimilarProject(p.project_id, p.project_name, p.created_at)
        for p in projects
        if is_similar_title(title, p.project_name, threshold, generic)
    ]
    matches.sort(key=lambda m: parse_iso(m.created_at) or _EPOCH, reverse=True)
    return matches
