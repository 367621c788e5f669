"""Rendering of ranked candidates into result strings."""

from __future__ import annotations

from typing import Iterable

from .grid import Candidate

RESULT_PRECISION = 6


def format_candidate(candidate: Candidate, precision: int = RESULT_PRECISION) -> str:
    """Render one candidate as ``"x,y,score"``."""
    return f"{candidate.x:.{precision}f},{candidate.y:.{precision}f},{candidate.score:.{precision}f}"


def format_candidates(candidates: Iterable[Candidate], precision: int = RESULT_PRECISION) -> list[str]:
    """Render ranked candidates, keeping their order."""
    return [format_candidate(c, precision) for c in candidates]
