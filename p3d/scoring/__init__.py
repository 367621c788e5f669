"""Candidate scoring modules for p3d."""

from .formatter import format_candidate, format_candidates
from .grid import (
    SCORERS,
    BaseScorer,
    Candidate,
    CandidateGrid,
    LevelAwareRefinedScorer,
    LevelAwareScorer,
    PooledScorer,
    SpectralScorer,
    ToleranceCoupledScorer,
    get_scorer,
    list_scorers,
)

__all__ = [
    "SCORERS",
    "BaseScorer",
    "Candidate",
    "CandidateGrid",
    "LevelAwareRefinedScorer",
    "LevelAwareScorer",
    "PooledScorer",
    "SpectralScorer",
    "ToleranceCoupledScorer",
    "format_candidate",
    "format_candidates",
    "get_scorer",
    "list_scorers",
]
