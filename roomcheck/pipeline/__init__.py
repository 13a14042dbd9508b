"""
RoomCheck Inspection Pipeline

Gating, metadata forensics and content scoring stages.
"""

from .gate import TimeWindowGate, GateDecision
from .forensics import MetadataForensics, MetadataValidationResult, haversine_distance
from .scorer import ContentScorer, ScoreResult, ScoringPolicy, Valid, NotSubject, parse_verdict

__all__ = [
    # Gate
    "TimeWindowGate",
    "GateDecision",
    # Forensics
    "MetadataForensics",
    "MetadataValidationResult",
    "haversine_distance",
    # Scoring
    "ContentScorer",
    "ScoreResult",
    "ScoringPolicy",
    "Valid",
    "NotSubject",
    "parse_verdict",
]
