"""
Configuration package for the peer review engine.
"""
from .settings import Settings, PeerReviewPolicy, settings

__all__ = [
    "Settings",
    "PeerReviewPolicy",
    "settings",
]
