"""
Peer review and peer verification engine for contest submissions.
"""

__version__ = "1.0.0"
