"""
Clinical reasoning collaborative session core.

Tracks hypotheses, peer discussion and workflow phases for groups of
learners working through a clinical case, and derives scores and
facilitator metrics from that state.
"""

__version__ = "0.1.0"
