"""
Playlist matching and construction engine.

Builds a per-request matching index over a track library, scores candidates
against genre/mood/activity/tempo/diversity criteria and assembles an ordered
playlist that follows a flow-arc plan.
"""

__version__ = "0.4.0"
