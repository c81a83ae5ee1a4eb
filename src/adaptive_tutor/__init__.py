"""
Adaptive Tutor client.

This package bundles the client-side core of a personalized-learning app:
content and topic resolution with local caching, the learning-mode completion
gate, and the quiz session state machine driven against a remote tutoring
service.
"""

from .config.loader import load_settings

__all__ = ["load_settings"]
