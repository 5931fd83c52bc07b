"""
Post lifecycle management for a discussion platform.

Retires, recovers and permanently destroys posts while keeping counters,
read positions, notifications, link indexes and moderation flags consistent.
"""

__version__ = "0.1.0"
