"""Day timeline tracking with goals, streaks and achievements."""

__version__ = "0.1.0"
