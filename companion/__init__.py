"""Campus Companion: spaced-repetition review scheduling and study analytics."""

__version__ = "1.0.0"
