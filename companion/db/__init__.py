"""Relational storage for quizzes, attempts and per-question review state."""
