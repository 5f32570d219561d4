"""Coding Question Grader: drives an LMS coding-question set and reports verdicts."""

__version__ = "0.1.0"
