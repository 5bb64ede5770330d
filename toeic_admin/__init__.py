"""
TOEIC test-bank admin console.

Command-line administration of exams, parts, questions, media and user
accounts held by the TOEIC REST backend.
"""

__version__ = "0.1.0"
