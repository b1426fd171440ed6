"""
LLM Vocab Memo

A vocabulary notebook with AI translations, example sentences and
multiple-choice quizzes.
"""

from . import errors
from . import structured
from . import db
from . import store
from . import normalizer
from . import quiz
from . import generation
from . import orchestrator

__version__ = "0.1.0"
__all__ = ["errors", "structured", "db", "store", "normalizer", "quiz", "generation", "orchestrator"]
