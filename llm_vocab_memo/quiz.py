import enum
import os
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .errors import InsufficientDataError, InvalidStateError
from .structured import VocabularyEntry

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"

MIN_ENTRIES = 3
DISTRACTOR_COUNT = 2


class QuizState(enum.Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


@dataclass
class Score:
    correct: int = 0
    total: int = 0

    @property
    def accuracy(self) -> Optional[int]:
        """Percentage of correct answers, or None before any answer."""
        if self.total == 0:
            return None
        return round(100 * self.correct / self.total)

    def to_dict(self) -> Dict[str, Any]:
        return {"correct": self.correct, "total": self.total, "accuracy": self.accuracy}


@dataclass
class QuizSession:
    order: List[VocabularyEntry]
    cursor: int = 0
    choices: List[str] = field(default_factory=list)
    selected: Optional[str] = None
    result_shown: bool = False
    score: Score = field(default_factory=Score)

    @property
    def current(self) -> VocabularyEntry:
        return self.order[self.cursor]

    @property
    def answered(self) -> bool:
        return self.result_shown


@dataclass
class Question:
    number: int  # 1-based
    count: int
    term: str
    choices: List[str]
    selected: Optional[str]
    answer: Optional[str]  # only revealed once answered

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "count": self.count,
            "term": self.term,
            "choices": list(self.choices),
            "selected": self.selected,
            "answer": self.answer,
        }


@dataclass
class SessionStatus:
    state: QuizState
    score: Score


class QuizEngine:
    """Multiple-choice quiz over a snapshot of vocabulary entries.

    State machine: IDLE -> IN_PROGRESS -> FINISHED. Each question shows the
    correct meaning and two distractor meanings in random order. The engine
    copies the entries it is given, so edits or deletions in the store do not
    reach a running session.

    All randomness comes from ``rng``; pass a seeded ``random.Random`` to get
    reproducible orderings and distractors.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()
        self.state = QuizState.IDLE
        self.session: Optional[QuizSession] = None

    def start_session(self, entries: Sequence[VocabularyEntry]) -> QuizSession:
        if self.state is QuizState.IN_PROGRESS:
            raise InvalidStateError("A quiz is already in progress; abort it first")
        if len(entries) < MIN_ENTRIES:
            raise InsufficientDataError(
                f"At least {MIN_ENTRIES} entries are needed for a quiz (have {len(entries)})"
            )

        order = [entry.copy() for entry in entries]
        self.rng.shuffle(order)
        self.session = QuizSession(order=order)
        self.state = QuizState.IN_PROGRESS
        self._generate_choices()
        if DEBUG_MODE:
            print(f"🎯 Quiz started with {len(order)} questions")
        return self.session

    def current_question(self) -> Question:
        session = self._require_session()
        current = session.current
        return Question(
            number=session.cursor + 1,
            count=len(session.order),
            term=current.term,
            choices=list(session.choices),
            selected=session.selected,
            answer=current.meaning if session.result_shown else None,
        )

    def answer(self, choice: str) -> bool:
        """Record the answer for the current question. Returns correctness."""
        session = self._require_in_progress()
        if session.result_shown:
            raise InvalidStateError("The current question has already been answered")

        is_correct = choice == session.current.meaning
        session.selected = choice
        session.result_shown = True
        session.score.total += 1
        if is_correct:
            session.score.correct += 1
        return is_correct

    def advance(self) -> SessionStatus:
        session = self._require_in_progress()
        if not session.result_shown:
            raise InvalidStateError("Answer the current question before advancing")

        if session.cursor + 1 < len(session.order):
            session.cursor += 1
            self._generate_choices()
            return SessionStatus(QuizState.IN_PROGRESS, session.score)

        self.state = QuizState.FINISHED
        print(f"🏁 Quiz finished: {session.score.correct}/{session.score.total}")
        return SessionStatus(QuizState.FINISHED, session.score)

    def abort(self) -> None:
        if self.state is QuizState.IDLE:
            raise InvalidStateError("No quiz to abort")
        self.session = None
        self.state = QuizState.IDLE

    def summary(self) -> Score:
        return self._require_session().score

    # ------------------------------------------------------------------
    def _generate_choices(self) -> None:
        session = self._require_session()
        current = session.current
        others = [e for i, e in enumerate(session.order) if i != session.cursor]
        # Entries sharing the correct meaning would give two right-looking
        # options; leave them out unless there is nothing else to pick.
        pool = [e for e in others if e.meaning != current.meaning]
        if len(pool) < DISTRACTOR_COUNT:
            pool = others

        distractors = self.rng.sample(pool, DISTRACTOR_COUNT)
        choices = [current.meaning] + [d.meaning for d in distractors]
        self.rng.shuffle(choices)
        session.choices = choices
        session.selected = None
        session.result_shown = False

    def _require_session(self) -> QuizSession:
        if self.session is None:
            raise InvalidStateError("No quiz session")
        return self.session

    def _require_in_progress(self) -> QuizSession:
        if self.state is not QuizState.IN_PROGRESS:
            raise InvalidStateError(f"Quiz is {self.state.value}")
        return self._require_session()
