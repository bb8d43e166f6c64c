from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from hazcomtrainer.config import TrainerSettings  # noqa: E402
from hazcomtrainer.content_loader import TrainingContent, bundled_content  # noqa: E402
from hazcomtrainer.models import QuizAttempt  # noqa: E402
from hazcomtrainer.progress import Database, EmployeeDirectory, KeyValueStore  # noqa: E402
from hazcomtrainer.service import TrainingService  # noqa: E402
from hazcomtrainer.session import TrainingSession  # noqa: E402

FIXED_NOW = datetime(2026, 3, 14, 15, 30, tzinfo=UTC)

TEST_CONFIG = {
    "storage": {"database": ":memory:"},
    "standalone": {"storage_key": "shieldsds-training-v2"},
    "organization": {"name": "Mike's Auto Body", "default_industry": "auto-body", "default_headcount": 5},
    "assessment": {"pass_threshold": 80},
    "logging": {"level": "INFO"},
}


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def settings() -> TrainerSettings:
    return TrainerSettings(TEST_CONFIG)


@pytest.fixture
def content() -> TrainingContent:
    return bundled_content()


@pytest.fixture
def db() -> Iterator[Database]:
    database = Database(":memory:")
    try:
        yield database
    finally:
        database.close()


@pytest.fixture
def kv_store(db: Database) -> KeyValueStore:
    return KeyValueStore(db)


@pytest.fixture
def directory(db: Database) -> EmployeeDirectory:
    return EmployeeDirectory(db)


@pytest.fixture
def service(settings: TrainerSettings, clock: Callable[[], datetime]) -> Iterator[TrainingService]:
    svc = TrainingService(":memory:", settings=settings, clock=clock)
    try:
        yield svc
    finally:
        svc.close()


def _walk_to_quiz(session: TrainingSession, module_id: str) -> None:
    session.open_module(module_id)
    while not session.is_last_slide():
        session.next_slide()
    session.start_quiz()


def _take_quiz(session: TrainingSession, module_id: str, correct: int | None = None) -> QuizAttempt:
    """Open a module, read every slide, and answer `correct` questions right (all by default)."""
    _walk_to_quiz(session, module_id)
    questions = session.questions()
    right = len(questions) if correct is None else correct
    for index, question in enumerate(questions):
        if index < right:
            session.answer(index, question.correct_option_index)
        else:
            session.answer(index, (question.correct_option_index + 1) % len(question.options))
    return session.submit_quiz()


@pytest.fixture
def walk_to_quiz() -> Callable[[TrainingSession, str], None]:
    return _walk_to_quiz


@pytest.fixture
def take_quiz() -> Callable[..., QuizAttempt]:
    return _take_quiz
