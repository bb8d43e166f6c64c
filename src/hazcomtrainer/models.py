"""Core domain models for HazCom training sessions."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Pictogram:
    """One GHS hazard pictogram."""

    id: str
    code: str
    name: str
    meaning: str
    examples: str


@dataclass(frozen=True)
class Industry:
    """Industry profile used to adapt content to a shop's chemicals."""

    id: str
    name: str
    description: str
    chemicals: tuple[str, ...]
    scenarios: tuple[str, ...]
    work_areas: tuple[str, ...]
    common_ppe: tuple[str, ...]
    top_hazards: tuple[str, ...]


@dataclass(frozen=True)
class ModuleDefinition:
    """One of the required training modules."""

    id: str
    title: str
    subtitle: str
    slide_count: int
    display_order: int
    duration_minutes: int


@dataclass(frozen=True)
class QuizQuestion:
    """Rendered multiple-choice question."""

    question_text: str
    options: tuple[str, ...]
    correct_option_index: int
    explanation_text: str


QuestionSet = tuple[QuizQuestion, ...]


@dataclass(frozen=True)
class MatchChallenge:
    """Hazard description the trainee matches to a pictogram."""

    description: str
    answer: str


@dataclass(frozen=True)
class TrainingProfile:
    """Trainee profile that drives content substitution."""

    industry_id: str | None = None
    employee_name: str = ""
    organization_name: str = ""
    headcount: int = 5

    @property
    def is_complete(self) -> bool:
        """Return whether the profile satisfies the module picker gate."""
        return bool(self.industry_id) and bool(self.employee_name.strip()) and bool(self.organization_name.strip())

    @property
    def first_name(self) -> str:
        """Return the first word of the trainee name."""
        parts = self.employee_name.split()
        return parts[0] if parts else ""


@dataclass(frozen=True)
class QuizAttempt:
    """Outcome of one graded quiz submission."""

    module_id: str
    answers: Mapping[int, int]
    correct_count: int
    total_questions: int
    score_percent: int
    passed: bool
    timestamp: datetime


@dataclass(frozen=True)
class Standalone:
    """Session with no employee identity; progress lives under one local key."""

    local_key: str


@dataclass(frozen=True)
class EmployeeLinked:
    """Session tied to an employee directory record."""

    employee_id: str


SessionMode = Standalone | EmployeeLinked


@dataclass(frozen=True)
class Employee:
    """Employee directory record."""

    id: str
    name: str
    role: str = ""
    completed_module_ids: tuple[str, ...] = ()
    pending_module_ids: tuple[str, ...] = ()
    last_training_date: str | None = None
    initial_training_date: str | None = None
    status: str = "pending"


@dataclass(frozen=True)
class CertificatePayload:
    """Certificate snapshot attached to the training record that completes the track."""

    employee_name: str
    company_name: str
    industry: str
    date: str


@dataclass(frozen=True)
class TrainingRecord:
    """One entry in an employee's training history."""

    id: int
    employee_id: str
    module_id: str
    completed_date: str
    score: int
    certificate_payload: CertificatePayload | None = field(default=None)


WELCOME = "welcome"
PROFILE = "profile"
MODULES = "modules"
TRAINING = "training"
QUIZ = "quiz"
CERTIFICATE = "certificate"
PHASES = (WELCOME, PROFILE, MODULES, TRAINING, QUIZ, CERTIFICATE)
