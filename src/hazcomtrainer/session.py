"""Phase-driven training session: profile, slides, quizzes, and certificate."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime

from .assessment import DEFAULT_PASS_THRESHOLD, PreconditionError, grade, unanswered_questions
from .certificate import CertificateView, NotEligibleError, build_certificate, is_eligible
from .content_loader import TrainingContent, generate_quiz
from .log import get_logger
from .models import (
    CERTIFICATE,
    MODULES,
    PROFILE,
    QUIZ,
    TRAINING,
    WELCOME,
    MatchChallenge,
    ModuleDefinition,
    Pictogram,
    QuestionSet,
    QuizAttempt,
    Standalone,
    TrainingProfile,
)
from .resolver import ResolvedSession

logger = get_logger("hazcomtrainer.session")

MIN_HEADCOUNT = 1
MAX_HEADCOUNT = 100
MATCH_CHOICE_LIMIT = 6
# Shown as distractors only when they are the answer.
MATCH_EXCLUDED_PICTOGRAMS = ("environment", "gas-cylinder", "exploding-bomb")


class TransitionError(Exception):
    """Raised when an operation is called from a phase that does not allow it."""


class TrainingSession:
    """One trainee's pass through the modules, driven by explicit transitions."""

    def __init__(
        self,
        resolved: ResolvedSession,
        content: TrainingContent,
        pass_threshold: int = DEFAULT_PASS_THRESHOLD,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.content = content
        self.mode = resolved.mode
        self.profile = resolved.profile
        self.completed = resolved.completed
        self.phase = resolved.phase
        self.backend = resolved.backend
        self.pass_threshold = pass_threshold
        self._clock = clock or (lambda: datetime.now(UTC))

        self.module_id: str | None = None
        self.slide_index = 0
        self._furthest_slide = 0
        self.answers: dict[int, int] = {}
        self.last_attempt: QuizAttempt | None = None
        self.just_completed_all = False

        self.selected_pictogram: str | None = None
        self.match_index = 0
        self.match_score = 0
        self.match_selected: str | None = None

    # Queries

    @property
    def is_standalone(self) -> bool:
        return isinstance(self.mode, Standalone)

    @property
    def eligible(self) -> bool:
        return is_eligible(self.completed, self.content.required_module_ids)

    @property
    def current_module(self) -> ModuleDefinition:
        if self.module_id is None:
            raise TransitionError("No module is open.")
        return self.content.module(self.module_id)

    @property
    def furthest_slide(self) -> int:
        return self._furthest_slide

    def is_last_slide(self) -> bool:
        return self.phase == TRAINING and self.slide_index == self.current_module.slide_count - 1

    def questions(self) -> QuestionSet:
        """Render the open module's quiz for the current profile."""
        return generate_quiz(
            self.current_module.id,
            self.profile.industry_id,
            self.profile.organization_name,
            content=self.content,
        )

    def can_submit_profile(self, industry_id: str | None, employee_name: str, organization_name: str) -> bool:
        return (
            self.content.has_industry(industry_id)
            and bool(employee_name.strip())
            and bool(organization_name.strip())
        )

    def can_start_quiz(self) -> bool:
        return self.is_last_slide()

    def can_submit_quiz(self) -> bool:
        if self.phase != QUIZ or self.last_attempt is not None:
            return False
        return not unanswered_questions(self.questions(), self.answers)

    def certificate(self, today: date | None = None) -> CertificateView:
        """Build the certificate view for the current profile."""
        return build_certificate(
            self.profile,
            self.completed,
            self.content,
            today or self._clock().date(),
        )

    # Transitions

    def _require(self, *phases: str) -> None:
        if self.phase not in phases:
            raise TransitionError(f"Not allowed in phase '{self.phase}' (needs {' or '.join(phases)}).")

    def begin(self) -> None:
        """Move from the welcome screen to the profile form."""
        self._require(WELCOME)
        self.phase = PROFILE

    def submit_profile(
        self,
        industry_id: str | None,
        employee_name: str,
        organization_name: str,
        headcount: int | None = None,
    ) -> None:
        """Save the profile and open the module picker."""
        self._require(PROFILE)
        if not self.can_submit_profile(industry_id, employee_name, organization_name):
            raise PreconditionError("Choose an industry and enter both your name and your company name.")
        if headcount is None:
            headcount = self.profile.headcount
        if not MIN_HEADCOUNT <= headcount <= MAX_HEADCOUNT:
            raise PreconditionError(f"Headcount must be between {MIN_HEADCOUNT} and {MAX_HEADCOUNT}.")
        self.profile = TrainingProfile(
            industry_id=industry_id,
            employee_name=employee_name.strip(),
            organization_name=organization_name.strip(),
            headcount=headcount,
        )
        self.phase = MODULES
        self.backend.save_profile(self.profile, self.completed)

    def open_module(self, module_id: str) -> None:
        """Start a module at its first slide; completed modules can be reopened."""
        self._require(MODULES)
        module = self.content.module(module_id)
        self.module_id = module.id
        self.slide_index = 0
        self._furthest_slide = 0
        self.answers = {}
        self.last_attempt = None
        self.just_completed_all = False
        self.selected_pictogram = None
        self.match_index = 0
        self.match_score = 0
        self.match_selected = None
        self.phase = TRAINING

    def next_slide(self) -> None:
        self._require(TRAINING)
        if self.is_last_slide():
            raise PreconditionError("Already on the last slide.")
        self._move_to(self.slide_index + 1)

    def previous_slide(self) -> None:
        self._require(TRAINING)
        if self.slide_index == 0:
            raise PreconditionError("Already on the first slide.")
        self._move_to(self.slide_index - 1)

    def go_to_slide(self, index: int) -> None:
        """Jump to a slide that has already been visited."""
        self._require(TRAINING)
        if not 0 <= index <= self._furthest_slide:
            raise PreconditionError(f"Slide {index + 1} has not been reached yet.")
        self._move_to(index)

    def _move_to(self, index: int) -> None:
        self.slide_index = index
        self._furthest_slide = max(self._furthest_slide, index)

    def start_quiz(self) -> None:
        self._require(TRAINING)
        if not self.is_last_slide():
            raise PreconditionError("Finish every slide before taking the quiz.")
        self.answers = {}
        self.last_attempt = None
        self.phase = QUIZ

    def answer(self, question_index: int, option_index: int) -> None:
        """Record or change the answer to one question."""
        self._require(QUIZ)
        if self.last_attempt is not None:
            raise TransitionError("Quiz already submitted; retake it to answer again.")
        questions = self.questions()
        if not 0 <= question_index < len(questions):
            raise ValueError(f"No question {question_index} in this quiz.")
        if not 0 <= option_index < len(questions[question_index].options):
            raise ValueError(f"No option {option_index} for question {question_index}.")
        self.answers[question_index] = option_index

    def submit_quiz(self) -> QuizAttempt:
        """Grade the answers; a pass adds the module and is persisted."""
        self._require(QUIZ)
        if self.last_attempt is not None:
            raise TransitionError("Quiz already submitted.")
        module_id = self.current_module.id
        attempt = grade(module_id, self.questions(), self.answers, self._clock(), self.pass_threshold)
        self.last_attempt = attempt
        if not attempt.passed:
            logger.info("Module %s failed with %s%%", module_id, attempt.score_percent)
            return attempt

        was_eligible = self.eligible
        self.completed = self.completed | {module_id}
        newly_eligible = not was_eligible and self.eligible
        self.just_completed_all = newly_eligible
        self.backend.record_pass(self.profile, self.completed, attempt, newly_eligible)
        logger.info("Module %s passed with %s%%", module_id, attempt.score_percent)
        return attempt

    def _require_failed_attempt(self) -> None:
        self._require(QUIZ)
        if self.last_attempt is None or self.last_attempt.passed:
            raise PreconditionError("Only available after a failed attempt.")

    def retake_quiz(self) -> None:
        self._require_failed_attempt()
        self.answers = {}
        self.last_attempt = None

    def review_module(self) -> None:
        """Go back to the first slide of the module after a failed attempt."""
        self._require_failed_attempt()
        self.answers = {}
        self.last_attempt = None
        self.slide_index = 0
        self.phase = TRAINING

    def continue_after_quiz(self) -> None:
        self._require(QUIZ)
        if self.last_attempt is None:
            raise PreconditionError("Submit the quiz first.")
        self.phase = CERTIFICATE if self.just_completed_all else MODULES

    def back_to_modules(self) -> None:
        """Leave a module, quiz, or certificate; an unsubmitted quiz is discarded."""
        self._require(TRAINING, QUIZ, CERTIFICATE)
        self.answers = {}
        self.last_attempt = None
        self.phase = MODULES

    def view_certificate(self) -> None:
        self._require(MODULES)
        if not self.eligible:
            raise NotEligibleError("Pass every module to unlock the certificate.")
        self.phase = CERTIFICATE

    def reset(self) -> None:
        """Forget the standalone profile and progress and start over."""
        if not self.is_standalone:
            raise TransitionError("Employee-linked progress cannot be reset here.")
        self.profile = TrainingProfile()
        self.completed = frozenset()
        self.module_id = None
        self.answers = {}
        self.last_attempt = None
        self.just_completed_all = False
        self.phase = WELCOME
        self.backend.save_profile(self.profile, self.completed)

    # Module UI state

    def select_pictogram(self, pictogram_id: str | None) -> None:
        """Toggle the highlighted pictogram on a slide."""
        self._require(TRAINING)
        if pictogram_id is not None:
            self.content.pictogram(pictogram_id)
        self.selected_pictogram = None if pictogram_id == self.selected_pictogram else pictogram_id

    def current_match_challenge(self) -> MatchChallenge | None:
        challenges = self.content.match_challenges(self.current_module.id)
        if self.match_index >= len(challenges):
            return None
        return challenges[self.match_index]

    def match_choices(self) -> tuple[Pictogram, ...]:
        """Return the pictograms offered for the current matching challenge."""
        challenge = self.current_match_challenge()
        if challenge is None:
            return ()
        choices = [
            pictogram
            for pictogram in self.content.pictograms
            if pictogram.id not in MATCH_EXCLUDED_PICTOGRAMS or pictogram.id == challenge.answer
        ]
        return tuple(choices[:MATCH_CHOICE_LIMIT])

    def answer_match_challenge(self, pictogram_id: str) -> bool:
        """Answer the current challenge once; returns whether it was right."""
        self._require(TRAINING)
        challenge = self.current_match_challenge()
        if challenge is None:
            raise PreconditionError("No matching challenge is open.")
        if self.match_selected is not None:
            raise PreconditionError("This challenge is already answered.")
        self.content.pictogram(pictogram_id)
        self.match_selected = pictogram_id
        correct = pictogram_id == challenge.answer
        if correct:
            self.match_score += 1
        return correct

    def next_match_challenge(self) -> None:
        self._require(TRAINING)
        if self.match_selected is None:
            raise PreconditionError("Answer the current challenge first.")
        self.match_index += 1
        self.match_selected = None
