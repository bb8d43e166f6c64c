"""Best-effort persistence of session progress to the standalone record or the employee directory."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from .certificate import certificate_payload, is_eligible
from .content_loader import TrainingContent
from .log import get_logger
from .models import QuizAttempt, TrainingProfile
from .progress import EmployeeDirectory, KeyValueStore

logger = get_logger("hazcomtrainer.sync")

STANDALONE_FORMAT_VERSION = 1


@dataclass(frozen=True)
class WriteFailure:
    """One persistence write that did not land."""

    backend: str
    operation: str
    message: str
    occurred_at: datetime


@dataclass(frozen=True)
class StoredProgress:
    """Standalone record as read back from the key-value store."""

    profile: TrainingProfile
    completed: frozenset[str]
    last_accessed: str | None = None


FailureCallback = Callable[[WriteFailure], None]


class ProgressBackend:
    """Write side of a session. Failures are recorded, never raised."""

    name = "backend"

    def __init__(
        self,
        on_failure: FailureCallback | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.failures: list[WriteFailure] = []
        self._on_failure = on_failure
        self._clock = clock or (lambda: datetime.now(UTC))

    def save_profile(self, profile: TrainingProfile, completed: frozenset[str]) -> None:
        """Persist profile edits."""
        raise NotImplementedError

    def record_pass(
        self,
        profile: TrainingProfile,
        completed: frozenset[str],
        attempt: QuizAttempt,
        newly_eligible: bool,
    ) -> None:
        """Persist a passing attempt; `completed` already includes its module."""
        raise NotImplementedError

    def _report(self, operation: str, exc: Exception) -> None:
        failure = WriteFailure(
            backend=self.name,
            operation=operation,
            message=f"{type(exc).__name__}: {exc}",
            occurred_at=self._clock(),
        )
        logger.warning("%s write '%s' failed: %s", self.name, operation, failure.message)
        self.failures.append(failure)
        if self._on_failure is not None:
            self._on_failure(failure)


class StandaloneBackend(ProgressBackend):
    """Keeps the whole session in one JSON record under a fixed key."""

    name = "standalone"

    def __init__(
        self,
        kv_store: KeyValueStore,
        key: str,
        on_failure: FailureCallback | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(on_failure=on_failure, clock=clock)
        self.kv_store = kv_store
        self.key = key

    def load(self) -> StoredProgress | None:
        """Return the stored record, or `None` when absent or unparseable."""
        raw = self.kv_store.get(self.key)
        if raw is None:
            return None
        try:
            return _decode_record(raw)
        except (ValueError, TypeError, AttributeError, KeyError) as exc:
            logger.warning("Ignoring unreadable standalone record under '%s': %s", self.key, exc)
            return None

    def save_profile(self, profile: TrainingProfile, completed: frozenset[str]) -> None:
        self._write(profile, completed, "save_profile")

    def record_pass(
        self,
        profile: TrainingProfile,
        completed: frozenset[str],
        attempt: QuizAttempt,
        newly_eligible: bool,
    ) -> None:
        self._write(profile, completed, "record_pass")

    def _write(self, profile: TrainingProfile, completed: Iterable[str], operation: str) -> None:
        record = {
            "format_version": STANDALONE_FORMAT_VERSION,
            "profile": {
                "industry_id": profile.industry_id,
                "employee_name": profile.employee_name,
                "organization_name": profile.organization_name,
                "headcount": profile.headcount,
            },
            "completed_modules": sorted(completed),
            "last_accessed": self._clock().isoformat(),
        }
        try:
            self.kv_store.set(self.key, json.dumps(record))
        except Exception as exc:
            self._report(operation, exc)


class EmployeeBackend(ProgressBackend):
    """Mirrors passing attempts onto an employee directory record."""

    name = "employee"

    def __init__(
        self,
        directory: EmployeeDirectory,
        employee_id: str,
        content: TrainingContent,
        on_failure: FailureCallback | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(on_failure=on_failure, clock=clock)
        self.directory = directory
        self.employee_id = employee_id
        self.content = content

    def save_profile(self, profile: TrainingProfile, completed: frozenset[str]) -> None:
        # Profile fields come from the directory and configuration, nothing to write.
        return None

    def record_pass(
        self,
        profile: TrainingProfile,
        completed: frozenset[str],
        attempt: QuizAttempt,
        newly_eligible: bool,
    ) -> None:
        try:
            employee = self.directory.get(self.employee_id)
        except Exception as exc:
            self._report("get_employee", exc)
            return
        if employee is None:
            self._report("get_employee", LookupError(f"employee '{self.employee_id}' not found"))
            return

        today = attempt.timestamp.date().isoformat()
        module_id = attempt.module_id
        required = self.content.required_module_ids
        was_covering = is_eligible(employee.completed_module_ids, required)
        new_completed = list(employee.completed_module_ids)
        if module_id not in new_completed:
            new_completed.append(module_id)
        new_pending = [item for item in employee.pending_module_ids if item != module_id]
        covers_all = is_eligible(new_completed, required)

        fields: dict[str, object] = {
            "completed_module_ids": new_completed,
            "pending_module_ids": new_pending,
            "last_training_date": today,
            "initial_training_date": employee.initial_training_date or today,
        }
        if covers_all:
            fields["status"] = "current"
        try:
            self.directory.update(self.employee_id, **fields)
        except Exception as exc:
            self._report("update_employee", exc)

        payload = None
        if covers_all and not was_covering:
            named = replace(profile, employee_name=employee.name)
            payload = certificate_payload(named, self.content, attempt.timestamp.date())
        try:
            self.directory.append_training_record(
                self.employee_id,
                module_id,
                today,
                attempt.score_percent,
                certificate_payload=payload,
            )
        except Exception as exc:
            self._report("append_training_record", exc)

        if newly_eligible:
            logger.info("Employee %s completed every required module", self.employee_id)


def _decode_record(raw: str) -> StoredProgress:
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("record is not an object")
    profile_raw = data.get("profile") or {}
    industry_id = profile_raw.get("industry_id")
    profile = TrainingProfile(
        industry_id=str(industry_id) if industry_id else None,
        employee_name=str(profile_raw.get("employee_name", "")),
        organization_name=str(profile_raw.get("organization_name", "")),
        headcount=int(profile_raw.get("headcount", 5)),
    )
    completed = frozenset(str(item) for item in data.get("completed_modules", []))
    last_accessed = data.get("last_accessed")
    return StoredProgress(
        profile=profile,
        completed=completed,
        last_accessed=str(last_accessed) if last_accessed else None,
    )
