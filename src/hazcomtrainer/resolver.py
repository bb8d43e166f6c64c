"""Decide session mode, starting profile, completion, and phase at session start."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from .config import TrainerSettings
from .content_loader import TrainingContent
from .log import get_logger
from .models import CERTIFICATE, MODULES, WELCOME, EmployeeLinked, SessionMode, Standalone, TrainingProfile
from .progress import EmployeeDirectory, KeyValueStore
from .sync import EmployeeBackend, FailureCallback, ProgressBackend, StandaloneBackend

logger = get_logger("hazcomtrainer.resolver")

CERTIFICATE_VIEW = "certificate"


@dataclass(frozen=True)
class ResolvedSession:
    """Starting state for a training session."""

    mode: SessionMode
    profile: TrainingProfile
    completed: frozenset[str]
    phase: str
    backend: ProgressBackend


def resolve_session(
    employee_ref: str | None,
    view: str | None,
    *,
    directory: EmployeeDirectory,
    kv_store: KeyValueStore,
    content: TrainingContent,
    settings: TrainerSettings,
    on_failure: FailureCallback | None = None,
    clock: Callable[[], datetime] | None = None,
) -> ResolvedSession:
    """Resolve an optional employee reference into a starting session.

    A resolvable reference gives an employee-linked session. A missing or unknown
    reference gives a standalone session restored from the local record. Any
    error while reading either store gives a fresh standalone session.
    """
    try:
        if employee_ref:
            employee = directory.get(employee_ref)
            if employee is not None:
                profile = TrainingProfile(
                    industry_id=settings.default_industry,
                    employee_name=employee.name,
                    organization_name=settings.organization_name,
                    headcount=settings.default_headcount,
                )
                completed = frozenset(employee.completed_module_ids) & content.required_module_ids
                if completed == content.required_module_ids or view == CERTIFICATE_VIEW:
                    phase = CERTIFICATE
                else:
                    phase = MODULES
                backend: ProgressBackend = EmployeeBackend(
                    directory, employee.id, content, on_failure=on_failure, clock=clock
                )
                return ResolvedSession(EmployeeLinked(employee.id), profile, completed, phase, backend)
            logger.info("Employee '%s' not found, starting a standalone session", employee_ref)

        standalone = StandaloneBackend(kv_store, settings.storage_key, on_failure=on_failure, clock=clock)
        stored = standalone.load()
        if stored is None:
            return _fresh_standalone(standalone, settings)
        completed = stored.completed & content.required_module_ids
        if completed == content.required_module_ids:
            phase = CERTIFICATE
        elif stored.profile.industry_id and stored.profile.employee_name.strip():
            phase = MODULES
        else:
            phase = WELCOME
        return ResolvedSession(Standalone(settings.storage_key), stored.profile, completed, phase, standalone)
    except Exception as exc:
        logger.warning("Session resolution failed, starting fresh: %s", exc)
        return _fresh_standalone(
            StandaloneBackend(kv_store, settings.storage_key, on_failure=on_failure, clock=clock),
            settings,
        )


def _fresh_standalone(backend: StandaloneBackend, settings: TrainerSettings) -> ResolvedSession:
    return ResolvedSession(
        mode=Standalone(backend.key),
        profile=TrainingProfile(headcount=settings.default_headcount),
        completed=frozenset(),
        phase=WELCOME,
        backend=backend,
    )
