"""Application service for sessions, the employee directory, and certificate export."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from . import __version__
from .certificate import certificate_document
from .config import TrainerSettings
from .content_loader import TrainingContent, bundled_content
from .log import get_logger
from .models import Employee, ModuleDefinition, TrainingRecord
from .progress import Database, EmployeeDirectory, KeyValueStore
from .resolver import resolve_session
from .session import TrainingSession
from .sync import FailureCallback

logger = get_logger("hazcomtrainer.service")


@dataclass(frozen=True)
class ModuleStatus:
    """Module picker row for one session."""

    module: ModuleDefinition
    completed: bool


class TrainingService:
    """Coordinates content, storage, and training sessions."""

    def __init__(
        self,
        db_path: Path | str,
        settings: TrainerSettings | None = None,
        clock: Callable[[], datetime] | None = None,
        content: TrainingContent | None = None,
    ) -> None:
        """Initialize service with database path."""
        self.settings = settings or TrainerSettings()
        self.content = content or bundled_content()
        self.db = Database(db_path)
        self.kv_store = KeyValueStore(self.db)
        self.directory = EmployeeDirectory(self.db)
        self._clock = clock or (lambda: datetime.now(UTC))

    def open_session(
        self,
        employee_ref: str | None = None,
        view: str | None = None,
        on_failure: FailureCallback | None = None,
    ) -> TrainingSession:
        """Resolve and start a training session."""
        resolved = resolve_session(
            employee_ref,
            view,
            directory=self.directory,
            kv_store=self.kv_store,
            content=self.content,
            settings=self.settings,
            on_failure=on_failure,
            clock=self._clock,
        )
        logger.info("Opened %s session in phase '%s'", resolved.backend.name, resolved.phase)
        return TrainingSession(resolved, self.content, pass_threshold=self.settings.pass_threshold, clock=self._clock)

    def module_statuses(self, session: TrainingSession) -> list[ModuleStatus]:
        """Return modules in display order with completion for the session."""
        return [ModuleStatus(module=module, completed=module.id in session.completed) for module in self.content.modules]

    def add_employee(self, name: str, role: str = "") -> Employee:
        """Add an employee with every module pending."""
        return self.directory.add_employee(name, role, pending_module_ids=[module.id for module in self.content.modules])

    def list_employees(self) -> list[Employee]:
        """Return all employees."""
        return self.directory.list_employees()

    def training_history(self, employee_id: str) -> list[TrainingRecord]:
        """Return an employee's training records."""
        if self.directory.get(employee_id) is None:
            raise KeyError(employee_id)
        return self.directory.training_records(employee_id)

    def export_certificate(self, session: TrainingSession, export_path: Path | str) -> Path:
        """Write the session's certificate to a JSON file for a document renderer."""
        view = session.certificate(self._clock().date())
        payload = {
            "exported_at": self._clock().isoformat(),
            "source": {"app_version": __version__},
            "certificate": certificate_document(view),
        }
        path = Path(export_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return path

    def close(self) -> None:
        """Close resources."""
        self.db.close()
