"""Certificate eligibility and the printable certificate view."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Any

from .assessment import PreconditionError
from .content_loader import TrainingContent
from .models import CertificatePayload, TrainingProfile

PROVIDER = "ShieldSDS"
REGULATION = "29 CFR 1910.1200(h)"
CERTIFICATE_FORMAT_VERSION = 1


class NotEligibleError(PreconditionError):
    """Raised when a certificate is requested before every module is passed."""


@dataclass(frozen=True)
class CertificateView:
    """Everything a renderer needs to print a completion certificate."""

    trainee_name: str
    organization_name: str
    industry_id: str
    industry_name: str
    issue_date: date
    module_titles: tuple[str, ...]
    provider: str = PROVIDER
    regulation: str = REGULATION

    @property
    def issue_date_label(self) -> str:
        """Return the date as `Month D, YYYY`."""
        months = (
            "January", "February", "March", "April", "May", "June",
            "July", "August", "September", "October", "November", "December",
        )
        return f"{months[self.issue_date.month - 1]} {self.issue_date.day}, {self.issue_date.year}"


def is_eligible(completed: Iterable[str], required_ids: Iterable[str]) -> bool:
    """Return whether `completed` covers every required module id."""
    return set(required_ids).issubset(set(completed))


def build_certificate(
    profile: TrainingProfile,
    completed: Iterable[str],
    content: TrainingContent,
    today: date,
) -> CertificateView:
    """Build the certificate view, dated `today`."""
    if not is_eligible(completed, content.required_module_ids):
        missing = sorted(content.required_module_ids - set(completed))
        raise NotEligibleError(f"Modules not yet passed: {', '.join(missing)}")
    industry = content.industry_or_default(profile.industry_id)
    return CertificateView(
        trainee_name=profile.employee_name,
        organization_name=profile.organization_name,
        industry_id=industry.id,
        industry_name=industry.name,
        issue_date=today,
        module_titles=tuple(module.title for module in content.modules),
    )


def certificate_document(view: CertificateView) -> dict[str, Any]:
    """Return a JSON-serializable certificate for an external document renderer."""
    return {
        "format_version": CERTIFICATE_FORMAT_VERSION,
        "title": "Certificate of Completion",
        "course": "OSHA HazCom Safety Training",
        "trainee_name": view.trainee_name,
        "organization_name": view.organization_name,
        "industry": {"id": view.industry_id, "name": view.industry_name},
        "issue_date": view.issue_date.isoformat(),
        "issue_date_label": view.issue_date_label,
        "modules": list(view.module_titles),
        "provider": view.provider,
        "regulation": view.regulation,
        "compliance_statement": f"{view.regulation} Compliant",
    }


def certificate_payload(profile: TrainingProfile, content: TrainingContent, today: date) -> CertificatePayload:
    """Return the snapshot attached to the training record that completes the track."""
    return CertificatePayload(
        employee_name=profile.employee_name,
        company_name=profile.organization_name,
        industry=content.industry_or_default(profile.industry_id).id,
        date=today.isoformat(),
    )
