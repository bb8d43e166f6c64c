import json
from datetime import date

import pytest

from hazcomtrainer.certificate import (
    NotEligibleError,
    build_certificate,
    certificate_document,
    certificate_payload,
    is_eligible,
)
from hazcomtrainer.models import TrainingProfile

ALL = ["m1", "m2", "m3", "m4", "m5", "m6", "m7"]
PROFILE = TrainingProfile("janitorial", "Dana Reyes", "Sparkle Co", 8)


def test_is_eligible_ignores_order() -> None:
    assert is_eligible(ALL, ALL)
    assert is_eligible(list(reversed(ALL)), set(ALL))
    assert is_eligible(ALL + ["extra"], ALL)
    assert not is_eligible(ALL[:6], ALL)
    assert not is_eligible([], ALL)


def test_build_certificate_requires_all_modules(content) -> None:
    with pytest.raises(NotEligibleError, match="m7"):
        build_certificate(PROFILE, ALL[:6], content, date(2026, 3, 14))


def test_build_certificate_fields(content) -> None:
    view = build_certificate(PROFILE, frozenset(ALL), content, date(2026, 3, 4))
    assert view.trainee_name == "Dana Reyes"
    assert view.organization_name == "Sparkle Co"
    assert view.industry_id == "janitorial"
    assert view.industry_name == "Janitorial / Cleaning"
    assert view.issue_date == date(2026, 3, 4)
    assert view.issue_date_label == "March 4, 2026"
    assert view.module_titles == tuple(module.title for module in content.modules)
    assert len(view.module_titles) == 7
    assert view.provider == "ShieldSDS"
    assert view.regulation == "29 CFR 1910.1200(h)"


def test_certificate_document_is_json_ready(content) -> None:
    view = build_certificate(PROFILE, ALL, content, date(2026, 12, 25))
    document = json.loads(json.dumps(certificate_document(view)))
    assert document["issue_date"] == "2026-12-25"
    assert document["issue_date_label"] == "December 25, 2026"
    assert document["industry"] == {"id": "janitorial", "name": "Janitorial / Cleaning"}
    assert document["modules"][0] == "Your Right to Know"
    assert document["compliance_statement"] == "29 CFR 1910.1200(h) Compliant"


def test_certificate_payload_snapshot(content) -> None:
    payload = certificate_payload(PROFILE, content, date(2026, 3, 14))
    assert payload.employee_name == "Dana Reyes"
    assert payload.company_name == "Sparkle Co"
    assert payload.industry == "janitorial"
    assert payload.date == "2026-03-14"
