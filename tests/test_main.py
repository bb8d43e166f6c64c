from collections.abc import Iterator

import pytest

import hazcomtrainer.main as main
from hazcomtrainer.content_loader import generate_quiz


def _scripted(answers: list[str]):
    iterator: Iterator[str] = iter(answers)
    prompts: list[str] = []

    def input_fn(prompt: str) -> str:
        prompts.append(prompt)
        return next(iterator)

    return input_fn, prompts


@pytest.fixture
def shell_service(service, monkeypatch):
    monkeypatch.setattr(service, "close", lambda: None)
    monkeypatch.setattr(main, "_service", lambda db_path=None: service)
    return service


def _has(output: list[str], text: str) -> bool:
    return any(text in line for line in output)


def _correct_answers(service, module_id: str, industry_id: str = "auto-body") -> list[str]:
    questions = generate_quiz(module_id, industry_id, "Mike's Auto Body", content=service.content)
    return [str(question.correct_option_index + 1) for question in questions]


def _walk_slides(service, module_id: str) -> list[str]:
    return ["n"] * (service.content.module(module_id).slide_count - 1) + ["t"]


def test_quit_from_welcome(shell_service) -> None:
    input_fn, _ = _scripted(["q"])
    output: list[str] = []
    assert main.play_shell(input_fn, output.append) == 0
    assert "=== HazCom Safety Training ===" in output[0]


def test_profile_then_module_pass(shell_service) -> None:
    script = ["1", "1", "Dana Reyes", "Mike's Auto Body", "12", "1"]
    script += _walk_slides(shell_service, "m1")
    script += _correct_answers(shell_service, "m1")
    script += ["c", "q"]
    input_fn, _ = _scripted(script)
    output: list[str] = []
    assert main.play_shell(input_fn, output.append) == 0
    assert "Score: 100% (3/3)" in output
    assert "Passed! Module complete." in output
    assert "Progress: 1/7 modules passed" in output
    assert "You need 3/3 correct to pass." in output


def test_profile_gate_reprompts(shell_service) -> None:
    script = ["1", "1", "Dana", "", "", "q"]
    input_fn, _ = _scripted(script)
    output: list[str] = []
    main.play_shell(input_fn, output.append)
    assert "Choose an industry and enter both your name and your company name." in output


def test_failed_quiz_offers_retake_and_review(shell_service) -> None:
    wrong = [str((int(answer) % 3) + 1) for answer in _correct_answers(shell_service, "m1")]
    script = ["1", "1", "Dana", "Shop", "", "1"]
    script += _walk_slides(shell_service, "m1")
    script += wrong
    script += ["v", "b", "q"]
    input_fn, _ = _scripted(script)
    output: list[str] = []
    main.play_shell(input_fn, output.append)
    assert "r) Retake quiz" in output
    assert "v) Review module" in output
    assert "Not passed. You need 80% to pass." in output
    assert "Progress: 0/7 modules passed" in output


def test_quiz_can_be_left(shell_service) -> None:
    script = ["1", "1", "Dana", "Shop", "", "1"] + _walk_slides(shell_service, "m1") + [":b", "q"]
    input_fn, _ = _scripted(script)
    output: list[str] = []
    main.play_shell(input_fn, output.append)
    assert sum(1 for line in output if line.startswith("Progress:")) == 2


def test_flow_exit_command_quits_anywhere(shell_service) -> None:
    input_fn, _ = _scripted(["1", ":q"])
    assert main.play_shell(input_fn, lambda _: None) == 0


def test_invalid_transition_is_reported(shell_service) -> None:
    script = ["1", "1", "Dana", "Shop", "", "1", "p", "q"]
    input_fn, _ = _scripted(script)
    output: list[str] = []
    main.play_shell(input_fn, output.append)
    assert "Already on the first slide." in output


def test_employee_certificate_view(shell_service) -> None:
    employee = shell_service.add_employee("Dana Reyes")
    shell_service.directory.update(employee.id, completed_module_ids=["m1", "m2", "m3", "m4", "m5", "m6", "m7"])
    input_fn, _ = _scripted(["q"])
    output: list[str] = []
    main.play_shell(input_fn, output.append, employee_ref=employee.id)
    assert _has(output, "=== Certificate of Completion ===")
    assert "  Dana Reyes" in output
    assert "Date: March 14, 2026" in output
    assert "29 CFR 1910.1200(h) Compliant" in output


def test_early_certificate_view_explains_missing(shell_service) -> None:
    employee = shell_service.add_employee("Dana Reyes")
    input_fn, _ = _scripted(["b", "q"])
    output: list[str] = []
    main.play_shell(input_fn, output.append, employee_ref=employee.id, view="certificate")
    assert _has(output, "Certificate not available yet.")
    assert "Progress: 0/7 modules passed" in output


def test_matching_exercise_flow(shell_service) -> None:
    script = ["1", "1", "Dana", "Shop", "", "2", "m", "1", "1", "3", "b", "q"]
    input_fn, _ = _scripted(script)
    output: list[str] = []
    main.play_shell(input_fn, output.append)
    assert "Correct!" in output
    assert _has(output, "Matching complete: 2/3 correct")


def test_reset_requires_confirmation(shell_service) -> None:
    script = ["1", "1", "Dana", "Shop", "", "r", "no", "r", "YES", "q"]
    input_fn, _ = _scripted(script)
    output: list[str] = []
    main.play_shell(input_fn, output.append)
    assert "Reset cancelled." in output
    assert sum("=== HazCom Safety Training ===" in line for line in output) == 2


def test_employees_shell_add_and_history(shell_service) -> None:
    input_fn, _ = _scripted(["a", "Dana Reyes", "Painter", "1", "q"])
    output: list[str] = []
    assert main.employees_shell(input_fn, output.append) == 0
    assert any(line.startswith("Added Dana Reyes. Train with: hazcomtrainer play --employee ") for line in output)
    assert "No training recorded yet." in output
    assert shell_service.list_employees()[0].role == "Painter"
