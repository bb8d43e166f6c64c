"""CLI entrypoint for the HazCom training app."""

from __future__ import annotations

import argparse
from collections.abc import Callable
from pathlib import Path

from .assessment import PreconditionError, required_correct
from .certificate import NotEligibleError
from .config import TrainerSettings
from .log import set_level
from .models import CERTIFICATE, MODULES, PROFILE, QUIZ, TRAINING, WELCOME
from .resolver import CERTIFICATE_VIEW
from .service import TrainingService
from .session import TrainingSession, TransitionError
from .sync import WriteFailure

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
BACK_COMMANDS = {":back", ":b", "back"}
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}
MENU_QUIT_COMMANDS = {"q"}
MENU_BACK_COMMANDS = {"b"}


class QuitApp(Exception):
    """Signal immediate app exit from nested menu flows."""


def _service(db_path: Path | None = None) -> TrainingService:
    """Create app service with the configured database path."""
    settings = TrainerSettings()
    set_level(settings.log_level)
    return TrainingService(db_path=db_path or settings.database, settings=settings)


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    parser = argparse.ArgumentParser(prog="hazcomtrainer", description="OSHA HazCom safety training")
    parser.add_argument("command", nargs="?", default="play", choices=["play", "employees"])
    parser.add_argument("--employee", help="employee id to train (links progress to the directory record)")
    parser.add_argument("--view", choices=[CERTIFICATE_VIEW], help="open straight to the certificate")
    parser.add_argument("--db", type=Path, help="SQLite database path")
    args = parser.parse_args(argv)
    if args.command == "employees":
        return employees_shell(db_path=args.db)
    return play_shell(employee_ref=args.employee, view=args.view, db_path=args.db)


def play_shell(
    input_fn: InputFn = input,
    print_fn: PrintFn = print,
    employee_ref: str | None = None,
    view: str | None = None,
    db_path: Path | None = None,
) -> int:
    """Run the phase-driven training loop."""
    service = _service(db_path)
    try:

        def warn(failure: WriteFailure) -> None:
            print_fn("Note: progress could not be saved right now. Your training continues.")

        session = service.open_session(employee_ref, view, on_failure=warn)
        screens = {
            WELCOME: _welcome_screen,
            PROFILE: _profile_screen,
            MODULES: _modules_screen,
            TRAINING: _training_screen,
            QUIZ: _quiz_screen,
            CERTIFICATE: _certificate_screen,
        }
        try:
            while True:
                try:
                    screens[session.phase](service, session, input_fn, print_fn)
                except (PreconditionError, TransitionError) as exc:
                    print_fn(str(exc))
        except QuitApp:
            return 0
    finally:
        service.close()


def _read(input_fn: InputFn, prompt: str) -> str:
    """Read one trimmed line, raising `QuitApp` on a flow exit command."""
    value = input_fn(prompt).strip()
    if value.lower() in FLOW_EXIT_COMMANDS:
        raise QuitApp()
    return value


def _welcome_screen(service: TrainingService, session: TrainingSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    print_fn("\n=== HazCom Safety Training ===")
    print_fn("OSHA 29 CFR 1910.1200(h): 7 modules, about 45 minutes.")
    print_fn("1) Start training")
    print_fn("q) Quit")
    choice = _read(input_fn, "Choose: ").lower()
    if choice == "1":
        session.begin()
    elif choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    else:
        print_fn("Invalid choice.")


def _profile_screen(service: TrainingService, session: TrainingSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Collect industry, names, and headcount."""
    print_fn("\n=== Your Workplace ===")
    industries = service.content.industries
    for idx, industry in enumerate(industries, start=1):
        marker = "*" if industry.id == session.profile.industry_id else " "
        print_fn(f"{idx:>2}){marker}{industry.name} - {industry.description}")
    choice = _read(input_fn, "Industry number: ").lower()
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    industry_id = session.profile.industry_id
    if choice:
        if not choice.isdigit() or not 1 <= int(choice) <= len(industries):
            print_fn("Invalid industry.")
            return
        industry_id = industries[int(choice) - 1].id

    name = _read(input_fn, _with_default("Your name", session.profile.employee_name)) or session.profile.employee_name
    company = (
        _read(input_fn, _with_default("Company name", session.profile.organization_name))
        or session.profile.organization_name
    )
    headcount_text = _read(input_fn, _with_default("Number of employees", str(session.profile.headcount)))
    headcount = session.profile.headcount
    if headcount_text:
        if not headcount_text.isdigit():
            print_fn("Number of employees must be a whole number.")
            return
        headcount = int(headcount_text)

    if not session.can_submit_profile(industry_id, name, company):
        print_fn("Choose an industry and enter both your name and your company name.")
        return
    session.submit_profile(industry_id, name, company, headcount)


def _with_default(label: str, current: str) -> str:
    return f"{label} [{current}]: " if current else f"{label}: "


def _modules_screen(service: TrainingService, session: TrainingSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Show the module picker."""
    statuses = service.module_statuses(session)
    done = sum(1 for status in statuses if status.completed)
    print_fn("\n=== Training Modules ===")
    if session.profile.first_name:
        print_fn(f"Trainee: {session.profile.employee_name}")
    print_fn(f"Progress: {done}/{len(statuses)} modules passed")
    for idx, status in enumerate(statuses, start=1):
        mark = "done" if status.completed else "    "
        print_fn(f"{idx}) [{mark}] {status.module.title} ({status.module.duration_minutes} min)")
    if session.eligible:
        print_fn("c) View certificate")
    if session.is_standalone:
        print_fn("r) Start over")
    print_fn("q) Quit")

    choice = _read(input_fn, "Choose: ").lower()
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if choice == "c":
        session.view_certificate()
        return
    if choice == "r" and session.is_standalone:
        confirm = input_fn("Type YES to erase your progress: ").strip()
        if confirm != "YES":
            print_fn("Reset cancelled.")
            return
        session.reset()
        return
    if choice.isdigit() and 1 <= int(choice) <= len(statuses):
        session.open_module(statuses[int(choice) - 1].module.id)
        return
    print_fn("Invalid choice.")


def _training_screen(service: TrainingService, session: TrainingSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Step through the open module's slides."""
    module = session.current_module
    print_fn(f"\n=== {module.title} ===")
    print_fn(module.subtitle)
    print_fn(f"Slide {session.slide_index + 1} of {module.slide_count}")
    if session.slide_index > 0:
        print_fn("p) Previous slide")
    if session.can_start_quiz():
        print_fn("t) Take the quiz")
    else:
        print_fn("n) Next slide")
    if session.furthest_slide > 0:
        print_fn("g) Go to a visited slide")
    print_fn("x) Explore the GHS pictograms")
    if service.content.match_challenges(module.id):
        print_fn("m) Pictogram matching exercise")
    print_fn("b) Back to modules")
    print_fn("q) Quit")

    choice = _read(input_fn, "Choose: ").lower()
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if choice in MENU_BACK_COMMANDS:
        session.back_to_modules()
    elif choice == "n":
        session.next_slide()
    elif choice == "p":
        session.previous_slide()
    elif choice == "t":
        session.start_quiz()
    elif choice == "g":
        target = _read(input_fn, f"Slide (1-{session.furthest_slide + 1}): ")
        if not target.isdigit():
            print_fn("Invalid slide.")
            return
        session.go_to_slide(int(target) - 1)
    elif choice == "x":
        _pictogram_flow(session, input_fn, print_fn)
    elif choice == "m" and service.content.match_challenges(module.id):
        _matching_flow(session, input_fn, print_fn)
    else:
        print_fn("Invalid choice.")


def _pictogram_flow(session: TrainingSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Browse pictograms; picking one toggles its details."""
    pictograms = session.content.pictograms
    while True:
        print_fn("\nGHS pictograms")
        for idx, pictogram in enumerate(pictograms, start=1):
            print_fn(f"{idx}) {pictogram.name} ({pictogram.code})")
        print_fn("b) Back")
        choice = _read(input_fn, "Pictogram: ").lower()
        if choice in MENU_BACK_COMMANDS:
            return
        if not choice.isdigit() or not 1 <= int(choice) <= len(pictograms):
            print_fn("Invalid choice.")
            continue
        session.select_pictogram(pictograms[int(choice) - 1].id)
        if session.selected_pictogram is not None:
            selected = session.content.pictogram(session.selected_pictogram)
            print_fn(f"{selected.name}: {selected.meaning}")
            print_fn(f"Examples: {selected.examples}")


def _matching_flow(session: TrainingSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Run the pictogram matching challenges."""
    total = len(session.content.match_challenges(session.current_module.id))
    while True:
        challenge = session.current_match_challenge()
        if challenge is None:
            print_fn(f"\nMatching complete: {session.match_score}/{total} correct")
            return
        print_fn(f"\nChallenge {session.match_index + 1} of {total}")
        print_fn(f'"{challenge.description}"')
        choices = session.match_choices()
        for idx, pictogram in enumerate(choices, start=1):
            print_fn(f"{idx}) {pictogram.name}")
        choice = _read(input_fn, "Which pictogram? ").lower()
        if choice in MENU_BACK_COMMANDS or choice in BACK_COMMANDS:
            return
        if not choice.isdigit() or not 1 <= int(choice) <= len(choices):
            print_fn("Invalid choice.")
            continue
        if session.answer_match_challenge(choices[int(choice) - 1].id):
            print_fn("Correct!")
        else:
            print_fn(f"Not quite. The answer is {session.content.pictogram(challenge.answer).name}.")
        session.next_match_challenge()


def _quiz_screen(service: TrainingService, session: TrainingSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Ask every question, grade, then offer the follow-up actions."""
    if session.last_attempt is None:
        _answer_questions(session, input_fn, print_fn)
        return

    attempt = session.last_attempt
    if attempt.passed:
        print_fn("c) Continue")
    else:
        print_fn("r) Retake quiz")
        print_fn("v) Review module")
        print_fn("c) Continue")
    print_fn("b) Back to modules")
    print_fn("q) Quit")
    choice = _read(input_fn, "Choose: ").lower()
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if choice in MENU_BACK_COMMANDS:
        session.back_to_modules()
    elif choice == "c":
        session.continue_after_quiz()
    elif choice == "r":
        session.retake_quiz()
    elif choice == "v":
        session.review_module()
    else:
        print_fn("Invalid choice.")


def _answer_questions(session: TrainingSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    questions = session.questions()
    print_fn(f"\n=== Quiz: {session.current_module.title} ===")
    print_fn(f"You need {required_correct(len(questions), session.pass_threshold)}/{len(questions)} correct to pass.")
    print_fn("Type :b to leave the quiz.")
    for q_index, question in enumerate(questions):
        print_fn(f"\n{q_index + 1}. {question.question_text}")
        for o_index, option in enumerate(question.options, start=1):
            print_fn(f"   {o_index}) {option}")
        while True:
            choice = _read(input_fn, "Answer: ").lower()
            if choice in BACK_COMMANDS:
                session.back_to_modules()
                return
            if choice.isdigit() and 1 <= int(choice) <= len(question.options):
                session.answer(q_index, int(choice) - 1)
                break
            print_fn("Pick one of the listed options.")

    attempt = session.submit_quiz()
    print_fn(f"\nScore: {attempt.score_percent}% ({attempt.correct_count}/{attempt.total_questions})")
    for q_index, question in enumerate(questions):
        mark = "correct" if attempt.answers[q_index] == question.correct_option_index else "wrong"
        print_fn(f"{q_index + 1}. [{mark}] {question.explanation_text}")
    if attempt.passed:
        print_fn("Passed! Module complete.")
        if session.just_completed_all:
            print_fn("All modules passed. Your certificate is ready.")
    else:
        print_fn(f"Not passed. You need {session.pass_threshold}% to pass.")


def _certificate_screen(
    service: TrainingService, session: TrainingSession, input_fn: InputFn, print_fn: PrintFn
) -> None:
    """Show the certificate, or what is still missing."""
    try:
        view = session.certificate()
    except NotEligibleError as exc:
        print_fn("\nCertificate not available yet.")
        print_fn(str(exc))
    else:
        print_fn("\n=== Certificate of Completion ===")
        print_fn("This certifies that")
        print_fn(f"  {view.trainee_name}")
        print_fn(f"  {view.organization_name}")
        print_fn("has completed OSHA HazCom Safety Training covering all required modules:")
        for title in view.module_titles:
            print_fn(f"  - {title}")
        print_fn(f"Date: {view.issue_date_label}")
        print_fn(f"Industry: {view.industry_name}")
        print_fn(f"Provider: {view.provider}")
        print_fn(f"{view.regulation} Compliant")
        print_fn("e) Export certificate")
    print_fn("b) Back to modules")
    print_fn("q) Quit")

    choice = _read(input_fn, "Choose: ").lower()
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if choice in MENU_BACK_COMMANDS:
        session.back_to_modules()
    elif choice == "e" and session.eligible:
        _export_certificate_flow(service, session, input_fn, print_fn)
    else:
        print_fn("Invalid choice.")


def _export_certificate_flow(
    service: TrainingService, session: TrainingSession, input_fn: InputFn, print_fn: PrintFn
) -> None:
    path_text = input_fn("Export file path: ").strip()
    if not path_text:
        print_fn("File path is required.")
        return
    try:
        path = service.export_certificate(session, path_text)
    except OSError as exc:
        print_fn(f"Export failed: {exc}")
        return
    print_fn(f"Certificate written to {path}")


def employees_shell(input_fn: InputFn = input, print_fn: PrintFn = print, db_path: Path | None = None) -> int:
    """Manage the employee directory."""
    service = _service(db_path)
    try:
        while True:
            employees = service.list_employees()
            print_fn("\n=== Employees ===")
            if employees:
                for idx, employee in enumerate(employees, start=1):
                    done = len(employee.completed_module_ids)
                    print_fn(f"{idx}) {employee.name} [{employee.id}] {employee.status}, {done} module(s) passed")
            else:
                print_fn("No employees yet.")
            print_fn("a) Add employee")
            print_fn("q) Quit")

            choice = input_fn("Choose: ").strip().lower()
            if choice in MENU_QUIT_COMMANDS:
                return 0
            if choice == "a":
                name = input_fn("Employee name: ").strip()
                if not name:
                    print_fn("Employee name is required.")
                    continue
                role = input_fn("Role (optional): ").strip()
                created = service.add_employee(name, role)
                print_fn(f"Added {created.name}. Train with: hazcomtrainer play --employee {created.id}")
                continue
            if choice.isdigit() and 1 <= int(choice) <= len(employees):
                _history_flow(service, employees[int(choice) - 1].id, print_fn)
                continue
            print_fn("Invalid choice.")
    finally:
        service.close()


def _history_flow(service: TrainingService, employee_id: str, print_fn: PrintFn) -> None:
    """Print one employee's training records."""
    records = service.training_history(employee_id)
    print_fn("\n=== Training History ===")
    if not records:
        print_fn("No training recorded yet.")
        return
    for record in records:
        suffix = " (certificate issued)" if record.certificate_payload is not None else ""
        print_fn(f"{record.completed_date} {record.module_id} score {record.score}%{suffix}")


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
