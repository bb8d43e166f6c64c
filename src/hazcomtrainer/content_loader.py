"""Load declarative training content from bundled JSON resources."""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from pathlib import Path
from string import Template
from typing import Any

from .models import Industry, MatchChallenge, ModuleDefinition, Pictogram, QuestionSet, QuizQuestion

CONTENT_PACKAGE = "hazcomtrainer.content"
CONTENT_FILES = ("industries.json", "pictograms.json", "modules.json", "quizzes.json")
REQUIRED_MODULE_COUNT = 7
DEFAULT_ORGANIZATION = "your company"


@dataclass(frozen=True)
class QuestionTemplate:
    """Unrendered quiz question with `${name}` placeholders."""

    question: str
    options: tuple[str, ...]
    explanation: str
    correct: int | None = None
    option_hazards: tuple[str, ...] = ()
    correct_default: int = 0

    def correct_index(self, industry: Industry) -> int:
        """Return the answer index, resolving hazard-driven questions against the industry."""
        if self.correct is not None:
            return self.correct
        if industry.top_hazards and industry.top_hazards[0] in self.option_hazards:
            return self.option_hazards.index(industry.top_hazards[0])
        return self.correct_default


@dataclass(frozen=True)
class TrainingContent:
    """Immutable registry of industries, pictograms, modules, and quiz templates."""

    industries: tuple[Industry, ...]
    pictograms: tuple[Pictogram, ...]
    modules: tuple[ModuleDefinition, ...]
    quizzes: dict[str, tuple[QuestionTemplate, ...]]
    challenges: dict[str, tuple[MatchChallenge, ...]]

    @property
    def required_module_ids(self) -> frozenset[str]:
        return frozenset(module.id for module in self.modules)

    def module(self, module_id: str) -> ModuleDefinition:
        """Return one module by id or raise `KeyError`."""
        for module in self.modules:
            if module.id == module_id:
                return module
        raise KeyError(module_id)

    def industry(self, industry_id: str) -> Industry:
        """Return one industry by id or raise `KeyError`."""
        for industry in self.industries:
            if industry.id == industry_id:
                return industry
        raise KeyError(industry_id)

    def has_industry(self, industry_id: str | None) -> bool:
        return any(industry.id == industry_id for industry in self.industries)

    def industry_or_default(self, industry_id: str | None) -> Industry:
        """Return the industry, falling back to the first registered one."""
        for industry in self.industries:
            if industry.id == industry_id:
                return industry
        return self.industries[0]

    def pictogram(self, pictogram_id: str) -> Pictogram:
        for pictogram in self.pictograms:
            if pictogram.id == pictogram_id:
                return pictogram
        raise KeyError(pictogram_id)

    def match_challenges(self, module_id: str) -> tuple[MatchChallenge, ...]:
        return self.challenges.get(module_id, ())


def _industry_from_dict(raw: dict[str, Any]) -> Industry:
    """Build an industry from raw JSON content."""
    industry = Industry(
        id=str(raw["id"]),
        name=str(raw["name"]),
        description=str(raw.get("description", "")),
        chemicals=tuple(str(item) for item in raw.get("chemicals", [])),
        scenarios=tuple(str(item) for item in raw.get("scenarios", [])),
        work_areas=tuple(str(item) for item in raw.get("work_areas", [])),
        common_ppe=tuple(str(item) for item in raw.get("common_ppe", [])),
        top_hazards=tuple(str(item) for item in raw.get("top_hazards", [])),
    )
    if len(industry.chemicals) < 2:
        raise ValueError(f"Industry '{industry.id}' needs at least two chemicals.")
    if not industry.work_areas:
        raise ValueError(f"Industry '{industry.id}' needs at least one work area.")
    if not industry.top_hazards:
        raise ValueError(f"Industry '{industry.id}' needs at least one top hazard.")
    return industry


def _pictogram_from_dict(raw: dict[str, Any]) -> Pictogram:
    return Pictogram(
        id=str(raw["id"]),
        code=str(raw["code"]),
        name=str(raw["name"]),
        meaning=str(raw.get("meaning", "")),
        examples=str(raw.get("examples", "")),
    )


def _module_from_dict(raw: dict[str, Any]) -> ModuleDefinition:
    """Build a module definition from raw JSON content."""
    module = ModuleDefinition(
        id=str(raw["id"]),
        title=str(raw["title"]),
        subtitle=str(raw.get("subtitle", "")),
        slide_count=int(raw["slide_count"]),
        display_order=int(raw["display_order"]),
        duration_minutes=int(raw.get("duration_minutes", 0)),
    )
    if module.slide_count < 1:
        raise ValueError(f"Module '{module.id}' has no slides.")
    return module


def _question_from_dict(module_id: str, raw: dict[str, Any]) -> QuestionTemplate:
    """Build a question template from raw JSON content."""
    options = tuple(str(item) for item in raw.get("options", []))
    if not 3 <= len(options) <= 4:
        raise ValueError(f"Question in '{module_id}' must have 3 or 4 options, got {len(options)}.")

    option_hazards = tuple(str(item) for item in raw.get("option_hazards", []))
    raw_correct = raw.get("correct")
    if raw_correct is None and not option_hazards:
        raise ValueError(f"Question in '{module_id}' has neither 'correct' nor 'option_hazards'.")
    if option_hazards and len(option_hazards) != len(options):
        raise ValueError(f"Question in '{module_id}' must tag every option with a hazard.")

    correct = None if raw_correct is None else int(raw_correct)
    correct_default = int(raw.get("correct_default", 0))
    for index in (correct, correct_default):
        if index is not None and not 0 <= index < len(options):
            raise ValueError(f"Question in '{module_id}' has correct index {index} out of range.")

    return QuestionTemplate(
        question=str(raw["question"]),
        options=options,
        explanation=str(raw.get("explanation", "")),
        correct=correct,
        option_hazards=option_hazards,
        correct_default=correct_default,
    )


def _build_content(raw_files: dict[str, dict[str, Any]]) -> TrainingContent:
    """Assemble and validate the registry from parsed JSON documents."""
    industries = tuple(_industry_from_dict(item) for item in raw_files["industries.json"].get("industries", []))
    pictograms = tuple(_pictogram_from_dict(item) for item in raw_files["pictograms.json"].get("pictograms", []))
    raw_modules = raw_files["modules.json"].get("modules", [])
    modules = tuple(sorted((_module_from_dict(item) for item in raw_modules), key=lambda item: item.display_order))

    challenges: dict[str, tuple[MatchChallenge, ...]] = {}
    for item in raw_modules:
        entries = item.get("match_challenges", [])
        if entries:
            challenges[str(item["id"])] = tuple(
                MatchChallenge(description=str(entry["description"]), answer=str(entry["answer"])) for entry in entries
            )

    quizzes = {
        str(module_id): tuple(_question_from_dict(str(module_id), item) for item in questions)
        for module_id, questions in raw_files["quizzes.json"].get("quizzes", {}).items()
    }

    content = TrainingContent(
        industries=industries,
        pictograms=pictograms,
        modules=modules,
        quizzes=quizzes,
        challenges=challenges,
    )
    _validate_content(content)
    return content


def _validate_content(content: TrainingContent) -> None:
    """Validate cross-references between content files."""
    if not content.industries:
        raise ValueError("No industries defined.")
    if len(content.modules) != REQUIRED_MODULE_COUNT:
        raise ValueError(f"Expected {REQUIRED_MODULE_COUNT} modules, found {len(content.modules)}.")
    _ensure_unique("module id", [module.id for module in content.modules])
    _ensure_unique("module display order", [str(module.display_order) for module in content.modules])
    _ensure_unique("industry id", [industry.id for industry in content.industries])
    _ensure_unique("pictogram id", [pictogram.id for pictogram in content.pictograms])

    module_ids = content.required_module_ids
    for module_id in module_ids:
        if not content.quizzes.get(module_id):
            raise ValueError(f"Module '{module_id}' has no quiz.")
    for module_id in content.quizzes:
        if module_id not in module_ids:
            raise ValueError(f"Quiz for unknown module '{module_id}'.")

    pictogram_ids = {pictogram.id for pictogram in content.pictograms}
    for industry in content.industries:
        for hazard in industry.top_hazards:
            if hazard not in pictogram_ids:
                raise ValueError(f"Industry '{industry.id}' names unknown pictogram '{hazard}'.")
    for module_id, questions in content.quizzes.items():
        for question in questions:
            for hazard in question.option_hazards:
                if hazard not in pictogram_ids:
                    raise ValueError(f"Question in '{module_id}' names unknown pictogram '{hazard}'.")
    for module_id, entries in content.challenges.items():
        for entry in entries:
            if entry.answer not in pictogram_ids:
                raise ValueError(f"Match challenge in '{module_id}' names unknown pictogram '{entry.answer}'.")

    # Every template must render for every industry, so bad placeholders fail here.
    for industry in content.industries:
        for module in content.modules:
            try:
                generate_quiz(module.id, industry.id, "", content=content)
            except (KeyError, ValueError) as exc:
                raise ValueError(f"Quiz '{module.id}' does not render for industry '{industry.id}': {exc}") from exc


def _ensure_unique(label: str, values: list[str]) -> None:
    seen: set[str] = set()
    for value in values:
        if value in seen:
            raise ValueError(f"Duplicate {label}: {value}")
        seen.add(value)


def load_content() -> TrainingContent:
    """Load bundled content."""
    root = resources.files(CONTENT_PACKAGE)
    raw_files = {name: json.loads(root.joinpath(name).read_text(encoding="utf-8-sig")) for name in CONTENT_FILES}
    return _build_content(raw_files)


def load_content_from_dir(path: Path) -> TrainingContent:
    """Load content from directory for tests/tools."""
    raw_files: dict[str, dict[str, Any]] = {}
    for name in CONTENT_FILES:
        file_path = path / name
        if not file_path.is_file():
            raise ValueError(f"Missing content file: {name}")
        raw_files[name] = json.loads(file_path.read_text(encoding="utf-8-sig"))
    return _build_content(raw_files)


@lru_cache(maxsize=1)
def bundled_content() -> TrainingContent:
    """Return the process-wide registry built from package data."""
    return load_content()


def _template_values(industry: Industry, organization_name: str) -> dict[str, str]:
    organization = organization_name.strip() or DEFAULT_ORGANIZATION
    return {
        "industry_name": industry.name,
        "industry_name_lower": industry.name.lower(),
        "chemical_1": industry.chemicals[0],
        "chemical_1_lower": industry.chemicals[0].lower(),
        "chemical_2": industry.chemicals[1],
        "work_area_1": industry.work_areas[0],
        "work_area_1_lower": industry.work_areas[0].lower(),
        "organization": organization,
    }


def generate_quiz(
    module_id: str,
    industry_id: str | None,
    organization_name: str,
    content: TrainingContent | None = None,
) -> QuestionSet:
    """Render a module's question set for one industry and organization."""
    registry = content if content is not None else bundled_content()
    templates = registry.quizzes[module_id]
    industry = registry.industry_or_default(industry_id)
    values = _template_values(industry, organization_name)
    return tuple(
        QuizQuestion(
            question_text=Template(template.question).substitute(values),
            options=tuple(Template(option).substitute(values) for option in template.options),
            correct_option_index=template.correct_index(industry),
            explanation_text=Template(template.explanation).substitute(values),
        )
        for template in templates
    )
