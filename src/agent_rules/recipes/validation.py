"""Recipe validation.

``validate_recipe`` is the gate every resolver tier applies: the four
required fields must be present and non-empty. ``check_recipe`` is the
fuller lint used by the ``recipes validate`` command; it reports errors and
warnings instead of a single boolean.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .formats import FormatError, format_name, is_supported_format, read_file
from .types import REQUIRED_FIELDS

STANDARD_CATEGORIES = (
    "Web Application",
    "Mobile App",
    "Desktop App",
    "API/Backend",
    "Library/Package",
    "CLI Tool",
    "Game Development",
    "Data Science",
    "Machine Learning",
    "DevOps",
    "Other",
)

COMMON_STACK_FIELDS = ("language", "frontend", "backend", "database", "testing", "deployment")

_SEMVER = re.compile(r"^\d+\.\d+\.\d+(-[a-zA-Z0-9-]+)?$")


def validate_recipe(recipe: Any) -> bool:
    """Check that the four required fields are present and non-empty.

    Sub-field types of ``techStack`` are not inspected.
    """
    if not isinstance(recipe, dict):
        return False
    return all(recipe.get(name) for name in REQUIRED_FIELDS)


@dataclass
class ValidationReport:
    """Outcome of linting one recipe."""

    source: str
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    key: str | None = None

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "key": self.key,
            "valid": self.valid,
            "errors": self.errors,
            "warnings": self.warnings,
        }


def check_recipe(recipe: Any, source: str = "unknown") -> ValidationReport:
    report = ValidationReport(source=source)

    if not isinstance(recipe, dict):
        report.errors.append("Recipe must be a mapping")
        return report

    for name in REQUIRED_FIELDS:
        if not recipe.get(name):
            report.errors.append(f"Missing required field: {name}")

    name = recipe.get("name")
    if name:
        if not isinstance(name, str):
            report.errors.append("Recipe name must be a string")
        elif len(name) < 3:
            report.errors.append("Recipe name must be at least 3 characters long")
        elif len(name) > 100:
            report.warnings.append("Recipe name is very long (>100 characters)")

    description = recipe.get("description")
    if description:
        if not isinstance(description, str):
            report.errors.append("Recipe description must be a string")
        elif len(description) < 10:
            report.warnings.append("Recipe description is very short (<10 characters)")
        elif len(description) > 500:
            report.warnings.append("Recipe description is very long (>500 characters)")

    category = recipe.get("category")
    if category and category not in STANDARD_CATEGORIES:
        report.warnings.append(
            f"Category '{category}' is not in the standard list. "
            f"Consider using: {', '.join(STANDARD_CATEGORIES)}"
        )

    tech_stack = recipe.get("techStack")
    if tech_stack:
        if not isinstance(tech_stack, dict):
            report.errors.append("Tech stack must be a mapping")
        else:
            if not any(tech_stack.get(f) for f in COMMON_STACK_FIELDS):
                report.warnings.append(
                    "Tech stack has none of the common fields: " + ", ".join(COMMON_STACK_FIELDS)
                )
            for key, value in tech_stack.items():
                if not isinstance(value, str | int | float | bool):
                    report.warnings.append(
                        f"Tech stack field '{key}' should be a simple value "
                        "(string, number, or boolean)"
                    )

    tags = recipe.get("tags")
    if tags is not None:
        if not isinstance(tags, list):
            report.errors.append("Tags must be a list")
        else:
            for index, tag in enumerate(tags):
                if not isinstance(tag, str):
                    report.errors.append(f"Tag at index {index} must be a string")

    version = recipe.get("version")
    if version is not None and not _SEMVER.match(str(version)):
        report.warnings.append("Version should follow semantic versioning (e.g., 1.0.0)")

    for key, label in (("windsurfRules", "Windsurf rules"), ("agentRules", "Agent rules")):
        text = recipe.get(key)
        if text is None:
            continue
        if not isinstance(text, str):
            report.errors.append(f"{label} must be a string")
        elif key == "windsurfRules" and len(text) < 10:
            report.warnings.append("Windsurf rules are very short")

    return report


def check_file(path: Path) -> list[ValidationReport]:
    """Lint every recipe in a file.

    A file may hold a single recipe, a list of recipes, or a mapping of
    key to recipe.
    """
    source = str(path)

    if not is_supported_format(path):
        return [
            ValidationReport(
                source=source,
                errors=[f"Unsupported file format: {path.suffix}. Supported: .json, .yaml, .yml"],
            )
        ]

    try:
        data = read_file(path)
    except FormatError as e:
        return [ValidationReport(source=source, errors=[str(e)])]
    except OSError as e:
        return [ValidationReport(source=source, errors=[f"Failed to read {format_name(path)} file: {e}"])]

    if isinstance(data, list):
        return [check_recipe(item, f"{source}[{i}]") for i, item in enumerate(data)]

    if isinstance(data, dict):
        keyed = all(isinstance(v, dict) for v in data.values())
        if not keyed or any(name in data for name in REQUIRED_FIELDS):
            return [check_recipe(data, source)]
        reports = []
        for key, item in data.items():
            report = check_recipe(item, f"{source}.{key}")
            report.key = key
            reports.append(report)
        return reports

    return [ValidationReport(source=source, errors=["Recipe file must contain a mapping or list"])]


def check_directory(directory: Path) -> list[ValidationReport]:
    reports: list[ValidationReport] = []
    for path in sorted(directory.iterdir()):
        if path.is_file() and is_supported_format(path):
            reports.extend(check_file(path))
    return reports
