"""JSON and YAML handling for recipe files.

Format is chosen from the file extension. ``detect_format_from_content`` is
a heuristic for suggestions only; parsing always goes by extension.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Literal

import yaml

logger = logging.getLogger(__name__)

JSON_EXTENSIONS = (".json",)
YAML_EXTENSIONS = (".yaml", ".yml")
SUPPORTED_EXTENSIONS = JSON_EXTENSIONS + YAML_EXTENSIONS

_YAML_KEY_LINE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*:\s", re.MULTILINE)
_YAML_LIST_START = re.compile(r"^\s*-\s")


class FormatError(ValueError):
    """Content could not be parsed or serialized in its format."""

    def __init__(self, format_name: str, message: str, path: str | None = None) -> None:
        self.format_name = format_name
        self.message = message
        self.path = path
        super().__init__(f"Invalid {format_name}: {message}")


class _NoAliasDumper(yaml.SafeDumper):
    """SafeDumper that writes repeated objects in full instead of anchors."""

    def ignore_aliases(self, data: Any) -> bool:
        return True


def _extension(file_path: str | Path) -> str:
    return Path(file_path).suffix.lower()


def is_supported_format(file_path: str | Path) -> bool:
    return _extension(file_path) in SUPPORTED_EXTENSIONS


def is_json_format(file_path: str | Path) -> bool:
    return _extension(file_path) in JSON_EXTENSIONS


def is_yaml_format(file_path: str | Path) -> bool:
    return _extension(file_path) in YAML_EXTENSIONS


def format_name(file_path: str | Path) -> str:
    return "JSON" if is_json_format(file_path) else "YAML"


def parse_content(content: str, file_path: str | Path) -> Any:
    """Parse content according to the extension of ``file_path``.

    Args:
        content: Raw file content
        file_path: Path or bare filename used only for its extension

    Returns:
        Parsed object

    Raises:
        FormatError: If the extension is unsupported or content is malformed
    """
    ext = _extension(file_path)

    if ext in JSON_EXTENSIONS:
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise FormatError("JSON", str(e), str(file_path)) from e

    if ext in YAML_EXTENSIONS:
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise FormatError("YAML", str(e), str(file_path)) from e

    raise FormatError(ext or "unknown", f"Unsupported file format: {ext or '(none)'}", str(file_path))


def serialize_content(
    data: Any, file_path: str | Path, *, indent: int = 2, width: int = 120
) -> str:
    """Serialize data according to the extension of ``file_path``.

    YAML output never uses anchors/aliases and keeps key insertion order so
    diffs of regenerated files stay stable.
    """
    ext = _extension(file_path)

    if ext in JSON_EXTENSIONS:
        return json.dumps(data, indent=indent, ensure_ascii=False)

    if ext in YAML_EXTENSIONS:
        return yaml.dump(
            data,
            Dumper=_NoAliasDumper,
            indent=indent,
            width=width,
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
        )

    raise FormatError(ext or "unknown", f"Unsupported file format: {ext or '(none)'}", str(file_path))


def detect_format_from_content(content: str) -> Literal["json", "yaml"]:
    """Guess the format of content with no usable extension."""
    trimmed = content.strip()

    if (trimmed.startswith("{") and trimmed.endswith("}")) or (
        trimmed.startswith("[") and trimmed.endswith("]")
    ):
        return "json"

    if "---" in trimmed or _YAML_KEY_LINE.search(trimmed) or _YAML_LIST_START.match(trimmed):
        return "yaml"

    return "json"


def read_file(file_path: str | Path) -> Any:
    """Read and parse a recipe file.

    Raises:
        FileNotFoundError: If the file does not exist
        FormatError: If the content is malformed
    """
    path = Path(file_path)
    content = path.read_text(encoding="utf-8")
    return parse_content(content, path)


def write_file(file_path: str | Path, data: Any, *, indent: int = 2) -> None:
    path = Path(file_path)
    path.write_text(serialize_content(data, path, indent=indent), encoding="utf-8")


def convert_format(input_path: str | Path, output_path: str | Path) -> None:
    """Rewrite a recipe file in the format implied by ``output_path``."""
    write_file(output_path, read_file(input_path))


def list_supported_files(directory: Path) -> list[Path]:
    """Supported files directly inside ``directory``, sorted by name."""
    return sorted(p for p in directory.iterdir() if p.is_file() and is_supported_format(p))


def read_recipe_directory(
    directory: Path, *, exclude: Iterable[str] = (), label: str = "recipe"
) -> dict[str, Any]:
    """Parse every supported file in a directory, keyed by file stem.

    Files that fail to read or parse are skipped with a warning so one bad
    file never hides the rest.

    Args:
        directory: Directory to scan (non-recursive)
        exclude: Filenames to ignore (e.g. a metadata file)
        label: Word used in log messages

    Returns:
        Mapping of file stem to parsed content
    """
    excluded = set(exclude)
    parsed: dict[str, Any] = {}

    for path in list_supported_files(directory):
        if path.name in excluded:
            continue
        try:
            parsed[path.stem] = read_file(path)
        except (OSError, UnicodeDecodeError, FormatError) as e:
            logger.warning(f"Skipping unreadable {label} file {path.name}: {e}")

    return parsed


def suggested_filename(base_name: str, preferred_format: str = "json") -> str:
    """Slugify a recipe name into a filename with the right extension."""
    clean = re.sub(r"[^a-z0-9]", "-", base_name.lower())
    clean = re.sub(r"-+", "-", clean).strip("-")
    extension = {"yaml": ".yaml", "yml": ".yml"}.get(preferred_format, ".json")
    return f"{clean}{extension}"


def mime_type(file_path: str | Path) -> str:
    if is_json_format(file_path):
        return "application/json"
    if is_yaml_format(file_path):
        return "application/x-yaml"
    return "text/plain"
