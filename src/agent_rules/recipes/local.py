"""Recipes bundled with the installation.

Used as the last tier when neither the cache nor the remote repository has
anything to offer. No network, no cache interaction.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .formats import read_recipe_directory

logger = logging.getLogger(__name__)

BUNDLED_RECIPES_DIR = Path(__file__).parent / "bundled"


class LocalRecipeSource:
    """Reads recipe files from a fixed directory."""

    def __init__(self, directory: Path | None = None) -> None:
        self.directory = directory or BUNDLED_RECIPES_DIR

    def read_all(self) -> dict[str, Any]:
        """Parse every recipe file in the directory, keyed by file stem."""
        if not self.directory.is_dir():
            logger.debug(f"No local recipes directory at {self.directory}")
            return {}
        try:
            return read_recipe_directory(self.directory, label="local recipe")
        except OSError as e:
            logger.warning(f"Could not read local recipes from {self.directory}: {e}")
            return {}
