"""
Pydantic models for unpackd.

Path rules and the watch configuration loaded from the JSON config file.
"""

import fnmatch
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator


# =====================================================
# Path Rules
# =====================================================

class PathRule(BaseModel):
    """Rule applied to files changing below one watched directory."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    name: Path = Field(alias="Name")
    min_depth: int = Field(0, alias="MinDepth", ge=0)
    max_depth: int = Field(0, alias="MaxDepth", ge=0)
    skip_hidden: bool = Field(True, alias="SkipHidden")
    patterns: List[str] = Field(default_factory=list, alias="Patterns")
    remove: bool = Field(False, alias="Remove")
    archive_ext: str = Field(".rar", alias="ArchiveExt")
    post_command: str = Field("", alias="PostCommand")

    @field_validator("name")
    @classmethod
    def _absolute_name(cls, value: Path) -> Path:
        value = value.expanduser()
        if not value.is_absolute():
            raise ValueError(f"path must be absolute: {value}")
        return value

    @field_validator("archive_ext")
    @classmethod
    def _dotted_ext(cls, value: str) -> str:
        if not value:
            raise ValueError("archive extension must not be empty")
        return value if value.startswith(".") else "." + value

    @field_validator("patterns")
    @classmethod
    def _valid_patterns(cls, value: List[str]) -> List[str]:
        for pattern in value:
            try:
                re.compile(fnmatch.translate(pattern))
            except re.error as e:
                raise ValueError(f"invalid pattern {pattern!r}: {e}") from e
        return value

    @model_validator(mode="after")
    def _depth_bounds(self) -> "PathRule":
        if self.min_depth > self.max_depth:
            raise ValueError(
                f"{self.name}: min depth {self.min_depth} exceeds max depth {self.max_depth}"
            )
        return self


# =====================================================
# Watch Configuration
# =====================================================

class WatchConfig(BaseModel):
    """Watched paths plus global watcher options."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    paths: List[PathRule] = Field(default_factory=list, alias="Paths")
    buffer_size: int = Field(100, alias="BufferSize", gt=0)

    _filename: Optional[Path] = PrivateAttr(default=None)

    @model_validator(mode="before")
    @classmethod
    def _apply_defaults(cls, data: Any) -> Any:
        """Fill every path entry with the fields of the ``Default`` block it does not set."""
        if not isinstance(data, dict) or "Default" not in data:
            return data
        data = dict(data)
        defaults: Dict[str, Any] = data.pop("Default") or {}
        merged = []
        for entry in data.get("Paths") or []:
            if isinstance(entry, dict):
                entry = {**defaults, **entry}
            merged.append(entry)
        data["Paths"] = merged
        return data

    @property
    def filename(self) -> Optional[Path]:
        """File this configuration was read from."""
        return self._filename

    def find_path(self, path: Path) -> Optional[PathRule]:
        """
        Resolve the rule governing ``path``.

        Args:
            path: Changed file path

        Returns:
            Rule with the longest ``name`` containing ``path``, or None
        """
        path = Path(path)
        best: Optional[PathRule] = None
        for rule in self.paths:
            try:
                path.relative_to(rule.name)
            except ValueError:
                continue
            if best is None or len(rule.name.parts) > len(best.name.parts):
                best = rule
        return best
