"""Pydantic models for the backend wire format.

The backend speaks camelCase; fields are snake_case here with aliases.
``Smell.rule`` is a closed RuleKind, so an unknown rule symbol fails
validation at the decoding boundary.
"""

from __future__ import annotations

import hashlib
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ecorefactor.cache.fingerprint import normalize_path
from ecorefactor.constants import SMELL_ID_HEX_LENGTH, RuleKind


class Occurrence(BaseModel):
    """One location of a smell (1-based lines, 0-based columns)."""

    model_config = ConfigDict(populate_by_name=True)

    line: int
    end_line: int | None = Field(default=None, alias="endLine")
    column: int = 0
    end_column: int | None = Field(default=None, alias="endColumn")


def make_smell_id(path: str, rule: str, occurrence: Occurrence | None) -> str:
    """Deterministic smell id from (file, rule, primary occurrence).

    The same smell instance detected twice yields the same id, so a UI
    reference captured before a cache refresh still resolves after it.
    """
    line = occurrence.line if occurrence else 0
    column = occurrence.column if occurrence else 0
    key = f"{normalize_path(path)}|{rule}|{line}|{column}"
    return hashlib.sha256(key.encode()).hexdigest()[:SMELL_ID_HEX_LENGTH]


class Smell(BaseModel):
    """A detected smell as returned by ``POST /smells``."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    rule: RuleKind = Field(alias="symbol")
    type: str = ""
    message: str = ""
    message_id: str = Field(default="", alias="messageId")
    confidence: str = ""
    path: str
    module: str = ""
    obj: str | None = None
    occurrences: list[Occurrence] = Field(
        default_factory=lambda: list[Occurrence](), alias="occurences"
    )
    additional_info: dict[str, Any] = Field(
        default_factory=lambda: dict[str, Any](), alias="additionalInfo"
    )

    @model_validator(mode="before")
    @classmethod
    def _accept_spelling(cls, data: Any) -> Any:
        """Accept the correctly spelled ``occurrences`` key as well."""
        if (
            isinstance(data, dict)
            and "occurrences" in data
            and "occurences" not in data
        ):
            data = dict(data)
            data["occurences"] = data.pop("occurrences")
        return data

    @model_validator(mode="after")
    def _assign_id(self) -> Smell:
        if not self.id:
            self.id = make_smell_id(self.path, self.rule, self.primary_occurrence)
        return self

    @property
    def primary_occurrence(self) -> Occurrence | None:
        return self.occurrences[0] if self.occurrences else None

    def to_wire(self) -> dict[str, Any]:
        """Backend payload form (camelCase, without the local id)."""
        return self.model_dump(by_alias=True, exclude={"id"}, mode="json")


class ChangedFile(BaseModel):
    """An (original, refactored) file pair produced by a refactor."""

    original: str
    refactored: str


class RefactoredData(BaseModel):
    """Response of ``POST /refactor`` and ``POST /refactorAll``."""

    model_config = ConfigDict(populate_by_name=True)

    target_file: ChangedFile = Field(alias="targetFile")
    affected_files: list[ChangedFile] = Field(
        default_factory=lambda: list[ChangedFile](), alias="affectedFiles"
    )
    energy_saved: float | None = Field(default=None, alias="energySaved")
    temp_dir: str = Field(alias="tempDir")

    @property
    def all_files(self) -> list[ChangedFile]:
        """Target first, then affected files in backend order.

        A file listed twice is kept once, at its first position.
        """
        seen: set[str] = set()
        files: list[ChangedFile] = []
        for changed in (self.target_file, *self.affected_files):
            key = normalize_path(changed.original)
            if key not in seen:
                seen.add(key)
                files.append(changed)
        return files


class DetectRequest(BaseModel):
    """Request body for ``POST /smells``."""

    file_path: str
    enabled_smells: dict[str, dict[str, Any]]


class RefactorRequest(BaseModel):
    """Request body for ``POST /refactor`` and ``POST /refactorAll``."""

    source_dir: str
    smell: dict[str, Any]
