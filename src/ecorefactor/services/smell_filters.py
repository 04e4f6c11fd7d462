"""Enabled-smell configuration (``smells.json``).

The file maps a rule symbol to its display metadata, an ``enabled``
flag and optional analyzer options. Detection sends only enabled rules,
with each option reduced to its value.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from ecorefactor.constants import RuleKind
from ecorefactor.resilience.errors import EcoRefactorError

logger = logging.getLogger(__name__)


class AnalyzerOption(BaseModel):
    label: str = ""
    description: str = ""
    value: int | float | str


class SmellFilter(BaseModel):
    name: str
    message_id: str
    acronym: str
    smell_description: str = ""
    enabled: bool = True
    analyzer_options: dict[str, AnalyzerOption] = Field(
        default_factory=lambda: dict[str, AnalyzerOption]()
    )


class SmellConfigError(EcoRefactorError):
    user_message = "Error loading smells.json. Please check the file format."


class SmellFilterConfig:
    def __init__(self, path: Path) -> None:
        self._path = path
        self._filters: dict[RuleKind, SmellFilter] = {}

    def load(self) -> dict[RuleKind, SmellFilter]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            self._filters = {
                RuleKind(symbol): SmellFilter.model_validate(data)
                for symbol, data in raw.items()
            }
        except FileNotFoundError as exc:
            raise SmellConfigError(
                f"smells config missing: {self._path}",
                user_message=(
                    "Configuration file missing: "
                    "smells.json could not be found."
                ),
            ) from exc
        except (json.JSONDecodeError, ValueError, ValidationError) as exc:
            raise SmellConfigError(f"invalid smells config: {exc}") from exc
        logger.info(
            "event=smell_filters_loaded total=%d enabled=%d",
            len(self._filters),
            len(self.enabled()),
        )
        return dict(self._filters)

    def save(self) -> None:
        payload = {
            str(symbol): f.model_dump() for symbol, f in self._filters.items()
        }
        self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def set_enabled(self, rule: RuleKind, enabled: bool) -> None:
        self._filters[rule].enabled = enabled
        self.save()

    def enabled(self) -> dict[RuleKind, SmellFilter]:
        return {r: f for r, f in self._filters.items() if f.enabled}

    def enabled_for_backend(self) -> dict[str, dict[str, int | float | str]]:
        """Payload for ``enabled_smells``: ``{symbol: {option: value}}``."""
        return {
            str(rule): {
                key: option.value
                for key, option in f.analyzer_options.items()
            }
            for rule, f in self.enabled().items()
        }

    def acronym_for(self, rule: RuleKind) -> str:
        f = self._filters.get(rule)
        return f.acronym if f else str(rule)

    def acronym_by_message_id(self, message_id: str) -> str | None:
        for f in self._filters.values():
            if f.message_id == message_id:
                return f.acronym
        return None
