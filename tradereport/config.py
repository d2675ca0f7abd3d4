"""
tradereport.config — Immutable run configuration.

ReportConfig is built once at startup and injected into the pipeline
driver, the sinks and the serving layer. Nothing reads environment
variables after resolve_config() returns.

Precedence (highest first):
    1. Explicit keyword argument (CLI flag, test override)
    2. Environment variable (TRADE_DATA_PATH, GOODS_CLASS_PATH, ...)
    3. Built-in default from tradereport.constants
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator, model_validator

from tradereport.constants import (
    BLOC_CODE,
    BLOC_NAME,
    CATEGORY,
    CODE_LENGTH,
    DEFAULT_CLASSIFICATION_PATH,
    DEFAULT_DATA_PATH,
    DEFAULT_RESULTS_PATH,
    ENV_CATEGORY,
    ENV_CLASSIFICATION_PATH,
    ENV_DATA_PATH,
    ENV_FOCUS_CODE,
    ENV_FOCUS_NAME,
    ENV_RESULTS_PATH,
    ENV_YEAR_PREFIX,
    EU27_NAMES,
    FOCUS_CODE,
    FOCUS_NAME,
    FOCUS_NAMES,
    YEAR_PREFIX,
)

# Maps ReportConfig field → environment variable consulted by resolve_config()
ENV_OVERRIDES: dict[str, str] = {
    "data_path": ENV_DATA_PATH,
    "classification_path": ENV_CLASSIFICATION_PATH,
    "results_path": ENV_RESULTS_PATH,
    "year_prefix": ENV_YEAR_PREFIX,
    "category": ENV_CATEGORY,
    "focus_code": ENV_FOCUS_CODE,
    "focus_name": ENV_FOCUS_NAME,
}


class ReportConfig(BaseModel):
    """Frozen configuration for one report run.

    The bucket set is closed: focus_code, every key of bloc_members and
    the reserved bloc_code. Tests substitute a smaller bloc by passing
    bloc_members explicitly.
    """

    model_config = {"extra": "ignore", "frozen": True}

    year_prefix: str = YEAR_PREFIX
    category: str = CATEGORY
    code_length: int = Field(CODE_LENGTH, ge=1, le=16)

    focus_code: str = FOCUS_CODE
    focus_name: str = FOCUS_NAME
    bloc_code: str = BLOC_CODE
    bloc_name: str = BLOC_NAME
    bloc_members: Dict[str, str] = Field(default_factory=lambda: dict(EU27_NAMES))

    data_path: Path = Path(DEFAULT_DATA_PATH)
    classification_path: Path = Path(DEFAULT_CLASSIFICATION_PATH)
    results_path: Path = Path(DEFAULT_RESULTS_PATH)

    @model_validator(mode="before")
    @classmethod
    def _default_focus_name(cls, data: Any) -> Any:
        """Name an overridden focus country from FOCUS_NAMES, else its code."""
        if not isinstance(data, dict) or data.get("focus_code") is None:
            return data
        if str(data.get("focus_name") or "").strip():
            return data
        code = str(data["focus_code"]).strip().upper()
        return {**data, "focus_name": FOCUS_NAMES.get(code, code)}

    @field_validator("year_prefix")
    @classmethod
    def _check_year_prefix(cls, v: str) -> str:
        v = str(v).strip()
        if len(v) != 4 or not v.isascii() or not v.isdigit():
            raise ValueError(f"year_prefix must be four digits: '{v}'.")
        return v

    @field_validator("category")
    @classmethod
    def _normalize_category(cls, v: str) -> str:
        v = str(v).strip().casefold()
        if not v:
            raise ValueError("category must not be empty.")
        return v

    @field_validator("focus_code", "bloc_code")
    @classmethod
    def _normalize_code(cls, v: str) -> str:
        v = str(v).strip().upper()
        if not v:
            raise ValueError("country code must not be empty.")
        return v

    @field_validator("bloc_members")
    @classmethod
    def _normalize_members(cls, v: Dict[str, str]) -> Dict[str, str]:
        members: Dict[str, str] = {}
        for code, name in v.items():
            code = str(code).strip().upper()
            if not code:
                continue
            members[code] = (name or "").strip() or code
        return members

    @model_validator(mode="after")
    def _check_reserved_key(self) -> ReportConfig:
        if self.bloc_code == self.focus_code:
            raise ValueError(
                f"bloc_code '{self.bloc_code}' collides with focus_code."
            )
        if self.bloc_code in self.bloc_members:
            raise ValueError(
                f"bloc_code '{self.bloc_code}' collides with a bloc member code."
            )
        if self.focus_code in self.bloc_members:
            raise ValueError(
                f"focus_code '{self.focus_code}' is a member of bloc '{self.bloc_code}'."
            )
        return self

    # -- Derived views -----------------------------------------------------

    @property
    def member_codes(self) -> frozenset[str]:
        return frozenset(self.bloc_members)

    def bucket_keys(self) -> tuple[str, ...]:
        """All bucket keys in output order.

        Focus country first, then bloc members sorted by display name
        (code as tie-breaker), then the bloc aggregate.
        """
        members = sorted(
            self.bloc_members,
            key=lambda c: (self.bloc_members[c], c),
        )
        return (self.focus_code, *members, self.bloc_code)

    def display_name(self, key: str) -> str:
        if key == self.focus_code:
            return self.focus_name
        if key == self.bloc_code:
            return self.bloc_name
        return self.bloc_members.get(key, key)

    def label_for(self, key: str) -> str:
        """Display label, e.g. 'Norway (NO)'."""
        return f"{self.display_name(key)} ({key})"


def resolve_config(**overrides: Any) -> ReportConfig:
    """Resolve configuration once: explicit > environment > default.

    Overrides whose value is None are treated as not given, so CLI
    arguments can be passed through unconditionally.

    Raises:
        pydantic.ValidationError: if any resolved value is invalid.
    """
    values: dict[str, Any] = {}

    for field_name, env_var in ENV_OVERRIDES.items():
        raw = os.getenv(env_var, "").strip()
        if raw:
            values[field_name] = raw

    for key, val in overrides.items():
        if val is not None:
            values[key] = val

    return ReportConfig(**values)
