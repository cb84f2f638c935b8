"""Configuration for the PyML load pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SOURCE_SUFFIX = ".pyml"

# Paths matching this pattern are never instrumented: test code and
# third-party dependency directories.
DEFAULT_EXCLUDE_PATTERN = r"(tests|site-packages|dist-packages|node_modules)"

_DISABLED_STRINGS = frozenset({"", "false", "0", "no", "off", "disabled"})


class InstrumentMode(Enum):
    """Whether loaded modules get coverage instrumentation."""

    ENABLED = "enabled"
    DISABLED = "disabled"

    @classmethod
    def parse(cls, value: Any) -> InstrumentMode:
        """Parse a boolean-ish flag into a mode.

        Strings are compared case-insensitively; ``"false"`` behaves exactly
        like a falsy value.
        """
        if isinstance(value, InstrumentMode):
            return value
        if isinstance(value, str):
            if value.strip().lower() in _DISABLED_STRINGS:
                return cls.DISABLED
            return cls.ENABLED
        return cls.ENABLED if value else cls.DISABLED

    @property
    def enabled(self) -> bool:
        return self is InstrumentMode.ENABLED


class PymlSettings(BaseSettings):
    """Settings read from the environment.

    Loads from environment variables automatically:
        PYML_INSTRUMENT
    """

    instrument: InstrumentMode = Field(
        default=InstrumentMode.DISABLED,
        description="Instrument loaded .pyml modules with coverage counters",
    )

    model_config = SettingsConfigDict(
        env_prefix="PYML_",
        extra="ignore",
    )

    @field_validator("instrument", mode="before")
    @classmethod
    def _parse_instrument(cls, value: Any) -> InstrumentMode:
        return InstrumentMode.parse(value)
