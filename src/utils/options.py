"""
HotSwap Restart Options.

The immutable per-session record handed to the engine by the CLI
(or by an embedding program).
Requires Python 3.11+.
"""

import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

DEFAULT_EXTENSION = ".go"
TEMP_PREFIX = "tmp_"


def platform_executable_ext() -> str:
    """Executable suffix for the host OS."""
    return ".exe" if sys.platform == "win32" else ""


def _split_args(value: str | Iterable[str] | None) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = value.split()
    return tuple(arg for arg in value if arg)


class RestartOptions(BaseModel):
    """
    Options for a single watch session.

    Extensions are normalised to ".ext" form and always include
    the default source extension.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    source: Path = Field(default_factory=Path.cwd, validate_default=True)
    extensions: frozenset[str] = Field(default=frozenset(), validate_default=True)
    compile_tags: tuple[str, ...] = ()
    run_tags: tuple[str, ...] = ()
    program_name: str = Field(default="", validate_default=True)
    program_ext: str = Field(default_factory=platform_executable_ext)
    output_dir: Path | None = Field(default=None, validate_default=True)
    verbose: bool = False
    tolerance_seconds: float | None = Field(default=None, ge=0.0)

    # Sinks for the child's output; None inherits the tool's streams
    stdout: Any = None
    stderr: Any = None

    @field_validator("source")
    @classmethod
    def absolute_source(cls, v: Path) -> Path:
        return v.expanduser().absolute()

    @field_validator("extensions", mode="before")
    @classmethod
    def parse_extensions(cls, v: str | Iterable[str] | None) -> frozenset[str]:
        """Accept comma/space separated strings or iterables, add leading dots."""
        if v is None:
            v = ()
        elif isinstance(v, str):
            v = v.replace(",", " ").split()
        normalised = {DEFAULT_EXTENSION}
        for ext in v:
            ext = ext.strip()
            if not ext or ext == ".":
                raise ValueError("extension must not be empty")
            normalised.add(ext if ext.startswith(".") else f".{ext}")
        return frozenset(normalised)

    @field_validator("compile_tags", "run_tags", mode="before")
    @classmethod
    def parse_tags(cls, v: str | Iterable[str] | None) -> tuple[str, ...]:
        return _split_args(v)

    @field_validator("program_name")
    @classmethod
    def default_program_name(cls, v: str, info: ValidationInfo) -> str:
        if v:
            return v
        source = info.data.get("source")
        if source is None:
            raise ValueError("program_name cannot be derived without a source")
        return source.name or "app"

    @field_validator("output_dir")
    @classmethod
    def default_output_dir(cls, v: Path | None, info: ValidationInfo) -> Path | None:
        if v is None:
            return info.data.get("source")
        return v.expanduser().absolute()

    def has_extension(self, ext: str) -> bool:
        """Check whether ext (".go" form) is recognized."""
        return ext in self.extensions

    def get_extensions(self) -> list[str]:
        return sorted(self.extensions)

    def with_extensions(self, *extensions: str) -> "RestartOptions":
        """Return a copy recognizing additional extensions."""
        data = dict(self)
        data["extensions"] = [*self.extensions, *extensions]
        return type(self)(**data)

    @property
    def executable_name(self) -> str:
        return f"{self.program_name}{self.program_ext}"

    @property
    def artifact_path(self) -> Path:
        """Canonical executable path."""
        return self.output_dir / self.executable_name

    @property
    def temp_artifact_path(self) -> Path:
        """Build staging path."""
        return self.output_dir / f"{TEMP_PREFIX}{self.executable_name}"

    def __str__(self) -> str:
        return (
            f"Ext : {' '.join(self.get_extensions())}"
            f" CompileTags : {' '.join(self.compile_tags)}"
            f" Verbose : {self.verbose}"
        )
