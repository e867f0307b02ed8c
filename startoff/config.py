"""startoff configuration.

Centralised, typed configuration for the scaffolding pipeline.  Settings use
a Pydantic v2 model so they are validated at construction time and can be
serialised to/from JSON or read from environment variables.
"""

from __future__ import annotations

import os
import shlex
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from startoff.profile import ProjectType


DEFAULT_FALLBACK_DIR = "webpack-app"
DEFAULT_STAGING_DIR = ".tmp"

_TRUTHY = {"1", "true", "yes", "on"}


class Config(BaseModel):
    """Global startoff configuration.

    Instances are created once by the CLI entry point (or by tests) and then
    handed to :class:`~startoff.pipeline.Pipeline`.
    """

    destination_root: Path = Field(default=Path("."))
    project_type: ProjectType | None = Field(
        default=None, description="Preselected project type; prompts when unset"
    )
    fetch_timeout: float = Field(
        default=60.0, gt=0, description="Template download timeout in seconds"
    )
    staging_dir_name: str = Field(default=DEFAULT_STAGING_DIR, min_length=1)
    fallback_dir_name: str = Field(
        default=DEFAULT_FALLBACK_DIR,
        min_length=1,
        description="Default directory name offered after an overwrite refusal",
    )
    install_command: list[str] = Field(default_factory=lambda: ["npm", "install"])
    install_timeout: int = Field(default=600, ge=1)
    skip_install: bool = Field(default=False)
    check_updates: bool = Field(default=True)
    copy_only: list[str] = Field(
        default_factory=list,
        description="Glob patterns of staged files copied without rendering",
    )
    variable_start: str = Field(default="{{", min_length=1)
    variable_end: str = Field(default="}}", min_length=1)

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    def project_path(self, directory_name: str) -> Path:
        """Root of the generated project."""
        return self.destination_root / directory_name

    def staging_path(self, directory_name: str) -> Path:
        """Transient directory holding the fetched template."""
        return self.project_path(directory_name) / self.staging_dir_name

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file and return its path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            STARTOFF_DESTINATION, STARTOFF_TYPE, STARTOFF_FETCH_TIMEOUT,
            STARTOFF_INSTALL_COMMAND, STARTOFF_INSTALL_TIMEOUT,
            STARTOFF_SKIP_INSTALL, STARTOFF_NO_UPDATE_CHECK, STARTOFF_COPY_ONLY.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("STARTOFF_DESTINATION"):
            kwargs["destination_root"] = Path(os.environ["STARTOFF_DESTINATION"])
        if os.environ.get("STARTOFF_TYPE"):
            kwargs["project_type"] = os.environ["STARTOFF_TYPE"].strip().lower()
        if os.environ.get("STARTOFF_FETCH_TIMEOUT"):
            kwargs["fetch_timeout"] = os.environ["STARTOFF_FETCH_TIMEOUT"]
        if os.environ.get("STARTOFF_INSTALL_COMMAND"):
            kwargs["install_command"] = shlex.split(os.environ["STARTOFF_INSTALL_COMMAND"])
        if os.environ.get("STARTOFF_INSTALL_TIMEOUT"):
            kwargs["install_timeout"] = os.environ["STARTOFF_INSTALL_TIMEOUT"]
        if os.environ.get("STARTOFF_SKIP_INSTALL"):
            kwargs["skip_install"] = os.environ["STARTOFF_SKIP_INSTALL"].lower() in _TRUTHY
        if os.environ.get("STARTOFF_NO_UPDATE_CHECK"):
            kwargs["check_updates"] = (
                os.environ["STARTOFF_NO_UPDATE_CHECK"].lower() not in _TRUTHY
            )
        if os.environ.get("STARTOFF_COPY_ONLY"):
            kwargs["copy_only"] = [
                p.strip() for p in os.environ["STARTOFF_COPY_ONLY"].split(",") if p.strip()
            ]
        return cls(**kwargs)
