"""Project profile and the template lookup table.

The profile accumulates the user's answers (project type, directory name) and
is the only input the fetcher and materializer need.  Templates are looked up
from :data:`TEMPLATE_REGISTRY`, a read-only mapping keyed by project type, so
adding a project type never touches the pipeline.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_SOURCE_HOST = "https://github.com"
DEFAULT_REF = "master"


class ProjectType(str, Enum):
    """Kind of project to generate."""

    PC = "pc"
    H5 = "h5"

    @property
    def label(self) -> str:
        """Choice label shown by the type prompt."""
        return _TYPE_LABELS[self]

    @property
    def default_directory_name(self) -> str:
        """Directory name offered before the user has typed anything."""
        return f"{self.value}-app"


_TYPE_LABELS: dict[ProjectType, str] = {
    ProjectType.PC: "pc (app based on ts, vue, element-plus...)",
    ProjectType.H5: "h5 (app based on ts, vue, vant...)",
}


class TemplateReference(BaseModel):
    """Immutable pointer to a remote template repository."""

    model_config = ConfigDict(frozen=True)

    source_host: str = Field(default=DEFAULT_SOURCE_HOST)
    repository_path: str = Field(..., min_length=3, description="owner/repo")
    ref: str = Field(default=DEFAULT_REF, min_length=1)

    @classmethod
    def parse(cls, value: str, source_host: str = DEFAULT_SOURCE_HOST) -> "TemplateReference":
        """Build a reference from ``owner/repo`` or ``owner/repo#ref``."""
        path, _, ref = value.strip().partition("#")
        return cls(
            source_host=source_host.rstrip("/"),
            repository_path=path.strip("/"),
            ref=ref or DEFAULT_REF,
        )

    @property
    def display_url(self) -> str:
        """``host/owner/repo`` as shown in progress messages."""
        return f"{self.source_host.rstrip('/')}/{self.repository_path}"

    @property
    def archive_url(self) -> str:
        """URL of the zip archive for :attr:`ref`."""
        return f"{self.display_url}/archive/{self.ref}.zip"


TEMPLATE_REGISTRY: Mapping[ProjectType, TemplateReference] = MappingProxyType({
    ProjectType.PC: TemplateReference.parse("ziwen-wang/vant-vue3-template-pc"),
    ProjectType.H5: TemplateReference.parse("ziwen-wang/vant-vue3-template-h5"),
})


class ProjectProfile(BaseModel):
    """The user's scaffolding choices.

    Created empty when the pipeline starts and filled in by the interactive
    flow: the type first, then the directory name.
    """

    model_config = ConfigDict(validate_assignment=True)

    project_type: ProjectType | None = Field(default=None)
    directory_name: str = Field(default="")

    @property
    def is_complete(self) -> bool:
        return self.project_type is not None and len(self.directory_name.strip()) >= 1

    def default_directory_name(self) -> str:
        """Default offered by the first directory prompt (``<type>-app``)."""
        project_type = self.project_type or ProjectType.PC
        return project_type.default_directory_name

    def template_reference(
        self, registry: Mapping[ProjectType, TemplateReference] = TEMPLATE_REGISTRY
    ) -> TemplateReference:
        """Resolve the template for this profile's project type."""
        if self.project_type is None:
            raise ValueError("Project type has not been chosen yet.")
        return registry[self.project_type]

    def template_context(self) -> dict[str, Any]:
        """Variables available to file and path templates."""
        return {
            "dirName": self.directory_name,
            "directory_name": self.directory_name,
            "project_type": self.project_type.value if self.project_type else "",
        }
