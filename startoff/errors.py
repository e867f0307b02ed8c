"""Pipeline stages and the error taxonomy shared by every startoff module.

Fatal errors derive from :class:`ScaffoldError` and abort the pipeline at the
stage they name.  Advisory failures derive from :class:`ScaffoldWarning`; the
pipeline records them and keeps going.  Empty directory names are handled
entirely inside the prompt layer and never show up here.
"""

from __future__ import annotations

from enum import Enum


class PipelineStage(str, Enum):
    """States of the scaffolding pipeline, in execution order."""

    COLLECTING_PROFILE = "collecting_profile"
    FETCHING = "fetching"
    MATERIALIZING = "materializing"
    CLEANING_UP = "cleaning_up"
    INSTALLING = "installing"
    DONE = "done"
    FAILED = "failed"

    @property
    def label(self) -> str:
        """Human-readable stage name used in reports."""
        return STAGE_LABELS[self]


STAGE_LABELS: dict[PipelineStage, str] = {
    PipelineStage.COLLECTING_PROFILE: "Collecting profile",
    PipelineStage.FETCHING: "Fetching",
    PipelineStage.MATERIALIZING: "Materializing",
    PipelineStage.CLEANING_UP: "Cleaning up",
    PipelineStage.INSTALLING: "Installing",
    PipelineStage.DONE: "Done",
    PipelineStage.FAILED: "Failed",
}


# ---------------------------------------------------------------------------
# Fatal errors
# ---------------------------------------------------------------------------


class ScaffoldError(Exception):
    """Raised when a pipeline stage fails irrecoverably."""

    def __init__(self, stage: PipelineStage, message: str) -> None:
        self.stage = stage
        self.message = message
        super().__init__(f"{stage.label}: {message}")


class FetchError(ScaffoldError):
    """The template archive could not be downloaded or unpacked."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(PipelineStage.FETCHING, message)


class MaterializationError(ScaffoldError):
    """A staged file could not be read, rendered or written."""

    def __init__(
        self,
        message: str,
        path: str = "",
        cause: BaseException | None = None,
    ) -> None:
        self.path = path
        self.cause = cause
        super().__init__(PipelineStage.MATERIALIZING, message)


# ---------------------------------------------------------------------------
# Advisory failures
# ---------------------------------------------------------------------------


class ScaffoldWarning(Exception):
    """A non-fatal failure that is reported but does not stop the pipeline."""

    def __init__(self, stage: PipelineStage, message: str) -> None:
        self.stage = stage
        self.message = message
        super().__init__(f"{stage.label}: {message}")


class CleanupWarning(ScaffoldWarning):
    """The staging tree could not be deleted."""

    def __init__(self, message: str) -> None:
        super().__init__(PipelineStage.CLEANING_UP, message)


class InstallationWarning(ScaffoldWarning):
    """The external dependency installer failed."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        self.returncode = returncode
        super().__init__(PipelineStage.INSTALLING, message)
