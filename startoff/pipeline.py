"""startoff pipeline orchestrator.

Runs the scaffolding stages strictly in order:

COLLECTING_PROFILE -- choose the project type, resolve the directory name.
FETCHING           -- download the template into ``<project>/.tmp``.
MATERIALIZING      -- render the staged tree into ``<project>``.
CLEANING_UP        -- delete the staging tree (failure is only a warning).
INSTALLING         -- hand off to the package manager (failure is only a warning).

A fatal error in any of the first four stages moves the pipeline to
``FAILED`` and no further stage runs.  Presentation is delegated to a
:class:`ProgressObserver`; the pipeline itself prints nothing.

Usage::

    startoff
    startoff --type h5 --skip-install
    python -m startoff.pipeline --destination ./work
"""

from __future__ import annotations

import argparse
import asyncio
import shutil
import sys
import time
import traceback
from pathlib import Path

import pydantic
from pydantic import BaseModel, Field
from rich.console import Console
from rich.markup import escape

from startoff import __version__
from startoff.config import Config
from startoff.errors import (
    CleanupWarning,
    InstallationWarning,
    PipelineStage,
    ScaffoldError,
    ScaffoldWarning,
)
from startoff.fetcher import TemplateFetcher
from startoff.installer import DependencyInstaller
from startoff.materializer import TemplateRenderer, TreeMaterializer
from startoff.notices import (
    check_for_update,
    print_env_info,
    print_success_box,
    print_update_notice,
    print_welcome,
)
from startoff.profile import TEMPLATE_REGISTRY, ProjectProfile, ProjectType
from startoff.prompts import ConsolePrompter, Prompter
from startoff.resolver import DestinationResolver
from startoff.utils import console as default_console
from startoff.utils import format_duration, print_error, print_success


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


class PipelineResult(BaseModel):
    """Outcome of one pipeline run."""

    success: bool = False
    stage: PipelineStage = PipelineStage.COLLECTING_PROFILE
    failed_stage: PipelineStage | None = None
    directory_name: str = ""
    project_path: str = ""
    files_written: int = 0
    error: str | None = None
    traceback: str | None = None
    warnings: list[str] = Field(default_factory=list)
    duration: str = ""


# ---------------------------------------------------------------------------
# Progress reporting
# ---------------------------------------------------------------------------


class ProgressObserver:
    """Receives notifications at stage boundaries.

    Every hook is a no-op here; subclasses override what they need.
    """

    def stage_started(self, stage: PipelineStage, detail: str) -> None:
        pass

    def stage_finished(self, stage: PipelineStage, detail: str) -> None:
        pass

    def stage_skipped(self, stage: PipelineStage, reason: str) -> None:
        pass

    def stage_warned(self, stage: PipelineStage, warning: ScaffoldWarning) -> None:
        pass

    def stage_failed(self, stage: PipelineStage, error: BaseException) -> None:
        pass

    def pipeline_finished(self, result: PipelineResult) -> None:
        pass


class ConsoleReporter(ProgressObserver):
    """Renders pipeline progress with Rich spinners and panels."""

    _SPINNER_STAGES = frozenset({
        PipelineStage.FETCHING,
        PipelineStage.MATERIALIZING,
        PipelineStage.CLEANING_UP,
    })

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or default_console
        self._status = None

    def _stop_spinner(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def stage_started(self, stage: PipelineStage, detail: str) -> None:
        if stage in self._SPINNER_STAGES:
            self._status = self.console.status(f"[cyan]{escape(detail)}[/cyan]", spinner="dots")
            self._status.start()
        else:
            self.console.print()
            self.console.print(f"[bold]{escape(detail)}[/bold]")

    def stage_finished(self, stage: PipelineStage, detail: str) -> None:
        self._stop_spinner()
        self.console.print(f"  [green]+[/green] {escape(detail)}")

    def stage_skipped(self, stage: PipelineStage, reason: str) -> None:
        self._stop_spinner()
        self.console.print(f"  [dim]-[/dim] {escape(reason)}")

    def stage_warned(self, stage: PipelineStage, warning: ScaffoldWarning) -> None:
        self._stop_spinner()
        self.console.print(f"  [yellow]![/yellow] {escape(stage.label)} did not complete")

    def stage_failed(self, stage: PipelineStage, error: BaseException) -> None:
        self._stop_spinner()

    def pipeline_finished(self, result: PipelineResult) -> None:
        self._stop_spinner()
        if result.success:
            print_success_box(result.directory_name, console=self.console)
            for warning in result.warnings:
                self.console.print(f"[bold yellow]Warning: {escape(warning)}[/bold yellow]")
            return

        failed = result.failed_stage.label if result.failed_stage else "?"
        self.console.print(
            f"[bold red]Failed at stage {escape(failed)}: {escape(result.error or '')}[/bold red]"
        )
        if result.traceback:
            self.console.print(f"[dim]{escape(result.traceback)}[/dim]")


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class Pipeline:
    """Scaffolding pipeline orchestrator.

    Collaborators default to the real implementations built from *config*;
    tests inject fakes through the keyword arguments.

    Attributes:
        config: Global configuration.
        profile: The user's answers, filled in during ``COLLECTING_PROFILE``.
        stage: Current (or, after a failure, failing) stage.
        warnings: Advisory failures collected so far.
    """

    _STAGE_METHODS: dict[PipelineStage, str] = {
        PipelineStage.COLLECTING_PROFILE: "collect_profile",
        PipelineStage.FETCHING: "fetch_template",
        PipelineStage.MATERIALIZING: "materialize_template",
        PipelineStage.CLEANING_UP: "clean_up",
        PipelineStage.INSTALLING: "install_dependencies",
    }

    def __init__(
        self,
        config: Config,
        *,
        prompter: Prompter | None = None,
        fetcher: TemplateFetcher | None = None,
        materializer: TreeMaterializer | None = None,
        installer: DependencyInstaller | None = None,
        observer: ProgressObserver | None = None,
        registry=TEMPLATE_REGISTRY,
    ) -> None:
        self.config = config
        self.prompter = prompter or ConsolePrompter()
        self.resolver = DestinationResolver(self.prompter, fallback_name=config.fallback_dir_name)
        self.fetcher = fetcher or TemplateFetcher(timeout=config.fetch_timeout)
        self.materializer = materializer or TreeMaterializer(
            TemplateRenderer(config.variable_start, config.variable_end),
            copy_only=config.copy_only,
        )
        self.installer = installer or DependencyInstaller(
            config.install_command, timeout=config.install_timeout
        )
        self.observer = observer or ProgressObserver()
        self.registry = registry

        self.profile = ProjectProfile()
        self.stage = PipelineStage.COLLECTING_PROFILE
        self.warnings: list[ScaffoldWarning] = []
        self.written: list[Path] = []

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    @property
    def project_path(self) -> Path:
        return self.config.project_path(self.profile.directory_name)

    @property
    def staging_path(self) -> Path:
        return self.config.staging_path(self.profile.directory_name)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self) -> PipelineResult:
        """Execute every stage in order and return the outcome."""
        started = time.monotonic()
        result = PipelineResult()

        for stage, method_name in self._STAGE_METHODS.items():
            self.stage = stage
            try:
                await getattr(self, method_name)()
            except ScaffoldError as exc:
                self._record_failure(result, stage, exc.message)
                self.observer.stage_failed(stage, exc)
                break
            except Exception as exc:
                self._record_failure(result, stage, str(exc) or type(exc).__name__)
                result.traceback = traceback.format_exc()
                self.observer.stage_failed(stage, exc)
                break
        else:
            self.stage = PipelineStage.DONE
            result.success = True

        result.stage = self.stage
        result.directory_name = self.profile.directory_name
        if self.profile.directory_name:
            result.project_path = str(self.project_path)
        result.files_written = len(self.written)
        result.warnings = [str(w) for w in self.warnings]
        result.duration = format_duration(time.monotonic() - started)

        self.observer.pipeline_finished(result)
        return result

    def _record_failure(self, result: PipelineResult, stage: PipelineStage, message: str) -> None:
        self.stage = PipelineStage.FAILED
        result.failed_stage = stage
        result.error = message

    def _warn(self, warning: ScaffoldWarning) -> None:
        self.warnings.append(warning)
        self.observer.stage_warned(warning.stage, warning)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def collect_profile(self) -> ProjectProfile:
        """Choose the project type, then resolve the directory name."""
        stage = PipelineStage.COLLECTING_PROFILE
        self.observer.stage_started(stage, "Basic configuration...")

        if self.config.project_type is None:
            self.profile.project_type = self.prompter.choose_project_type()
        else:
            self.profile.project_type = self.config.project_type

        self.profile.directory_name = self.resolver.resolve(
            self.config.destination_root, self.profile.default_directory_name()
        )
        if not self.profile.is_complete:
            raise ScaffoldError(stage, "Project type and directory name are both required")

        self.observer.stage_finished(stage, "Finish basic configuration.")
        return self.profile

    async def fetch_template(self) -> None:
        """Download the template for the chosen type into the staging tree."""
        stage = PipelineStage.FETCHING
        reference = self.profile.template_reference(self.registry)
        self.observer.stage_started(stage, f"Download the template from {reference.display_url}...")
        await self.fetcher.fetch(reference, self.staging_path)
        self.observer.stage_finished(
            stage, f"Finish downloading the template from {reference.display_url}"
        )

    async def materialize_template(self) -> None:
        """Render the staging tree into the project directory.

        A failure here leaves the staging tree in place for inspection.
        """
        stage = PipelineStage.MATERIALIZING
        self.observer.stage_started(stage, "Copy files into the project folder...")
        self.written = await self.materializer.materialize(
            self.staging_path, self.project_path, self.profile
        )
        self.observer.stage_finished(
            stage, f"Finish copying {len(self.written)} file(s) into the project folder"
        )

    async def clean_up(self) -> None:
        """Delete the staging tree; a failure is recorded, never raised."""
        stage = PipelineStage.CLEANING_UP
        self.observer.stage_started(stage, "Clean tmp files and folders...")
        try:
            await asyncio.to_thread(shutil.rmtree, self.staging_path)
        except OSError as exc:
            self._warn(CleanupWarning(f"Cannot remove {self.staging_path}: {exc}"))
            return
        self.observer.stage_finished(stage, "Finish cleaning tmp files and folders")

    async def install_dependencies(self) -> None:
        """Hand off to the package manager; a failure is recorded, never raised."""
        stage = PipelineStage.INSTALLING
        if self.config.skip_install:
            self.observer.stage_skipped(stage, "Skipped dependency installation")
            return

        self.observer.stage_started(stage, "Install dependencies...")
        try:
            await self.installer.install(self.project_path)
        except InstallationWarning as warning:
            self._warn(warning)
            return
        self.observer.stage_finished(stage, "Finish installing dependencies.")


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


async def _run(config: Config) -> PipelineResult:
    if config.check_updates:
        default_console.print()
        default_console.print("Checking your startoff version...")
        info = await check_for_update(__version__)
        if info is not None:
            print_update_notice(info)
        else:
            print_success("startoff is up to date.")

    pipeline = Pipeline(config, observer=ConsoleReporter())
    return await pipeline.run()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="startoff",
        description="Create a Vite + Vue 3 frontend project from a remote template",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  startoff\n"
            "  startoff --type h5 --skip-install\n"
            "  startoff --destination ./work --timeout 120\n"
        ),
    )
    parser.add_argument(
        "--type", "-t",
        choices=[t.value for t in ProjectType],
        default=None,
        help="Project type (prompted for when omitted)",
    )
    parser.add_argument(
        "--destination", "-d",
        default=None,
        help="Directory in which the project folder is created (default: .)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Template download timeout in seconds (default: 60)",
    )
    parser.add_argument(
        "--skip-install",
        action="store_true",
        help="Do not run the dependency installer",
    )
    parser.add_argument(
        "--no-update-check",
        action="store_true",
        help="Do not check PyPI for a newer startoff release",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="JSON configuration file (overrides environment variables)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_config(args: argparse.Namespace) -> Config:
    """Merge the config file (or environment) with command-line overrides."""
    config = Config.load(Path(args.config)) if args.config else Config.from_env()

    overrides: dict = {}
    if args.type:
        overrides["project_type"] = args.type
    if args.destination:
        overrides["destination_root"] = Path(args.destination)
    if args.timeout is not None:
        overrides["fetch_timeout"] = args.timeout
    if args.skip_install:
        overrides["skip_install"] = True
    if args.no_update_check:
        overrides["check_updates"] = False

    if not overrides:
        return config
    return Config.model_validate({**config.model_dump(), **overrides})


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``startoff`` / ``python -m startoff.pipeline``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except (OSError, pydantic.ValidationError) as exc:
        parser.error(str(exc))

    print_welcome(__version__)
    print_env_info()

    try:
        result = asyncio.run(_run(config))
    except KeyboardInterrupt:
        default_console.print()
        print_error("Aborted.")
        sys.exit(130)

    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
