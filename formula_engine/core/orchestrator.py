"""
Packaging engine - drives fetch, build, install and verify for each tool.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..errors import FormulaError
from ..models.installation import PipelineOutcome
from ..models.tool import TOOL_NAME_PATTERN, CompletionTemplate, PipelineState, ToolSpec
from .artifact_manager import ArtifactManager
from .builder import Builder
from .fetcher import Fetcher
from .installer import Installer
from .verifier import Verifier
from ..utils.logging import get_logger


class PackagingEngine:
    """Runs the fixed five-step pipeline for tool specs.

    Stages run strictly in order and stop at the first failure. Nothing is
    retried and nothing is rolled back: a fetched tree, a copied binary or
    written completion scripts stay in place when a later stage fails.
    """

    def __init__(self,
                 fetcher: Fetcher,
                 builder: Builder,
                 installer: Installer,
                 verifier: Verifier,
                 templates: Optional[Sequence[CompletionTemplate]] = None,
                 artifact_manager: Optional[ArtifactManager] = None,
                 max_concurrent_jobs: int = 5):
        """
        Initialize the engine.

        Args:
            fetcher: Source fetcher
            builder: Toolchain runner
            installer: Binary and completion installer
            verifier: Probe runner
            templates: Completion templates used when ``run`` gets none
            artifact_manager: Optional store for build logs and outcomes
            max_concurrent_jobs: Maximum tools processed at once by ``run_many``
        """
        self.logger = get_logger(__name__)
        self.fetcher = fetcher
        self.builder = builder
        self.installer = installer
        self.verifier = verifier
        self.templates = list(templates or [])
        self.artifact_manager = artifact_manager
        self.max_concurrent_jobs = max_concurrent_jobs

    async def run(self, spec: ToolSpec,
                  templates: Optional[Sequence[CompletionTemplate]] = None) -> PipelineOutcome:
        """
        Package one tool.

        Returns:
            PipelineOutcome in state DONE, or FAILED with the stage and cause
        """
        name = getattr(spec, "name", None) or "<unnamed>"
        outcome = PipelineOutcome(tool_name=name)
        templates = self.templates if templates is None else list(templates)
        stage = "validate"

        try:
            spec = spec.check()

            stage = "fetch"
            tree = await self.fetcher.fetch(spec)
            outcome.trusted_source = tree.trusted
            if not tree.trusted:
                self.logger.warning(f"{name}: source is not pinned by a checksum")
            outcome.advance(PipelineState.FETCHED)

            stage = "build"
            executable = await self.builder.build(tree, spec)
            self._save_log(name, executable.build_output, "build")
            outcome.advance(PipelineState.BUILT)

            stage = "install"
            installed = self.installer.install(executable, spec, templates)
            outcome.advance(PipelineState.INSTALLED)

            stage = "verify"
            await self.verifier.verify(installed.binary_path, spec)
            outcome.advance(PipelineState.VERIFIED)

            outcome.result = installed.model_copy(update={"verified": True})
            outcome.advance(PipelineState.DONE)
            self.logger.info(f"Packaged {name}")

        except FormulaError as e:
            self.logger.error(f"{name} failed at {e.stage}: {e.message}")
            if e.output:
                self.logger.debug(f"{name} {e.stage} output:\n{e.output}")
                self._save_log(name, e.output, e.stage)
            outcome.fail(e.stage, e.message, e.output)

        except Exception as e:
            self.logger.error(f"Unexpected error packaging {name} during {stage}: {e}", exc_info=True)
            outcome.fail(stage, str(e))

        finally:
            outcome.complete()
            self._save_json(
                "outcome.json", outcome.model_dump(mode="json"),
                subdirs=["tools", self._artifact_name(name)]
            )

        return outcome

    async def run_many(self, specs: Sequence[ToolSpec],
                       templates: Optional[Sequence[CompletionTemplate]] = None) -> Dict[str, Any]:
        """
        Package several tools concurrently.

        Returns:
            Summary with counts, duration and the per-tool outcomes
        """
        self.logger.info(f"Packaging {len(specs)} tools")
        start_time = datetime.utcnow()
        semaphore = asyncio.Semaphore(self.max_concurrent_jobs)

        async def _bounded(spec: ToolSpec) -> PipelineOutcome:
            async with semaphore:
                return await self.run(spec, templates)

        outcomes: List[PipelineOutcome] = await asyncio.gather(*[_bounded(s) for s in specs])

        successful = sum(1 for o in outcomes if o.success)
        summary = {
            "total_tools": len(specs),
            "successful": successful,
            "failed": len(outcomes) - successful,
            "duration_seconds": (datetime.utcnow() - start_time).total_seconds(),
            "outcomes": outcomes
        }
        self.logger.info(
            f"Packaging complete: {summary['successful']} succeeded, {summary['failed']} failed"
        )

        self._save_json("summary.json", {
            **summary,
            "outcomes": [o.model_dump(mode="json") for o in outcomes]
        })

        return summary

    @staticmethod
    def _artifact_name(tool_name: str) -> str:
        return tool_name if TOOL_NAME_PATTERN.match(tool_name) else "_invalid"

    def _save_log(self, tool_name: str, content: Optional[str], log_type: str) -> None:
        if not (self.artifact_manager and content):
            return
        try:
            self.artifact_manager.save_log(self._artifact_name(tool_name), content, log_type)
        except OSError as e:
            self.logger.error(f"Could not save {log_type} log for {tool_name}: {e}", exc_info=True)

    def _save_json(self, filename: str, data: Dict[str, Any],
                   subdirs: Optional[List[str]] = None) -> None:
        # Artifacts are diagnostics only; a failed write never changes an outcome
        if not self.artifact_manager:
            return
        try:
            self.artifact_manager.save_json(filename, data, subdirs=subdirs)
        except OSError as e:
            self.logger.error(f"Could not save {filename}: {e}", exc_info=True)
