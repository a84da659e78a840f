"""Xref pipeline: discover, compile, extract, render, lay out.

Phase 1: discover_sources()             *.erl under the root, minus *tests.erl
Phase 2: ErlcCompiler.compile()         one .core file per source
Phase 3: parse_module() + extract_cross_refs()   .core file deleted after reading
Phase 4: GraphRenderer.render()         DOT text written once
Phase 5: DotRenderer.render()           image, fire-and-forget

Failures are contained per unit: a source that does not compile or a .core
file that does not parse is logged, recorded in ``PipelineOutput.failures``
and contributes nothing. The graph is always written.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from xref_grapher.cerl.parser import parse_module
from xref_grapher.discovery import discover_sources
from xref_grapher.exceptions import CompileError, CoreParseError
from xref_grapher.extractor import extract_cross_refs
from xref_grapher.models.call import ExtractionResult
from xref_grapher.progress import PhaseProgress, ProgressTracker
from xref_grapher.renderer import GraphRenderer
from xref_grapher.toolchain import DotRenderer, ErlcCompiler

log = structlog.get_logger("xref_grapher.pipeline")


@dataclass
class UnitFailure:
    """A unit that was dropped from the graph."""

    path: str
    phase: str  # "compile" | "parse" | "read"
    error: str


@dataclass
class PipelineOutput:
    """Pipeline return value."""

    dot_path: str
    image_path: str | None
    source_count: int
    results: list[ExtractionResult] = field(default_factory=list)
    failures: list[UnitFailure] = field(default_factory=list)

    @property
    def call_count(self) -> int:
        return sum(len(r.calls) for r in self.results)


class XrefPipeline:
    """Run the whole analysis for one source tree."""

    def __init__(
        self,
        compiler: ErlcCompiler | None = None,
        renderer: GraphRenderer | None = None,
        image_renderer: DotRenderer | None = None,
        jobs: int = 1,
    ) -> None:
        self.compiler = compiler or ErlcCompiler()
        self.renderer = renderer or GraphRenderer()
        self.image_renderer = image_renderer or DotRenderer()
        self.jobs = max(1, jobs)
        self.progress = ProgressTracker()

    def run(
        self,
        root: str | Path,
        output: str | Path = "xr.dot",
        image: str | Path | None = "xr.png",
    ) -> PipelineOutput:
        """Analyse every source under ``root`` and write the graph to ``output``.

        Args:
            root: Directory searched recursively for ``*.erl`` files.
            output: Path of the DOT file to write.
            image: Path of the rendered image, or None to skip layout.

        Raises:
            OSError: if the DOT file cannot be written. Per-unit failures
                never propagate.
        """
        progress = ProgressTracker()
        progress.callbacks.append(_log_phase)
        self.progress = progress  # expose last run's progress for callers
        failures: list[UnitFailure] = []

        missing = self.compiler.check_prerequisites()
        if image is not None:
            missing += self.image_renderer.check_prerequisites()
        for detail in missing:
            log.warning("pipeline.prerequisite_missing", detail=detail)

        progress.start_phase("discover")
        sources = discover_sources(root)
        progress.complete_phase("discover", detail=f"{len(sources)} source files")

        progress.start_phase("compile")
        core_paths = self.compile_all(sources, failures)
        progress.complete_phase(
            "compile",
            detail=f"{len(core_paths)} ok, {len(sources) - len(core_paths)} failed",
        )

        progress.start_phase("extract")
        results = self.extract_all(core_paths, failures)
        progress.complete_phase(
            "extract",
            detail=f"{len(results)} units, {sum(len(r.calls) for r in results)} calls",
        )

        progress.start_phase("render")
        dot_text = self.renderer.render(results)
        try:
            Path(output).write_text(dot_text, encoding="utf-8")
        except OSError as e:
            progress.fail_phase("render", str(e))
            raise
        progress.complete_phase("render", detail=str(output))

        if image is None:
            progress.skip_phase("image", "disabled")
        else:
            progress.start_phase("image")
            status = self.image_renderer.render(output, image)
            if status == 0:
                progress.complete_phase("image", detail=str(image))
            else:
                progress.fail_phase("image", f"dot exit status {status}")

        log.info(
            "pipeline.done",
            units=len(results),
            skipped_units=len(failures),
            failed_phases=[p.phase for p in progress.failed],
            duration=progress.total_duration,
        )
        return PipelineOutput(
            dot_path=str(output),
            image_path=str(image) if image is not None else None,
            source_count=len(sources),
            results=results,
            failures=failures,
        )

    def compile_all(self, sources: list[Path], failures: list[UnitFailure]) -> list[Path]:
        """Compile every source; returns .core paths in discovery order."""
        if self.jobs > 1:
            with ThreadPoolExecutor(max_workers=self.jobs) as pool:
                outcomes = list(pool.map(self._compile_one, sources))
        else:
            outcomes = [self._compile_one(src) for src in sources]

        core_paths: list[Path] = []
        for source, outcome in zip(sources, outcomes):
            if isinstance(outcome, CompileError):
                log.warning(
                    "pipeline.compile_failed",
                    source=str(source),
                    returncode=outcome.returncode,
                    error=outcome.stderr.strip(),
                )
                failures.append(UnitFailure(str(source), "compile", str(outcome)))
            else:
                core_paths.append(outcome)
        return core_paths

    def _compile_one(self, source: Path) -> Path | CompileError:
        try:
            return self.compiler.compile(source)
        except CompileError as e:
            return e

    def extract_all(
        self, core_paths: list[Path], failures: list[UnitFailure]
    ) -> list[ExtractionResult]:
        """Parse and walk each .core file; failing units are skipped."""
        results: list[ExtractionResult] = []
        for core_path in core_paths:
            try:
                results.append(self.extract_file(core_path))
            except CoreParseError as e:
                log.warning("pipeline.parse_failed", file=str(core_path), error=str(e))
                failures.append(UnitFailure(str(core_path), "parse", str(e)))
            except OSError as e:
                log.warning("pipeline.read_failed", file=str(core_path), error=str(e))
                failures.append(UnitFailure(str(core_path), "read", str(e)))
        return results

    def extract_file(self, core_path: str | Path) -> ExtractionResult:
        """Read, delete, parse and walk one .core file.

        The file is removed once read, whether or not it parses.
        """
        path = Path(core_path)
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        finally:
            _discard(path)
        result = extract_cross_refs(parse_module(text, filename=str(path)))
        log.debug("pipeline.unit_extracted", unit=result.unit_name, calls=len(result.calls))
        return result


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        log.warning("pipeline.cleanup_failed", file=str(path), error=str(e))


def _log_phase(phase: PhaseProgress) -> None:
    log.info(
        "pipeline.phase",
        phase=phase.phase,
        status=phase.status.value,
        duration=phase.duration,
        detail=phase.detail or None,
        error=phase.error,
    )
