"""Deobfuscation transform pipeline.

This module provides the TransformPipeline class that reads feature flags
from DeobfuscationConfig, instantiates the enabled stages in their fixed
order and threads one source unit through them.

The stage order is:
1. StringTableResolver (string_table)
2. DeadCodeStripper (dead_code)
3. SourceFormatter (formatting)

Inlining runs first so that dead-code patterns hidden behind string table
lookups become visible, and formatting runs last so that it sees the final
structure.  A failing stage never aborts the pipeline: its input is passed
on unchanged and the failure is recorded.

Example:
    >>> from deobfuscator.core.config import DeobfuscationConfig
    >>> pipeline = TransformPipeline(DeobfuscationConfig(name="demo"))
    >>> result = pipeline.run_detailed('var _0x1 = ["hi"];\\nalert(_0x1[0]);')
    >>> result.success
    True
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from deobfuscator.core.config import DeobfuscationConfig
from deobfuscator.processors.dead_code import DeadCodeStripper
from deobfuscator.processors.formatter import SourceFormatter
from deobfuscator.processors.source_transformer import (
    SourceTransformer,
    SourceUnit,
    TransformResult,
)
from deobfuscator.processors.string_table import StringTableResolver
from deobfuscator.utils.logger import get_logger

logger = get_logger("deobfuscator.core.transform_pipeline")


@dataclass
class PipelineResult:
    """Outcome of running every enabled stage on one source unit.

    Attributes:
        source: Final source after the last stage.
        stage_results: Per-stage results keyed by stage name, in run order.
        errors: Errors from stages that failed and were skipped.
        warnings: Non-fatal warnings raised by any stage.
    """

    source: SourceUnit
    stage_results: dict[str, TransformResult] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True when no stage had to be skipped."""
        return not self.errors

    @property
    def failed_stages(self) -> list[str]:
        return [name for name, result in self.stage_results.items() if not result.success]

    @property
    def transformation_count(self) -> int:
        return sum(result.transformation_count for result in self.stage_results.values())

    def stage_labels(self) -> list[str]:
        """Return ``name:ok`` / ``name:skipped`` labels for reporting."""
        return [
            f"{name}:{'ok' if result.success else 'skipped'}"
            for name, result in self.stage_results.items()
        ]


def _build_resolver(config: DeobfuscationConfig) -> SourceTransformer:
    return StringTableResolver(
        identifier_pattern=config.option("identifier_pattern"),
        binding=config.option("reference_binding"),
    )


def _build_stripper(config: DeobfuscationConfig) -> SourceTransformer:
    return DeadCodeStripper(
        strip_dead_branches=config.option("strip_dead_branches"),
        strip_empty_functions=config.option("strip_empty_functions"),
        strip_console_clear=config.option("strip_console_clear"),
        max_passes=config.option("max_passes"),
    )


def _build_formatter(config: DeobfuscationConfig) -> SourceTransformer:
    return SourceFormatter(
        engines=config.option("formatter_engines"),
        indent_size=config.option("indent_size"),
        prettier_command=config.option("prettier_command"),
        timeout=config.option("format_timeout"),
    )


class TransformPipeline:
    """Fixed-order pipeline: resolve, then strip, then format.

    Stages are instantiated afresh for each run, so one pipeline may be
    shared between worker threads.

    Attributes:
        config: The DeobfuscationConfig controlling which stages run.
    """

    # Ordered mapping of feature flag -> stage factory
    _STAGE_ORDER: list[tuple[str, Callable[[DeobfuscationConfig], SourceTransformer]]] = [
        ("string_table", _build_resolver),
        ("dead_code", _build_stripper),
        ("formatting", _build_formatter),
    ]

    def __init__(self, config: DeobfuscationConfig | None = None) -> None:
        self.config = config or DeobfuscationConfig(name="default")
        logger.debug(
            f"TransformPipeline initialized with config '{self.config.name}', "
            f"features: {self.config.features}"
        )

    def get_enabled_stages(self) -> list[SourceTransformer]:
        """Return fresh stage instances for every enabled feature, in order."""
        stages: list[SourceTransformer] = []
        for feature_flag, factory in self._STAGE_ORDER:
            if not self.config.is_enabled(feature_flag):
                logger.debug(f"Stage '{feature_flag}' disabled")
                continue
            stages.append(factory(self.config))
        return stages

    def run_detailed(self, unit: SourceUnit, label: str = "<source>") -> PipelineResult:
        """Run every enabled stage and report per-stage outcomes.

        Args:
            unit: Source text to transform.
            label: Name used in log messages (usually the file name).
        """
        stages = self.get_enabled_stages()
        result = PipelineResult(source=unit)

        for idx, stage in enumerate(stages):
            logger.debug(f"Applying stage {idx + 1}/{len(stages)} to {label}: {stage.name}")
            stage_result = stage.transform(result.source)
            result.stage_results[stage.name] = stage_result
            result.warnings.extend(stage_result.warnings)

            if not stage_result.success:
                logger.warning(
                    f"Stage {stage.name} failed on {label}, passing its input on: "
                    f"{'; '.join(stage_result.errors)}"
                )
                result.errors.extend(stage_result.errors)
                continue

            result.source = stage_result.source
            logger.debug(
                f"{stage.name} completed on {label}: "
                f"{stage_result.transformation_count} rewrite(s)"
            )

        logger.debug(
            f"Pipeline completed for {label}: {result.transformation_count} total rewrite(s)"
        )
        return result

    def run(self, unit: SourceUnit) -> SourceUnit:
        """Return ``format(strip(resolve(unit)))`` for the enabled stages."""
        return self.run_detailed(unit).source
