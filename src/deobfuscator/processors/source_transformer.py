"""Base infrastructure for source-to-source transformations.

Every deobfuscation stage consumes one source string and produces a new one.
Stages extend :class:`SourceTransformer`, which provides error tracking,
transformation counting, logging, and the guarantee that a failing stage
hands back its *input* untouched so the caller can carry on with it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from deobfuscator.utils.logger import get_logger

logger = get_logger("deobfuscator.processors.source_transformer")

# One file's full text at some pipeline stage
SourceUnit = str


@dataclass
class TransformResult:
    """Result of a source transformation.

    Attributes:
        source: The transformed source, or the unchanged input when the
            transformation failed.
        success: Whether the transformation completed without raising.
        transformation_count: Number of rewrites performed.
        errors: Error messages describing a failure.
        warnings: Non-fatal conditions (e.g. an unsupported string table).

    Example:
        >>> result = DeadCodeStripper().transform("if (false) { a(); }")
        >>> result.success, result.transformation_count
        (True, 1)
    """

    source: SourceUnit
    success: bool
    transformation_count: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class SourceTransformer:
    """Base class for source transformations.

    Subclasses implement :meth:`apply`, which returns the rewritten source
    and may bump :attr:`transformation_count` or append to :attr:`warnings`.
    :meth:`transform` wraps it so that exceptions never escape.

    Attributes:
        name: Stage name used in logs and pipeline results.
        transformation_count: Rewrites performed by the last run.
        errors: Error messages collected during the last run.
        warnings: Warnings collected during the last run.
    """

    name = "transform"

    def __init__(self) -> None:
        self.transformation_count: int = 0
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.logger = logger

    def apply(self, source: SourceUnit) -> SourceUnit:
        raise NotImplementedError

    def transform(self, source: SourceUnit) -> TransformResult:
        """Apply this transformer to *source*.

        Returns:
            A TransformResult. On failure ``source`` is the original input,
            ``success`` is False and ``errors`` describes what went wrong.
        """
        self.transformation_count = 0
        self.errors = []
        self.warnings = []

        try:
            transformed = self.apply(source)
            if transformed is None:
                raise ValueError("Transformation returned None")

            self.logger.debug(
                f"{self.name}: {self.transformation_count} rewrite(s) applied"
            )
            return TransformResult(
                source=transformed,
                success=True,
                transformation_count=self.transformation_count,
                errors=self.errors,
                warnings=self.warnings,
            )

        except Exception as e:
            error_msg = f"{self.name} failed: {e.__class__.__name__}: {e}"
            self.logger.error(error_msg, exc_info=True)
            self.errors.append(error_msg)

            return TransformResult(
                source=source,
                success=False,
                transformation_count=0,
                errors=self.errors,
                warnings=self.warnings,
            )
