"""Core deobfuscation workflow.

Classes:
    DeobfuscationConfig: Configuration data model
    ProfileManager: Profile save/load/validation manager
    TransformPipeline: Fixed-order resolve/strip/format pipeline
    FileProcessor: Per-file backup, external pass, pipeline and write
    BatchOrchestrator: Directory-level batch runner
    BatchReport: Per-file outcomes of a batch run
"""

from deobfuscator.core.config import DeobfuscationConfig
from deobfuscator.core.profile_manager import ProfileManager

__all__ = [
    "DeobfuscationConfig",
    "ProfileManager",
]
