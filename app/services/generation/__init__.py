"""Document generation pipeline."""

from .orchestrator import GenerationOrchestrator, build_generation_orchestrator

__all__ = ["GenerationOrchestrator", "build_generation_orchestrator"]
