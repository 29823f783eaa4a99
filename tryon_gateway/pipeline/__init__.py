"""Generation orchestration."""

from .orchestrator import GenerationOrchestrator

__all__ = ["GenerationOrchestrator"]
