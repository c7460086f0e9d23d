"""Orchestrator API client and shared types."""

from .base import Allocation, JobStub, OrchestratorError, QueryMeta
from .client import NomadClient

__all__ = [
    "Allocation",
    "JobStub",
    "OrchestratorError",
    "QueryMeta",
    "NomadClient",
]
