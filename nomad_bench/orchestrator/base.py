"""Shared orchestrator client types."""

from dataclasses import dataclass
from typing import Any, Dict, Optional


class OrchestratorError(Exception):
    """Exception raised when a call to the orchestrator API fails."""

    def __init__(self, operation: str, message: str, cause: Optional[Exception] = None,
                 status_code: Optional[int] = None):
        self.operation = operation
        self.cause = cause
        self.status_code = status_code
        super().__init__(f"[{operation}] {message}")


@dataclass(frozen=True)
class Allocation:
    """An allocation as listed by the orchestrator. Observed, never modified."""

    id: str
    client_status: str
    job_id: Optional[str] = None
    node_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Allocation":
        """Build an allocation from one API list item.

        Raises:
            ValueError: If ``ClientStatus`` is present but not a string.
        """
        status = data.get("ClientStatus")
        if status is not None and not isinstance(status, str):
            raise ValueError(f"ClientStatus must be a string, got {type(status).__name__}")
        return cls(
            id=data.get("ID", ""),
            client_status=status or "",
            job_id=data.get("JobID"),
            node_id=data.get("NodeID"),
        )


@dataclass(frozen=True)
class JobStub:
    """A registered job as listed by the orchestrator."""

    id: str
    name: str = ""
    status: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "JobStub":
        return cls(
            id=data.get("ID", ""),
            name=data.get("Name", ""),
            status=data.get("Status", ""),
        )


@dataclass(frozen=True)
class QueryMeta:
    """Metadata returned alongside a (blocking) query."""

    last_index: int
    known_leader: bool = True
    last_contact_ms: int = 0  # time since the answering server last heard from the leader
