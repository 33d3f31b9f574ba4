from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

STATUS_RUNNING = "RUNNING"


class EnvironmentInfo(BaseModel):
    """Snapshot of one environment as reported by the orchestrator."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    subdomain: str
    task_definition: str = ""
    ip_address: str = ""
    last_status: str = STATUS_RUNNING
    created: datetime
    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("created")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class BaseOrchestrator(ABC):
    """Container orchestrator that owns the environments.

    Every method raises ``OrchestratorError`` with the orchestrator's own
    error text when the call fails.
    """

    @abstractmethod
    async def list_environments(self, status: str = STATUS_RUNNING) -> list[EnvironmentInfo]:
        """Return environments currently in ``status``."""
        pass

    @abstractmethod
    async def launch(
        self,
        subdomain: str,
        parameters: dict[str, str],
        *task_definitions: str,
    ) -> None:
        """Start the task definitions under ``subdomain``."""
        pass

    @abstractmethod
    async def terminate(self, task_id: str) -> None:
        """Stop a single task by id."""
        pass

    @abstractmethod
    async def terminate_by_subdomain(self, subdomain: str) -> None:
        """Stop every task serving ``subdomain``."""
        pass

    @abstractmethod
    async def logs(
        self,
        subdomain: str,
        since: Optional[datetime] = None,
        tail: int = 0,
    ) -> list[str]:
        """Return log lines for ``subdomain``. ``tail=0`` means all lines."""
        pass
