from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from envgate.exceptions import EnvGateError

STATUS_OK = "ok"


@dataclass
class GateResult:
    """Outcome of a gate operation as handed to the caller.

    Failures keep the typed error so callers can branch on its kind; the
    caller-facing form is always a status string.
    """
    status: str = STATUS_OK
    error: Optional[EnvGateError] = None
    result: Any = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, error: EnvGateError) -> "GateResult":
        return cls(status=error.message, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> int:
        return 200 if self.error is None else self.error.status_code

    def to_dict(self) -> dict[str, Any]:
        payload = self.result if self.ok and self.result is not None else self.status
        return {"result": payload, **self.extra}
