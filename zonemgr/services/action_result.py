from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ActionResult:
    """Outcome of a mutation, passed back to the API as JSON."""

    status: str
    message: str
    output: str = ""
    code: str | None = None
    http_status: int = 200
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status != "error"

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"status": self.status, "message": self.message}
        if self.output:
            body["output"] = self.output
        if self.code:
            body["code"] = self.code
        body.update(self.data)
        return body


def rejected(message: str, code: str | None = None, **data: Any) -> ActionResult:
    return ActionResult("error", message, code=code, http_status=400, data=data)


def not_found(message: str) -> ActionResult:
    return ActionResult("error", message, code="ERR_NOT_FOUND", http_status=404)


def invalid_zone(message: str, output: str) -> ActionResult:
    return ActionResult("error", message, output=output, code="ERR_ZONE_INVALID", http_status=422)


def failed(message: str) -> ActionResult:
    return ActionResult("error", message, code="ERR_INTERNAL", http_status=500)
