from __future__ import annotations

from fastapi.responses import JSONResponse

from zonemgr.services.action_result import ActionResult


def action_response(result: ActionResult) -> JSONResponse:
    return JSONResponse(status_code=result.http_status, content=result.to_dict())
