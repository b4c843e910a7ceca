from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse


def now() -> datetime:
    return datetime.now(timezone.utc)


def iso_from_epoch(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def build_success(data: Optional[Dict[str, Any]] = None, message: Optional[str] = None,
                  request_id: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    body["data"] = data
    if request_id:
        body["requestId"] = request_id
    return body


def build_error(error: str, code: str = "UNKNOWN_ERROR",
                details: Optional[Any] = None,
                request_id: Optional[str] = None,
                extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:

    body: Dict[str, Any] = {"success": False, "error": error, "code": code}
    if details is not None:
        body["details"] = details
    if extra:
        body.update(extra)
    if request_id:
        body["requestId"] = request_id
    return body


def json_ok(content: Dict[str, Any], status_code: int = 200, headers=None) -> JSONResponse:
    return JSONResponse(content, status_code=status_code, headers=headers)

def json_error(content: Dict[str, Any], status_code: int = 500, headers=None) -> JSONResponse:
    return JSONResponse(content, status_code=status_code, headers=headers)

def success_response(data: Optional[Dict[str, Any]], status_code: int = 200, message: Optional[str] = None,
                     headers: Optional[Dict[str, Any]] = None, request_id: Optional[str] = None) -> JSONResponse:
    content = build_success(data, message=message, request_id=request_id)
    return json_ok(content, status_code=status_code, headers=headers)
