"""
Standard response envelope.

Every feature endpoint answers with:

    {"success": bool, "message": str, "statusCode": int, "data": Any,
     "timestamp": "<ISO 8601 UTC>"}
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def generate_response(
    success: bool,
    message: str,
    status_code: int,
    data: Any = None,
) -> Dict[str, Any]:
    return {
        "success": success,
        "message": message,
        "statusCode": status_code,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }


def envelope(message: str, data: Any = None, status_code: int = 200) -> JSONResponse:
    """Success envelope as a JSONResponse (row values may be datetimes/decimals)."""
    body = generate_response(True, message, status_code, data)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def error_envelope(message: str, status_code: int, data: Any = None) -> JSONResponse:
    body = generate_response(False, message, status_code, data)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))
