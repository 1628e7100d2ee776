"""
Uniform JSON response bodies
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success_response(
    status_code: int, message: str, data: Any = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "success",
            "message": message,
            "data": jsonable_encoder(data),
        },
    )


def error_response(
    status_code: int,
    message: str,
    error: str,
    errors: Optional[Dict[str, List[str]]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "status_code": status_code,
            "errors": errors or {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
