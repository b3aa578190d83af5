from datetime import datetime
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from typing import Any, Optional, Dict


def _envelope(
    ok: bool,
    message: str,
    data: Optional[Any] = None,
    errors: Optional[Any] = None,
    meta: Optional[Dict] = None,
) -> Dict[str, Any]:
    body = {
        "success": ok,
        "message": message,
        "data": data,
        "errors": errors,
        "timestamp": f"{datetime.utcnow().isoformat()}Z",
    }
    if meta is not None:
        body["meta"] = meta
    return body


def success(
    data: Optional[Any] = None,
    message: str = "Success",
    meta: Optional[Dict] = None,
):
    # Pydantic models, datetimes and Decimals all go through jsonable_encoder
    return jsonable_encoder(_envelope(True, message, data=data, meta=meta))


def error(
    message: str = "Error",
    errors: Optional[Any] = None,
    status_code: int = 400,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(_envelope(False, message, errors=errors or [])),
    )


def paginated_response(
    items,
    total: int,
    page: int,
    limit: int,
):
    return success(
        data=items,
        meta={
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit,
        },
    )
