import math
from typing import Any, Optional
from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from cardswap.services.result import ServiceResult

def api_response(
    status_code: int,
    status: bool,
    message: str,
    data: Any = None,
    pagination: Optional[dict] = None,
) -> JSONResponse:
    """Render the uniform {status, message, data, pagination?} envelope."""
    body = {
        "status": status,
        "message": message,
        "data": jsonable_encoder(data) if data is not None else [],
    }
    if pagination:
        body["pagination"] = pagination
    return JSONResponse(status_code=status_code, content=body)

def build_pagination(page: int, per_page: int, total: int) -> dict:
    total_pages = math.ceil(total / per_page) if per_page else 0
    return {
        "current_page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": total_pages,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }

def raise_for_result(result: ServiceResult) -> Any:
    if not result.success:
        raise HTTPException(status_code=result.status_code, detail=result.error)
    return result.data
