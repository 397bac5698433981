"""Success envelope shared by every enveloped endpoint."""

from typing import Any

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    data: Any,
    message: str = "Success",
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """Wrap ``data`` in ``{statusCode, data, message, success}``."""
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "data": jsonable_encoder(data),
            "message": message,
            "success": status_code < 400,
        },
    )
