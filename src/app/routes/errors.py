"""
AppError → HTTPException 매핑.
"""

from fastapi import HTTPException

from src.domain.errors import AppError, ErrorCodes

# 코드별 HTTP 상태 (없으면 400)
STATUS_BY_CODE: dict[str, int] = {
    ErrorCodes.BUILD_NOT_FOUND: 404,
    ErrorCodes.SESSION_NOT_FOUND: 404,
    ErrorCodes.BUILD_BUSY: 409,
    ErrorCodes.CHAT_BUSY: 409,
}


def to_http_exception(error: AppError) -> HTTPException:
    """AppError를 detail={"code", ...context} 형태의 HTTPException으로 변환."""
    return HTTPException(
        status_code=STATUS_BY_CODE.get(error.code, 400),
        detail=error.to_dict(),
    )
