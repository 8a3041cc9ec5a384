"""
自定义全局异常处理器（DRF 入口）：
- 统一前端收到的错误结构 {success, code, message, data, extra}
- 处理策略：
  1) BizError 及子类 → 直接转换为统一结构
  2) DRF 内置异常（Validation/Authentication/Permission/NotFound/Throttled）→ 映射为 BizError
  3) Django Http404 → NotFoundError
  4) 未知/系统异常 → 记录完整日志，返回 50000 + HTTP 500，不泄露内部信息
"""

from typing import Any

from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import (
    ValidationError as DRFValidationError,
    AuthenticationFailed,
    NotAuthenticated,
    PermissionDenied as DRFPermissionDenied,
    NotFound as DRFNotFound,
    Throttled,
    APIException,
)
from rest_framework.response import Response

from .exceptions import (
    BizError,
    BadRequestError,
    ValidationError as BizValidationError,
    AuthError,
    PermissionDeniedError,
    NotFoundError,
    RateLimitError,
)
from .response import api_response, payload_from_biz_error
from .infra.logger import get_logger, logger_extra
from .utils.request_context import get_request_context

logger = get_logger(__name__)

INTERNAL_ERROR_CODE = 50000


def _extract_message(detail: Any) -> str:
    """
    从 DRF 的 detail 结构中提取第一条可读错误信息（str / list / dict 嵌套）
    """
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list) and detail:
        return _extract_message(detail[0])
    if isinstance(detail, dict) and detail:
        first_value = next(iter(detail.values()))
        return _extract_message(first_value)
    return str(detail)


def _handle_biz_error(exc: BizError) -> Response:
    payload = payload_from_biz_error(exc)
    return Response(payload, status=exc.http_status)


def _map_drf_exception_to_biz(exc: Exception) -> BizError | None:
    """
    把 DRF / Django 内置异常映射为 BizError 子类；映射不到返回 None
    """
    if isinstance(exc, DRFValidationError):
        return BizValidationError(message=_extract_message(exc.detail), extra={"raw_detail": exc.detail})
    if isinstance(exc, (AuthenticationFailed, NotAuthenticated)):
        return AuthError(message=_extract_message(exc.detail))
    if isinstance(exc, DRFPermissionDenied):
        return PermissionDeniedError(message=_extract_message(exc.detail))
    if isinstance(exc, (DRFNotFound, Http404)):
        return NotFoundError()
    if isinstance(exc, Throttled):
        return RateLimitError(
            message=_extract_message(exc.detail),
            extra={"wait": getattr(exc, "wait", None)},
        )
    if isinstance(exc, APIException):
        # 其它 DRF 异常（如 ParseError/UnsupportedMediaType）按通用请求错误处理
        mapped = BadRequestError(message=_extract_message(exc.detail))
        mapped.http_status = exc.status_code
        return mapped
    return None


def _handle_unexpected_exception(exc: Exception, context: dict) -> Response:
    """
    程序 bug / 持久层故障：记录完整堆栈，返回统一的 500 响应
    """
    ctx = get_request_context()
    req = context.get("request")
    view = context.get("view")
    user = getattr(req, "user", None)
    logger.exception(
        "接口出现未处理异常",
        exc_info=exc,
        extra=logger_extra(
            {
                "path": getattr(req, "path", None),
                "method": getattr(req, "method", None),
                "user_id": getattr(user, "id", None) if getattr(user, "is_authenticated", False) else None,
            }
        ),
    )
    return api_response(
        code=INTERNAL_ERROR_CODE,
        message="内部服务器错误，请联系管理员或稍后重试",
        data=None,
        http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        extra={
            "view": view.__class__.__name__ if view else None,
            "request_id": ctx.get("request_id"),
        },
    )


def custom_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    DRF 入口函数：全局异常处理器（settings.REST_FRAMEWORK["EXCEPTION_HANDLER"]）
    """
    if isinstance(exc, BizError):
        if exc.http_status >= 500:
            logger.warning("基础设施异常", extra=logger_extra({"error_code": exc.code, "detail": exc.message}))
        return _handle_biz_error(exc)

    mapped = _map_drf_exception_to_biz(exc)
    if mapped is not None:
        return _handle_biz_error(mapped)

    return _handle_unexpected_exception(exc, context)
