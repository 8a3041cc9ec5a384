"""
统一 API 响应封装（common.response）

目标与作用：
- 所有接口返回结构保持一致，前端只需判断 success 即可区分成功/失败
- 业务代码只关注 code/message/data/extra，不直接操作 DRF Response
- 与 BizError 体系对齐，异常处理器与正常返回共用同一字段语义

约定返回结构：
{
    "success": true,      # code == 0 时为 true
    "code": 0,            # 0 表示成功；非 0 表示业务错误码
    "message": "OK",      # 提示信息（给人看的）
    "data": {...},        # 业务数据（任意结构；列表、字典、None 均可）
    "extra": {...}        # 可选，附加元信息（分页信息等）
}
"""

from typing import Any, Mapping, Optional

from rest_framework import status
from rest_framework.response import Response

from .exceptions import BizError

SUCCESS_CODE = 0  # 约定：成功永远是 0

Payload = dict[str, Any]


def build_payload(
        *,
        code: int = SUCCESS_CODE,
        message: str = "OK",
        data: Any = None,
        extra: Optional[Mapping[str, Any]] = None,
) -> Payload:
    """
    构造统一的响应字典，不涉及 HTTP/DRF
    """
    payload: Payload = {
        "success": code == SUCCESS_CODE,
        "code": code,
        "message": message,
        "data": data,
    }
    if extra:
        payload["extra"] = dict(extra)
    return payload


def payload_from_biz_error(exc: BizError, data: Any = None) -> Payload:
    """根据 BizError 构造 payload，供异常处理器使用"""
    return build_payload(
        code=exc.code,
        message=exc.message,
        data=data,
        extra=exc.extra,
    )


def build_page_extra(
        *,
        page: int,
        page_size: int,
        total: int,
        has_next: bool,
        has_previous: bool,
        total_pages: int | None = None,
) -> Mapping[str, Any]:
    """分页元信息：页码、条数、总数与前后页标记"""
    extra = {
        "page": page,
        "page_size": page_size,
        "total": total,
        "has_next": has_next,
        "has_previous": has_previous,
    }
    if total_pages is not None:
        extra["total_pages"] = total_pages
    return extra


def api_response(
        *,
        code: int = SUCCESS_CODE,
        message: str = "OK",
        data: Any = None,
        http_status: int = status.HTTP_200_OK,
        extra: Optional[Mapping[str, Any]] = None,
) -> Response:
    """
    统一构造 DRF Response，所有接口/异常的最终出口
    """
    payload = build_payload(code=code, message=message, data=data, extra=extra)
    return Response(payload, status=http_status)


def success(data: Any = None, message: str = "OK") -> Response:
    """
    业务成功返回（HTTP 200，code 0）
    """
    return api_response(data=data, message=message, http_status=status.HTTP_200_OK)


def created(data: Any = None, message: str = "Created") -> Response:
    """
    新建资源成功（HTTP 201，code 0）
    """
    return api_response(data=data, message=message, http_status=status.HTTP_201_CREATED)


def deleted(message: str = "Deleted") -> Response:
    """
    删除成功：保持 200 与统一结构，避免 204 无响应体导致前端无法读取 message
    """
    return api_response(data=None, message=message, http_status=status.HTTP_200_OK)


def page_success(
        *,
        items: Any,
        page: int,
        page_size: int,
        total: int,
        has_next: bool,
        has_previous: bool,
        total_pages: int | None = None,
        message: str = "OK",
) -> Response:
    """
    分页成功返回

    结构示例：
    {
        "success": true,
        "code": 0,
        "message": "OK",
        "data": [...],
        "extra": {"page": 1, "page_size": 20, "total": 120, "has_next": true, "has_previous": false}
    }
    """
    extra = build_page_extra(
        page=page,
        page_size=page_size,
        total=total,
        has_next=has_next,
        has_previous=has_previous,
        total_pages=total_pages,
    )
    return api_response(data=items, message=message, extra=extra)
