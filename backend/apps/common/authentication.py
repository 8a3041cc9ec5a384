"""
统一 JWT 认证封装（apps.common.authentication）

- 令牌由外部身份服务签发（共享 SIMPLE_JWT 签名密钥），本服务只负责校验
- 优先从 Authorization: Bearer <token> 读取，可选从 Cookie 读取
- 未提供凭证 → 返回 None（匿名，由权限类决定是否放行）
- 凭证无效/过期 → TokenError(40102)；其他认证失败 → AuthError(40100)
"""

from __future__ import annotations

from typing import Any, Optional

from django.conf import settings
from rest_framework.request import Request
from rest_framework_simplejwt.authentication import (
    JWTAuthentication as SimpleJWTAuthentication,
)
from rest_framework_simplejwt.exceptions import (
    InvalidToken,
    AuthenticationFailed as SimpleJWTAuthFailed,
)

from .exceptions import TokenError, AuthError
from .infra.logger import get_logger, logger_extra
from .utils.request_context import update_request_user

logger = get_logger(__name__)


class JWTAuthentication(SimpleJWTAuthentication):
    """统一 JWT 认证入口"""

    #: 是否允许从 Cookie 读取 access token
    use_cookie: bool = getattr(settings, "JWT_USE_COOKIE", False)
    #: Cookie 中存放 access token 的键名
    cookie_name: str = getattr(settings, "JWT_ACCESS_COOKIE_NAME", "arena_access")

    def authenticate(self, request: Request) -> Optional[tuple[Any, Any]]:
        header = self.get_header(request)
        raw_token = self.get_raw_token(header) if header is not None else None
        if raw_token is None and self.use_cookie:
            raw_token = request.COOKIES.get(self.cookie_name) or None
        if raw_token is None:
            return None

        try:
            validated_token = self.get_validated_token(raw_token)
            user = self.get_user(validated_token)
        except InvalidToken as exc:
            logger.warning("认证失败：无效或过期的 JWT", extra=logger_extra({"reason": "invalid_token"}))
            raise TokenError(message="令牌无效或已过期，请重新登录") from exc
        except SimpleJWTAuthFailed as exc:
            detail = getattr(exc, "detail", None)
            message = str(detail) if detail is not None else "认证失败，请重新登录"
            logger.warning("认证失败：用户校验失败", extra=logger_extra({"reason": message}))
            raise AuthError(message=message) from exc

        update_request_user(user)
        return user, validated_token
