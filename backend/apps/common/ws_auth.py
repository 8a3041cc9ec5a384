# -*- coding: utf-8 -*-
"""
WebSocket JWT 鉴权中间件

- 解析握手中的 Authorization 头（Bearer Token）或 query 参数 token
- 校验 SimpleJWT access token 并注入 scope["user"]，未通过时保持匿名，由 Consumer 决定是否断开
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError as SimpleJWTError
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.tokens import AccessToken

from apps.common.infra.logger import get_logger, logger_extra

logger = get_logger(__name__)


@database_sync_to_async
def _get_user(user_id) -> Optional[object]:
    User = get_user_model()
    return User.objects.filter(id=user_id, is_active=True).first()


def _extract_token(scope) -> Optional[str]:
    headers = dict(scope.get("headers") or [])
    auth_header = headers.get(b"authorization", b"").decode()
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    params = parse_qs(scope.get("query_string", b"").decode())
    return params.get("token", [None])[0]


class JWTAuthMiddleware(BaseMiddleware):
    """WebSocket JWT 认证中间件"""

    async def __call__(self, scope, receive, send):
        user = AnonymousUser()
        token = _extract_token(scope)
        if token:
            try:
                access = AccessToken(token)
                db_user = await _get_user(access.get(jwt_settings.USER_ID_CLAIM))
                if db_user is not None:
                    user = db_user
            except SimpleJWTError:
                logger.warning("WebSocket 鉴权失败：令牌无效", extra=logger_extra({"reason": "invalid_token"}))
        scope["user"] = user
        return await super().__call__(scope, receive, send)
