"""
通用权限封装（apps.common.permissions）

职责：
- 放置全局可复用的权限类与角色判断工具
- 角色来源于用户目录（User.role：student / mentor / community_admin / admin）
- 出错时统一抛出 BizError 子类（AuthError / PermissionDeniedError），由全局异常处理器统一包装响应
"""

from __future__ import annotations

from typing import Any, Iterable

from rest_framework.permissions import BasePermission, SAFE_METHODS
from rest_framework.request import Request

from .exceptions import AuthError, PermissionDeniedError

ROLE_STUDENT = "student"
ROLE_MENTOR = "mentor"
ROLE_COMMUNITY_ADMIN = "community_admin"
ROLE_ADMIN = "admin"

# 可以创建/管理比赛的角色
CONTEST_MANAGER_ROLES = frozenset({ROLE_MENTOR, ROLE_COMMUNITY_ADMIN, ROLE_ADMIN})


def _ensure_authenticated(request: Request):
    """确保用户已登录，返回 User；否则抛 AuthError(401)"""
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        raise AuthError(message="请先登录后再执行此操作")
    return user


def is_platform_admin(user) -> bool:
    """平台管理员：超管 / staff / admin 角色"""
    if user is None or not getattr(user, "is_authenticated", False):
        return False
    return bool(user.is_superuser or user.is_staff or getattr(user, "role", None) == ROLE_ADMIN)


def has_role(user, roles: Iterable[str]) -> bool:
    if is_platform_admin(user):
        return True
    return getattr(user, "role", None) in set(roles)


def can_manage_community(user, community) -> bool:
    """
    社区管理权限：平台管理员、社区所有者、本社区的 community_admin
    """
    if is_platform_admin(user):
        return True
    if community is None or not getattr(user, "is_authenticated", False):
        return False
    if getattr(community, "owner_id", None) == user.id:
        return True
    return getattr(user, "role", None) == ROLE_COMMUNITY_ADMIN and user.community_id == community.id


def ensure_role(user, roles: Iterable[str], message: str | None = None) -> None:
    """不具备指定角色时抛出无权异常"""
    if not has_role(user, roles):
        raise PermissionDeniedError(message=message or "当前角色无权执行该操作")


class AllowAny(BasePermission):
    """允许任何请求通过（公开接口）"""

    def has_permission(self, request: Request, view: Any) -> bool:
        return True


class IsAuthenticated(BasePermission):
    """
    需要已登录用户；与 DRF 默认实现等价，但出错时抛 BizError
    """

    def has_permission(self, request: Request, view: Any) -> bool:
        _ensure_authenticated(request)
        return True


class IsAuthenticatedOrReadOnly(BasePermission):
    """只读放行，写操作需登录"""

    def has_permission(self, request: Request, view: Any) -> bool:
        if request.method in SAFE_METHODS:
            return True
        _ensure_authenticated(request)
        return True


class RolePermission(BasePermission):
    """
    基于角色的权限类

    用法：在视图上声明 required_roles（全部方法）或 required_roles_map（按 HTTP 方法）
    """

    def has_permission(self, request: Request, view: Any) -> bool:
        roles_map = getattr(view, "required_roles_map", None) or {}
        roles = roles_map.get(request.method.lower(), getattr(view, "required_roles", None))
        if not roles:
            return True
        user = _ensure_authenticated(request)
        ensure_role(user, roles)
        return True

