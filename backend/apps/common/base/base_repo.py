# apps/common/base/base_repo.py

from __future__ import annotations

from abc import ABC
from typing import Any, Generic, Optional, TypeVar

from django.db.models import Model, QuerySet

from apps.common.exceptions import NotFoundError

T = TypeVar("T", bound=Model)


class BaseRepo(ABC, Generic[T]):
    """
    Repository（数据访问层）基类：
    - 统一封装 Django ORM 读写细节，给 Service 提供稳定接口
    - 集中管理 select_related / 行锁等查询配置，减少各模块重复 CRUD
    - 用法示例：class ContestRepo(BaseRepo[Contest]): model = Contest
    """

    #: 子类必须指定对应的模型
    model: type[T]
    #: 未命中时的提示语，子类可覆盖
    not_found_message: str = "资源不存在"

    def get_queryset(self) -> QuerySet[T]:
        """返回默认 QuerySet，子类可覆盖以附加 select_related/prefetch"""
        if not getattr(self, "model", None):
            raise NotImplementedError("BaseRepo 子类必须声明 model 属性")
        return self.model._default_manager.all()

    def filter(self, *, queryset: Optional[QuerySet[T]] = None, **filters) -> QuerySet[T]:
        qs = queryset if queryset is not None else self.get_queryset()
        return qs.filter(**filters)

    def get_or_none(self, *, queryset: Optional[QuerySet[T]] = None, **filters) -> Optional[T]:
        """返回符合条件的单个对象，未命中则为 None"""
        return self.filter(queryset=queryset, **filters).first()

    def get_or_raise(self, *, queryset: Optional[QuerySet[T]] = None, message: str | None = None, **filters) -> T:
        """返回符合条件的单个对象，未命中抛业务级 404"""
        try:
            return self.filter(queryset=queryset, **filters).get()
        except self.model.DoesNotExist as exc:  # type: ignore[attr-defined]
            raise NotFoundError(message=message or self.not_found_message) from exc

    def lock(self, **filters) -> T:
        """
        行锁读取（select_for_update），必须在事务内调用
        """
        return self.get_or_raise(queryset=self.model._default_manager.select_for_update(), **filters)

    def exists(self, **filters) -> bool:
        return self.filter(**filters).exists()

    def count(self, **filters) -> int:
        return self.filter(**filters).count()

    # ------------------------
    # 写操作
    # ------------------------

    def create(self, data: dict[str, Any]) -> T:
        return self.model._default_manager.create(**data)

    def update(self, instance: T, data: dict[str, Any]) -> T:
        """按字段更新并保存，只写入变更字段"""
        for field, value in data.items():
            setattr(instance, field, value)
        if data:
            instance.save(update_fields=list(data.keys()))
        return instance

    def delete(self, instance: T) -> None:
        instance.delete()
