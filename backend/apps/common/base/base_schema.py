# apps/common/base/base_schema.py

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Any, ClassVar, Dict, Generic, Iterable, Mapping, Optional, TypeVar

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from apps.common.exceptions import ValidationError

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound="BaseSchema[Any]")


def ensure_aware_datetime(value: datetime | str | None, *, field_name: str) -> Optional[datetime]:
    """
    将 ISO 字符串或 naive datetime 统一转换为时区感知的 datetime；None 原样返回
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValidationError(message=f"{field_name}格式不正确，应为 ISO 8601 时间")
        value = parsed
    if not isinstance(value, datetime):
        raise ValidationError(message=f"{field_name}格式不正确")
    if timezone.is_naive(value):
        value = timezone.make_aware(value, timezone.get_default_timezone())
    return value


@dataclass
class BaseSchema(ABC, Generic[T]):
    """
    业务 Schema / DTO 基类

    目的：
        - Service 层在 Model 与外部输入之间传递结构化数据；
        - 聚合字段校验逻辑，替代零散的 serializer 校验；
        - 提供通用的字典化能力

    子类示例：
        @dataclass
        class ClarificationAskSchema(BaseSchema):
            question: str

            def validate(self):
                if not self.question:
                    raise ValidationError("问题内容不能为空")
    """

    #: 是否在 __post_init__ 中自动执行 validate
    auto_validate: ClassVar[bool] = False

    def __post_init__(self):
        if self.auto_validate:
            self.validate()

    @abstractmethod
    def validate(self) -> None:
        """子类实现字段/业务约束校验，出错时抛 BizError"""

    def to_dict(
            self,
            *,
            exclude_none: bool = False,
            exclude: Iterable[str] | None = None,
    ) -> Dict[str, Any]:
        """将 Schema 转为 dict，支持过滤 None 或移除指定字段"""
        data = asdict(self)
        if exclude_none:
            data = {key: value for key, value in data.items() if value is not None}
        for key in exclude or ():
            data.pop(key, None)
        return data

    @classmethod
    def from_dict(
            cls: type[SchemaType],
            data: Mapping[str, Any],
            *,
            auto_validate: Optional[bool] = None,
    ) -> SchemaType:
        """
        将外部 payload 转为 Schema：
        - 忽略未声明的字段，避免前端多传字段导致 TypeError
        - 缺少必填字段时抛 ValidationError
        - auto_validate 为 True 且类未开启自动校验时补一次校验
        """
        if not isinstance(data, dict):
            data = {key: data.get(key) for key in data.keys()}
        known = {f.name for f in fields(cls)}
        payload = {key: value for key, value in data.items() if key in known}
        try:
            instance = cls(**payload)  # type: ignore[arg-type]
        except TypeError as exc:
            raise ValidationError(message="缺少必填字段", extra={"detail": str(exc)}) from exc
        if auto_validate and not cls.auto_validate:
            instance.validate()
        return instance
