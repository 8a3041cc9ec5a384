from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Optional

from apps.common.base.base_schema import BaseSchema
from apps.common.exceptions import ValidationError


# Schema：定义代码提交的入参与校验

MAX_CODE_LENGTH = 64 * 1024


def parse_problem_index(value: Any, *, required: bool = True) -> Optional[int]:
    """题号需为非负整数；查询参数中为字符串"""
    if value is None or value == "":
        if required:
            raise ValidationError(message="缺少题号")
        return None
    if isinstance(value, bool):
        raise ValidationError(message="题号必须为整数")
    try:
        index = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(message="题号必须为整数") from exc
    if index < 0:
        raise ValidationError(message="题号必须为整数")
    return index


@dataclass
class SubmissionCreateSchema(BaseSchema[None]):
    """
    提交代码入参：
    - 比赛标识来自路由，题号、语言与代码来自请求体
    """

    auto_validate: ClassVar[bool] = True
    contest_slug: str
    problem_index: Any
    language: str
    code: str

    def validate(self) -> None:
        if not self.contest_slug:
            raise ValidationError(message="缺少比赛标识")
        self.problem_index = parse_problem_index(self.problem_index)
        self.language = (self.language or "").strip().lower()
        if not self.language:
            raise ValidationError(message="请选择编程语言")
        if not self.code or not str(self.code).strip():
            raise ValidationError(message="代码不能为空")
        if len(self.code) > MAX_CODE_LENGTH:
            raise ValidationError(message="代码过长，请控制在 64KB 以内")
