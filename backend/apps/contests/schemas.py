# apps/contests/schemas.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Optional

from django.utils.text import slugify

from apps.common.base.base_schema import BaseSchema, ensure_aware_datetime
from apps.common.exceptions import ValidationError

from .models import Contest, Problem


# Schema 层：负责请求入参的结构化与校验，禁止写业务逻辑


def _clean_languages(values: Any) -> list[str]:
    if values is None:
        return []
    if not isinstance(values, (list, tuple)):
        raise ValidationError(message="allowed_languages 必须为字符串数组")
    cleaned: list[str] = []
    for item in values:
        name = str(item).strip().lower()
        if name and name not in cleaned:
            cleaned.append(name)
    return cleaned


def _ensure_choice(value: str, choices, field_name: str) -> None:
    if value not in choices:
        raise ValidationError(message=f"{field_name}取值不合法", extra={"allowed": list(choices)})


def _ensure_positive(value: Optional[int], field_name: str, *, allow_none: bool = True) -> None:
    if value is None:
        if not allow_none:
            raise ValidationError(message=f"{field_name}不能为空")
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(message=f"{field_name}必须为正整数")


_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _ensure_flag(value: Any, field_name: str) -> bool:
    """开关字段：接受布尔值或 true/false 等字符串，其他取值报错"""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower() if isinstance(value, (str, int)) else None
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValidationError(message=f"{field_name}必须为布尔值")


@dataclass
class ProblemSchema(BaseSchema[None]):
    """单道题目配置：题号由提交顺序决定"""

    auto_validate: ClassVar[bool] = True
    title: str
    description: str = ""
    difficulty: str = Problem.Difficulty.EASY
    points: int = 100
    time_limit_ms: int = 2000
    memory_limit_mb: int = 256
    sample_input: str = ""
    sample_output: str = ""
    test_cases: list = field(default_factory=list)
    tags: list = field(default_factory=list)

    def validate(self) -> None:
        self.title = (self.title or "").strip()
        if not self.title:
            raise ValidationError(message="题目名称不能为空")
        _ensure_choice(self.difficulty, Problem.Difficulty.values, "题目难度")
        _ensure_positive(self.points, "题目分值", allow_none=False)
        _ensure_positive(self.time_limit_ms, "时间限制", allow_none=False)
        _ensure_positive(self.memory_limit_mb, "内存限制", allow_none=False)
        if not isinstance(self.test_cases, list):
            raise ValidationError(message="测试用例必须为数组")
        cases = []
        for case in self.test_cases:
            if not isinstance(case, Mapping) or "input" not in case or "output" not in case:
                raise ValidationError(message="测试用例需包含 input 与 output")
            cases.append(
                {"input": str(case["input"]), "output": str(case["output"]),
                 "is_hidden": bool(case.get("is_hidden", True))}
            )
        self.test_cases = cases
        self.tags = [str(tag).strip() for tag in (self.tags or []) if str(tag).strip()]


def parse_problems(raw: Any) -> list[dict]:
    """将题目数组转为可直接落库的字典列表"""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError(message="problems 必须为数组")
    problems = []
    for item in raw:
        if not isinstance(item, Mapping):
            raise ValidationError(message="题目配置格式不正确")
        problems.append(ProblemSchema.from_dict(dict(item)).to_dict())
    return problems


@dataclass
class ContestCreateSchema(BaseSchema[None]):
    """
    创建比赛入参：
    - 覆盖比赛基础信息、时间窗口、规则与题目
    - 自动校验时间顺序；创建时题目可以为空，发布时再检查
    """

    auto_validate: ClassVar[bool] = True
    title: str
    community: str
    registration_start: Any
    registration_end: Any
    start_time: Any
    end_time: Any
    slug: str = ""
    description: str = ""
    contest_type: str = Contest.ContestType.INDIVIDUAL
    max_participants: Optional[int] = None
    allow_clarifications: bool = True
    freeze_leaderboard: bool = False
    freeze_minutes: Optional[int] = None
    max_attempts: Optional[int] = None
    scoring_mode: str = Contest.ScoringMode.ALL_OR_NOTHING
    allowed_languages: list = field(default_factory=list)
    problems: list = field(default_factory=list)

    def validate(self) -> None:
        self.title = (self.title or "").strip()
        if not self.title:
            raise ValidationError(message="比赛名称不能为空")
        if not self.community:
            raise ValidationError(message="须指定比赛所属社区")
        self.slug = slugify(self.slug or "") or ""
        self.registration_start = ensure_aware_datetime(self.registration_start, field_name="报名开始时间")
        self.registration_end = ensure_aware_datetime(self.registration_end, field_name="报名截止时间")
        self.start_time = ensure_aware_datetime(self.start_time, field_name="开始时间")
        self.end_time = ensure_aware_datetime(self.end_time, field_name="结束时间")
        _ensure_choice(self.contest_type, Contest.ContestType.values, "赛制")
        _ensure_choice(self.scoring_mode, Contest.ScoringMode.values, "计分方式")
        _ensure_positive(self.max_participants, "人数上限")
        _ensure_positive(self.max_attempts, "提交次数上限")
        _ensure_positive(self.freeze_minutes, "封榜时长")
        self.allow_clarifications = _ensure_flag(self.allow_clarifications, "答疑开关")
        self.freeze_leaderboard = _ensure_flag(self.freeze_leaderboard, "封榜开关")
        self.allowed_languages = _clean_languages(self.allowed_languages)
        self.problems = parse_problems(self.problems)


# 允许 PATCH 的字段；problems 单独处理（进行中/已有提交时禁止修改）
UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "contest_type",
        "registration_start",
        "registration_end",
        "start_time",
        "end_time",
        "max_participants",
        "allow_clarifications",
        "freeze_leaderboard",
        "freeze_minutes",
        "max_attempts",
        "scoring_mode",
        "allowed_languages",
        "problems",
    }
)

_DATETIME_FIELDS = {
    "registration_start": "报名开始时间",
    "registration_end": "报名截止时间",
    "start_time": "开始时间",
    "end_time": "结束时间",
}


@dataclass
class ContestUpdateSchema(BaseSchema[None]):
    """
    更新比赛入参：只包含请求中实际出现的字段
    - changes 为规范化后的字段字典；max_participants 传 null 表示不限人数
    """

    auto_validate: ClassVar[bool] = True
    contest_slug: str
    changes: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, contest_slug: str, data: Mapping[str, Any]) -> "ContestUpdateSchema":
        unknown = set(data.keys()) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(message="包含不可修改的字段", extra={"fields": sorted(unknown)})
        return cls(contest_slug=contest_slug, changes={key: data[key] for key in data.keys()})

    @property
    def changes_problems(self) -> bool:
        return "problems" in self.changes

    def validate(self) -> None:
        if not self.changes:
            raise ValidationError(message="请至少提供一个需要修改的字段")
        changes = self.changes
        for key, label in _DATETIME_FIELDS.items():
            if key in changes:
                value = ensure_aware_datetime(changes[key], field_name=label)
                if value is None:
                    raise ValidationError(message=f"{label}不能为空")
                changes[key] = value
        if "title" in changes:
            changes["title"] = (changes["title"] or "").strip()
            if not changes["title"]:
                raise ValidationError(message="比赛名称不能为空")
        if "contest_type" in changes:
            _ensure_choice(changes["contest_type"], Contest.ContestType.values, "赛制")
        if "scoring_mode" in changes:
            _ensure_choice(changes["scoring_mode"], Contest.ScoringMode.values, "计分方式")
        if "max_participants" in changes:
            _ensure_positive(changes["max_participants"], "人数上限")
        if "max_attempts" in changes:
            _ensure_positive(changes["max_attempts"], "提交次数上限")
        if "freeze_minutes" in changes:
            _ensure_positive(changes["freeze_minutes"], "封榜时长", allow_none=False)
        if "allowed_languages" in changes:
            changes["allowed_languages"] = _clean_languages(changes["allowed_languages"])
        if "allow_clarifications" in changes:
            changes["allow_clarifications"] = _ensure_flag(changes["allow_clarifications"], "答疑开关")
        if "freeze_leaderboard" in changes:
            changes["freeze_leaderboard"] = _ensure_flag(changes["freeze_leaderboard"], "封榜开关")
        if "problems" in changes:
            changes["problems"] = parse_problems(changes["problems"])


@dataclass
class RegistrationSchema(BaseSchema[None]):
    """报名入参：团队赛需附带队伍信息"""

    auto_validate: ClassVar[bool] = True
    contest_slug: str
    team_data: Optional[dict] = None

    def validate(self) -> None:
        if self.team_data is None:
            return
        if not isinstance(self.team_data, Mapping):
            raise ValidationError(message="team_data 必须为对象")
        name = str(self.team_data.get("name") or "").strip()
        if not name:
            raise ValidationError(message="队伍名称不能为空")
        members = self.team_data.get("members") or []
        if not isinstance(members, list):
            raise ValidationError(message="队伍成员必须为数组")
        self.team_data = {"name": name, "members": [str(m).strip() for m in members if str(m).strip()]}


@dataclass
class ClarificationAskSchema(BaseSchema[None]):
    auto_validate: ClassVar[bool] = True
    contest_slug: str
    question: str
    problem_index: Optional[int] = None

    def validate(self) -> None:
        self.question = (self.question or "").strip()
        if not self.question:
            raise ValidationError(message="问题内容不能为空")
        if len(self.question) > 2000:
            raise ValidationError(message="问题内容过长")
        if self.problem_index is not None:
            if isinstance(self.problem_index, bool) or not isinstance(self.problem_index, int):
                raise ValidationError(message="题号必须为整数")


@dataclass
class ClarificationAnswerSchema(BaseSchema[None]):
    auto_validate: ClassVar[bool] = True
    contest_slug: str
    clarification_id: int
    answer: str
    is_public: bool = False

    def validate(self) -> None:
        self.answer = (self.answer or "").strip()
        if not self.answer:
            raise ValidationError(message="回复内容不能为空")
        self.is_public = _ensure_flag(self.is_public, "公开设置")


def parse_bool(value: Any) -> bool:
    """查询参数布尔值：1/true/yes 视为真"""
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE_VALUES
