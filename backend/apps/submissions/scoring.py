"""
计分规则（固定规则，所有入口共用）

- accepted：得到题目满分
- partial 计分模式下，未通过但 0 < 通过用例数 < 用例总数：状态记为 partial，
  得分 round(points * passed / total, 2)
- 其他情况得 0 分

参赛者总分 = 各题最佳得分之和；再次提交更差的结果不会降低已取得的最佳得分。
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from apps.contests.models import Contest, Problem

from .models import Submission

Status = Submission.Status


def score_submission(problem: Problem, scoring_mode: str, status: str, passed: int, total: int) -> tuple[str, float]:
    """根据判题结果计算 (最终状态, 得分)"""
    if status == Status.ACCEPTED:
        return status, float(problem.points)
    if scoring_mode == Contest.ScoringMode.PARTIAL and total > 0 and 0 < passed < total:
        return Status.PARTIAL, round(problem.points * passed / total, 2)
    return status, 0.0


@dataclass
class ProblemResult:
    index: int
    score: float = 0.0
    attempts: int = 0
    accepted: bool = False
    # 首次达到最佳得分的提交时间
    solved_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "score": self.score,
            "attempts": self.attempts,
            "accepted": self.accepted,
            "solved_at": self.solved_at.isoformat() if self.solved_at else None,
        }


def summarize(rows: Iterable, *, cutoff: Optional[datetime] = None) -> dict[int, ProblemResult]:
    """
    汇总单个参赛者的提交日志
    - rows 需按 submitted_at、id 升序，元素带 problem_index / status / score / submitted_at
    - pending 不计入；cutoff 之后的提交不计入（封榜投影）
    """
    results: dict[int, ProblemResult] = {}
    for row in rows:
        if row.status == Status.PENDING:
            continue
        if cutoff is not None and row.submitted_at > cutoff:
            continue
        result = results.setdefault(row.problem_index, ProblemResult(index=row.problem_index))
        result.attempts += 1
        if row.status == Status.ACCEPTED:
            result.accepted = True
        if row.score > result.score:
            result.score = row.score
            result.solved_at = row.submitted_at
    return results


def total_score(results: dict[int, ProblemResult]) -> float:
    return round(sum(r.score for r in results.values()), 2)


def solved_indices(results: dict[int, ProblemResult]) -> list[int]:
    return sorted(idx for idx, r in results.items() if r.accepted)


def last_solved_at(results: dict[int, ProblemResult]) -> Optional[datetime]:
    """计入总分的各题达成时间中的最大值；总分为 0 时为 None"""
    moments = [r.solved_at for r in results.values() if r.score > 0 and r.solved_at is not None]
    return max(moments) if moments else None
