"""
业务异常体系（BizError）

约定与作用：
- 所有“预期内的业务错误”都继承 BizError，避免直接抛框架异常
- 统一错误码/HTTP 状态/提示语，便于前后端对齐
- 系统级错误（代码 bug、数据库故障等）由全局异常处理器按 500 处理

错误码规范：
- 0                : 成功（只出现在正常响应里）
- 40000~40099      : 通用请求 / 参数错误（Validation、BadRequest）
- 40100~40199      : 认证错误（未登录、Token 无效等）
- 40300~40399      : 权限错误（无权限访问某资源/操作）
- 40400~40499      : 资源不存在（用户、社区、比赛、题目等）
- 40900~40999      : 资源冲突
- 42900~42999      : 频率限制（节流 / 风控）
- 46000~46099      : 比赛状态相关错误（状态流转非法、比赛未进行、进行中不可修改等）
- 46100~46199      : 报名 / 参赛者相关错误（报名关闭、重复报名、名额已满等）
- 46200~46299      : 提交相关错误（题号越界、提交次数超限等）
- 50300~50399      : 基础设施/第三方依赖不可用（缓存、消息队列、判题服务等）

使用方式：
- 业务层抛 BizError 或子类；全局异常处理器读取 exc.code/message/http_status/extra 构造统一响应
"""


class BizError(Exception):
    """
    所有业务异常的基类

    设计要点：
    - 不耦合 DRF / Response，只是纯数据和语义；
    - 子类只需覆盖 default_code / default_message / http_status；
    - 也可以在 __init__ 时传入自定义 message / code / extra 做覆盖
    """

    #: 子类可覆盖的默认错误码
    default_code: int = 40000

    #: 子类可覆盖的默认提示信息
    default_message: str = "业务错误"

    #: 子类可覆盖的建议 HTTP 状态码（交给异常处理器用）
    http_status: int = 400

    def __init__(self, message: str | None = None, code: int | None = None, *, extra: dict | None = None):
        self.code = code if code is not None else self.default_code
        self.message = message if message is not None else self.default_message
        self.extra = extra or {}
        super().__init__(self.message)

    def __str__(self) -> str:  # 方便日志输出
        return f"[{self.code}] {self.message}"


# ======================
# 通用类错误
# ======================

class BadRequestError(BizError):
    """
    通用的 400 错误：无法解析的请求、格式错误等
    """
    default_code = 40001
    default_message = "错误的请求"
    http_status = 400


class ValidationError(BizError):
    """
    参数校验 / 请求数据不合法：
    - 缺少必要字段
    - 字段格式错误
    - 比赛时间窗口不满足先后顺序
    """
    default_code = 40002
    default_message = "请求参数不合法"
    http_status = 400


class NotFoundError(BizError):
    """
    通用资源不存在：用户、社区、比赛、题目、答疑等
    """
    default_code = 40400
    default_message = "资源不存在"
    http_status = 404


class ConflictError(BizError):
    """
    资源冲突：已存在同名对象等
    """
    default_code = 40900
    default_message = "资源冲突"
    http_status = 409


class RateLimitError(BizError):
    """
    触发频率限制：提交太频繁等
    """
    default_code = 42900
    default_message = "请求过于频繁，请稍后再试"
    http_status = 429


# ======================
# 认证 / 授权相关
# ======================

class AuthError(BizError):
    """
    认证相关错误（未登录、Token 等）：统一归类为 401xx
    """
    default_code = 40100
    default_message = "认证失败"
    http_status = 401


class TokenError(AuthError):
    """
    Token 无效 / 过期 / 被吊销
    """
    default_code = 40102
    default_message = "登录状态已失效，请重新登录"


class PermissionDeniedError(BizError):
    """
    权限不足（Forbidden）：
    - 非比赛创建者/管理员尝试修改比赛
    - 非本社区成员尝试报名
    """
    default_code = 40300
    default_message = "无权执行该操作"
    http_status = 403


# ======================
# 比赛状态相关
# ======================

class ContestError(BizError):
    """比赛相关通用错误基类"""
    default_code = 46000
    default_message = "比赛状态异常"
    http_status = 409


class InvalidTransitionError(ContestError):
    """当前状态/阶段不允许执行该状态流转"""
    default_code = 46010
    default_message = "当前比赛状态不允许该操作"


class ImmutableDuringContestError(ContestError):
    """比赛进行中（或已有提交）时禁止修改题目配置"""
    default_code = 46011
    default_message = "比赛进行中，题目配置不可修改"


class CannotDeleteRunningContestError(ContestError):
    """比赛进行中禁止删除"""
    default_code = 46012
    default_message = "比赛进行中，无法删除"


class ContestNotRunningError(ContestError):
    """比赛不在进行阶段，不接受提交"""
    default_code = 46013
    default_message = "比赛未在进行中"


class ClarificationsDisabledError(ContestError):
    """比赛关闭了答疑功能"""
    default_code = 46014
    default_message = "本场比赛未开放答疑"
    http_status = 403


# ======================
# 报名 / 参赛者相关
# ======================

class RegistrationError(BizError):
    """报名相关通用错误基类"""
    default_code = 46100
    default_message = "报名失败"
    http_status = 409


class RegistrationClosedError(RegistrationError):
    """不在报名时间窗口内或比赛状态不允许报名"""
    default_code = 46101
    default_message = "当前不在报名时间内"


class AlreadyRegisteredError(RegistrationError):
    """同一用户重复报名同一场比赛"""
    default_code = 46102
    default_message = "你已报名该比赛"


class CapacityExceededError(RegistrationError):
    """报名人数已达上限"""
    default_code = 46103
    default_message = "比赛报名人数已满"


class NotAParticipantError(RegistrationError):
    """用户未报名该比赛"""
    default_code = 46104
    default_message = "你尚未报名该比赛"
    http_status = 403


class ParticipantDisqualifiedError(RegistrationError):
    """参赛资格已被取消"""
    default_code = 46105
    default_message = "你的参赛资格已被取消"
    http_status = 403


# ======================
# 提交相关
# ======================

class SubmissionError(BizError):
    """提交相关通用错误基类"""
    default_code = 46200
    default_message = "提交失败"
    http_status = 400


class InvalidProblemIndexError(SubmissionError):
    """题号不在比赛题目列表范围内"""
    default_code = 46201
    default_message = "题目编号无效"
    http_status = 404


class AttemptsExceededError(SubmissionError):
    """单题提交次数超过比赛规定上限"""
    default_code = 46202
    default_message = "该题提交次数已达上限"
    http_status = 409


# ======================
# 基础设施 / 第三方服务错误
# ======================

class InfrastructureError(BizError):
    """
    基础设施或第三方依赖不可用：缓存 / 队列 / 判题服务
    """
    default_code = 50300
    default_message = "系统服务暂时不可用，请稍后重试"
    http_status = 503


class EvaluatorUnavailableError(InfrastructureError):
    """
    判题服务不可用：网络错误、返回格式异常
    """
    default_code = 50305
    default_message = "判题服务暂时不可用，请稍后重试"

