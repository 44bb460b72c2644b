"""
Discipline Coach 异常定义模块。

定义系统中所有自定义异常的层次结构：
- CoachError: 基类，所有已知错误
- ValidationError: 日程不满足不变量（空、缺少开始事件、时段重叠）
- ParseError: 模板文本格式错误
- LookupMiss: 查找未命中（模板、音频），非致命
- EngineStateError: 触发引擎状态迁移非法
- ConfigError: 配置文件错误
"""
from typing import Optional


class CoachError(Exception):
    """Discipline Coach 基础异常类。

    所有系统内已知错误都继承自此类。
    捕获此类可以处理所有预期的错误情况。
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        """
        Args:
            message: 错误描述
            hint: 对用户的操作建议
        """
        super().__init__(message)
        self.message = message
        self.hint = hint

    def get_user_message(self) -> str:
        """返回用户友好的错误消息。"""
        if self.hint:
            return f"{self.message}\n💡 Hint: {self.hint}"
        return self.message


class ValidationError(CoachError):
    """日程校验失败。

    构造 Schedule 时违反不变量抛出，不会返回部分构造的日程。
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message, hint or "Check the template events and their durations")


class ParseError(CoachError):
    """模板或事件行解析失败。

    携带出错的行号、原始内容和字段名，便于调用方定位问题。
    """

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        raw_line: Optional[str] = None,
        field: Optional[str] = None,
    ):
        self.detail = message
        self.line_number = line_number
        self.raw_line = raw_line
        self.field = field
        location = f"line {line_number}: " if line_number is not None else ""
        super().__init__(
            f"{location}{message}",
            hint="Expected records like 'HH:mm,KIND,TIER[,message][,duration]'",
        )

    def at_line(self, line_number: int, raw_line: str) -> "ParseError":
        """Return a copy of this error located at a template line."""
        return ParseError(self.detail, line_number=line_number, raw_line=raw_line, field=self.field)


class LookupMiss(CoachError):
    """查找未命中。

    非致命：调用方记录日志后降级处理（系统提示音、无可用会话）。
    """


class TemplateNotFound(LookupMiss):
    """No template exists for a context + activity pair."""

    def __init__(self, context_id: str, activity_id: str):
        super().__init__(
            f"No schedule template for {activity_id}@{context_id}",
            hint="Import a template with 'coach import <file>'",
        )
        self.context_id = context_id
        self.activity_id = activity_id


class AudioAssetMissing(LookupMiss):
    """No audio file is installed for an audio key."""

    def __init__(self, audio_key: str):
        super().__init__(
            f"No audio asset for '{audio_key}'",
            hint="Import an audio bundle with 'coach audio import <zip>'",
        )
        self.audio_key = audio_key


class EngineStateError(CoachError):
    """触发引擎状态迁移非法。

    例如在未启动时 pause，或对已启动的引擎再次 start。
    """

    def __init__(self, message: str, state: Optional[str] = None):
        super().__init__(message, hint=None)
        self.state = state


class ConfigError(CoachError):
    """配置文件错误。

    当配置文件缺失、格式错误或内容非法时抛出。
    """

    def __init__(self, message: str, config_path: Optional[str] = None):
        hint = f"Check the config file: {config_path}" if config_path else "Check the config file format"
        super().__init__(message, hint)
        self.config_path = config_path
