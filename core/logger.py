"""
Discipline Coach 日志配置模块。

日志文件（位于 logs/，可用 DISCIPLINE_COACH_LOG_DIR 覆盖）：
- system.log: 运行日志 (INFO+)，每次事件触发都会记录
- error.log: 异常堆栈 (ERROR+)
- parse_failures.log: 模板解析失败明细

控制台只输出 WARNING 及以上。文件均按大小轮转。
"""
import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "discipline_coach"

# 轮转阈值 (经验值)
MAX_BYTES = 2 * 1024 * 1024  # 2MB，触发日志每天只有几十行
BACKUP_COUNT = 5

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def get_logs_dir() -> Path:
    raw = os.getenv("DISCIPLINE_COACH_LOG_DIR", "").strip()
    if raw:
        return Path(raw).expanduser()
    return Path(__file__).parent.parent / "logs"


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: int = logging.INFO,
    console_level: int = logging.WARNING,
    logs_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    配置 discipline_coach 日志树。重复调用会替换已有 handler。

    Args:
        log_level: system.log 的级别
        console_level: stderr 的级别
        logs_dir: 日志目录，默认 get_logs_dir()
    """
    target_dir = logs_dir or get_logs_dir()
    target_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG)
    root.handlers.clear()
    root.propagate = False

    file_formatter = logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    root.addHandler(_rotating_handler(target_dir / "system.log", log_level, file_formatter))
    root.addHandler(_rotating_handler(target_dir / "error.log", logging.ERROR, file_formatter))

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)

    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Child logger of the discipline_coach tree, e.g. get_logger("trigger_engine")."""
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def log_parse_failure(
    source: str,
    line_number: Optional[int],
    raw_line: Optional[str],
    error_msg: str,
    logs_dir: Optional[Path] = None,
) -> None:
    """
    追加一条模板解析失败记录，并在 template_store logger 上报 warning。

    Args:
        source: 模板来源，如 "user:study@home.csv"
        line_number: 出错行号（未知时为 None）
        raw_line: 出错的原始行
        error_msg: 错误描述
    """
    target_dir = logs_dir or get_logs_dir()
    target_dir.mkdir(parents=True, exist_ok=True)

    entry = (
        f"{datetime.now().isoformat(timespec='seconds')} {source}"
        f" line={line_number if line_number is not None else '?'}\n"
        f"  error: {error_msg}\n"
        f"  raw:   {raw_line if raw_line is not None else ''}\n"
    )
    with open(target_dir / "parse_failures.log", "a", encoding="utf-8") as f:
        f.write(entry)

    get_logger("template_store").warning(
        "Template parse failure in %s (line %s): %s", source, line_number, error_msg
    )
