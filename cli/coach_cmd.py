"""
CLI 命令：coach
运行日程会话、查看模板、管理音频与偏好设置
"""
import sys
import time as time_module
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

import click

# 添加项目根目录到 sys.path，以便导入 core 模块
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from core.audio_library import AudioLibrary
from core.config_manager import config
from core.exceptions import CoachError, ParseError, ValidationError
from core.models import Activity, Context, parse_clock
from core.paths import DATA_DIR
from core.preferences import AudioPreferences, load_preferences, save_preferences
from core.schedule import Schedule
from core.template_store import TemplateStore
from interface.audio_player import BellAudioPlayer
from interface.notifiers.desktop_notifier import DesktopNotifier
from interface.notifiers.webhook_notifier import WebhookNotifier
from interface.wake_lock import LoggingWakeController
from scheduler.coaching_session import CoachingSession, SessionStatus
from scheduler.trigger_bus import TriggerBus, TriggerRecord
from scheduler.trigger_engine import TriggerEngine

CONTEXT_CHOICES = [c.identifier for c in Context]
ACTIVITY_CHOICES = [a.identifier for a in Activity]


@dataclass
class CoachPaths:
    data_dir: Path

    @property
    def templates_dir(self) -> Path:
        return self.data_dir / "templates"

    @property
    def audio_dir(self) -> Path:
        return self.data_dir / "audio"

    @property
    def preferences_path(self) -> Path:
        return self.data_dir / "preferences.yaml"

    def store(self) -> TemplateStore:
        return TemplateStore(user_dir=self.templates_dir)

    def audio_library(self) -> AudioLibrary:
        return AudioLibrary(self.audio_dir)


pass_paths = click.make_pass_decorator(CoachPaths)


def _pair_options(func):
    func = click.option("--activity", "-a", type=click.Choice(ACTIVITY_CHOICES), required=True,
                        help="Activity identifier")(func)
    func = click.option("--context", "-c", type=click.Choice(CONTEXT_CHOICES), required=True,
                        help="Context identifier")(func)
    return func


def _load_or_exit(paths: CoachPaths, context_id: str, activity_id: str) -> Schedule:
    store = paths.store()
    schedule = store.load_schedule(Context(context_id), Activity(activity_id))
    if schedule is None:
        click.echo(f"❌ 没有 {activity_id}@{context_id} 的日程模板", err=True)
        click.echo("💡 使用 'coach seed' 安装默认模板，或 'coach import <file>'", err=True)
        sys.exit(1)
    return schedule


@click.group()
@click.option("--data-dir", type=click.Path(file_okay=False, path_type=Path),
              envvar="DISCIPLINE_COACH_DATA_DIR", default=None,
              help="Runtime data directory (templates, audio, preferences)")
@click.pass_context
def coach(ctx, data_dir: Optional[Path]):
    """Discipline Coach 日程提醒命令"""
    ctx.obj = CoachPaths(data_dir or DATA_DIR)


# === 会话 ===

@coach.command()
@_pair_options
@click.option("--once", is_flag=True, help="Poll a single time and exit")
@click.option("--webhook-url", default=None, help="Also deliver notifications to this webhook")
@click.option("--webhook-type", type=click.Choice(["generic", "slack", "discord"]), default="generic")
@click.option("--no-desktop", is_flag=True, help="Disable desktop notifications")
@pass_paths
def run(paths: CoachPaths, context: str, activity: str, once: bool,
        webhook_url: Optional[str], webhook_type: str, no_desktop: bool):
    """运行日程会话，按时触发提醒"""
    schedule = _load_or_exit(paths, context, activity)

    try:
        preferences = load_preferences(paths.preferences_path)
    except CoachError as e:
        click.echo(f"❌ {e.get_user_message()}", err=True)
        sys.exit(1)

    notifiers = []
    if not no_desktop:
        notifiers.append(DesktopNotifier())
    if webhook_url:
        notifiers.append(WebhookNotifier({"webhook_url": webhook_url, "type": webhook_type}))

    bus = TriggerBus()
    bus.subscribe(_echo_record)
    engine = TriggerEngine(
        bus=bus,
        notifiers=notifiers,
        audio_player=BellAudioPlayer(paths.audio_library()),
        wake_controller=LoggingWakeController(),
        preferences=preferences,
    )
    session = CoachingSession(schedule, engine=engine)

    click.echo(f"▶️  {schedule.name} (v{schedule.version}, {len(schedule)} events)")
    if once:
        session.begin(background=False)
        session.tick()
        _echo_status(session.status())
        session.end()
        return

    session.begin()
    try:
        while True:
            _echo_status(session.status())
            time_module.sleep(config.CHECK_INTERVAL_SECONDS)
    except KeyboardInterrupt:
        click.echo("\n⏹️  会话结束")
    finally:
        session.end()


def _echo_record(record: TriggerRecord) -> None:
    event = record.event
    marker = "🔴" if event.kind.is_restriction else "🔵"
    click.echo(f"{marker} {event.time_string()} [{event.tier.name}] {event.display_message()}")


def _echo_status(status: SessionStatus) -> None:
    if status.current_event is not None:
        click.echo(f"  当前: {status.current_event.display_message()}")
    click.echo(
        f"  下一个: {status.next_event.time_string()} "
        f"{status.next_event.display_message()} (in {status.countdown})"
    )


@coach.command()
@_pair_options
@click.option("--at", "at_time", default=None, help="Show status at HH:MM instead of now")
@pass_paths
def show(paths: CoachPaths, context: str, activity: str, at_time: Optional[str]):
    """显示日程及当前状态"""
    schedule = _load_or_exit(paths, context, activity)

    now = datetime.now()
    if at_time:
        try:
            clock = parse_clock(at_time)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--at")
        now = now.replace(hour=clock.hour, minute=clock.minute, second=0, microsecond=0)

    click.echo(f"📅 {schedule.name} (v{schedule.version})")
    for event in schedule:
        span = f" +{event.duration_minutes}m" if event.has_duration() else ""
        click.echo(f"  {event.time_string()}{span:<6} {event.tier.name:<10} {event.display_message()}")

    status = CoachingSession(schedule, clock=lambda: now).status(now)
    click.echo(f"\n🕐 {now.strftime('%H:%M')}")
    _echo_status(status)
    if status.upcoming:
        click.echo(f"  接下来 {config.UPCOMING_WINDOW_MINUTES} 分钟内: {len(status.upcoming)} 个事件")


# === 模板 ===

@coach.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(file: Path):
    """校验模板文件"""
    try:
        schedule = Schedule.from_text(file.read_text(encoding="utf-8"))
    except (ParseError, ValidationError) as e:
        click.echo(f"❌ {file.name}: {e.get_user_message()}", err=True)
        sys.exit(1)
    click.echo(f"✅ {schedule!r} ({schedule.activity.identifier}@{schedule.context.identifier})")


@coach.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@pass_paths
def import_template(paths: CoachPaths, file: Path):
    """导入模板到用户目录"""
    try:
        schedule = paths.store().import_schedule(file)
    except (ParseError, ValidationError) as e:
        click.echo(f"❌ 导入失败: {e.get_user_message()}", err=True)
        sys.exit(1)
    click.echo(f"✅ 已导入 {schedule.name} → {schedule.filename}")


@coach.command()
@_pair_options
@click.argument("destination", type=click.Path(path_type=Path))
@pass_paths
def export(paths: CoachPaths, context: str, activity: str, destination: Path):
    """导出模板"""
    schedule = _load_or_exit(paths, context, activity)
    target = paths.store().export_schedule(schedule, destination)
    click.echo(f"✅ 已导出到 {target}")


@coach.command("list")
@pass_paths
def list_templates(paths: CoachPaths):
    """列出可用模板"""
    pairs = paths.store().available_templates()
    if not pairs:
        click.echo("ℹ️ 没有可用的模板")
        return
    for context, activity in pairs:
        click.echo(f"  {activity.identifier}@{context.identifier}")


@coach.command()
@pass_paths
def seed(paths: CoachPaths):
    """将默认模板复制到空的用户目录"""
    copied = paths.store().seed_defaults()
    if copied:
        click.echo(f"✅ 已安装 {copied} 个默认模板")
    else:
        click.echo("ℹ️ 用户目录已有模板，未做修改")


@coach.command()
@_pair_options
@click.confirmation_option(prompt="确认删除该用户模板？")
@pass_paths
def delete(paths: CoachPaths, context: str, activity: str):
    """删除用户模板（内置模板不受影响）"""
    if paths.store().delete_user_schedule(Context(context), Activity(activity)):
        click.echo("✅ 已删除")
    else:
        click.echo("ℹ️ 没有对应的用户模板")


# === 音频 ===

@coach.group()
def audio():
    """音频资源管理"""
    pass


@audio.command("import")
@click.argument("archive", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@pass_paths
def import_audio(paths: CoachPaths, archive: Path):
    """从 zip 包导入音频"""
    count = paths.audio_library().import_zip(archive)
    click.echo(f"✅ 已导入 {count} 个音频文件")


@audio.command()
@pass_paths
def status(paths: CoachPaths):
    """显示缺少音频的事件类型"""
    missing = paths.audio_library().missing_kinds()
    if not missing:
        click.echo("✅ 所有事件类型都有音频")
        return
    click.echo(f"⚠️ {len(missing)} 个事件类型将使用系统提示音:")
    for kind in missing:
        click.echo(f"  - {kind.audio_key}")


@coach.command()
@click.option("--volume", type=float, default=None, help="Global volume in [0, 1]")
@click.option("--mute/--unmute", default=None, help="Disable or enable all audio")
@pass_paths
def prefs(paths: CoachPaths, volume: Optional[float], mute: Optional[bool]):
    """查看或修改音频偏好"""
    try:
        preferences = load_preferences(paths.preferences_path)
    except CoachError as e:
        click.echo(f"❌ {e.get_user_message()}", err=True)
        sys.exit(1)

    if volume is not None or mute is not None:
        if volume is not None:
            preferences.global_volume = volume
        if mute is not None:
            preferences.audio_enabled = not mute
        # 重新构造以触发音量截断
        preferences = AudioPreferences(preferences.audio_enabled, preferences.global_volume)
        save_preferences(preferences, paths.preferences_path)

    state = "on" if preferences.audio_enabled else "muted"
    click.echo(f"🔊 audio: {state}, volume: {preferences.global_volume:.2f}")


if __name__ == "__main__":
    coach()
