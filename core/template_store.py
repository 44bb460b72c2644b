"""
TemplateStore: schedule templates keyed by (context, activity).

Lookup walks an ordered resolver chain, by default
[user templates directory, bundled defaults], so a user file shadows the
bundled template of the same name. Loaded schedules are kept in an explicit
ScheduleCache that callers invalidate on save/delete/refresh.
"""
import shutil
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from core.exceptions import CoachError, ParseError, TemplateNotFound, ValidationError
from core.logger import get_logger, log_parse_failure
from core.models import Activity, Context
from core.paths import BUNDLED_TEMPLATES_DIR, USER_TEMPLATES_DIR
from core.schedule import TEMPLATE_EXTENSION, Schedule, template_filename

logger = get_logger("template_store")

CacheKey = Tuple[Context, Activity]


class TemplateResolver(ABC):
    """One source of schedule templates."""

    @abstractmethod
    def lookup(self, context: Context, activity: Activity) -> Optional[Schedule]:
        """Return the schedule for the pair, or None if this source has none."""
        pass

    @abstractmethod
    def contains(self, context: Context, activity: Activity) -> bool:
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass


class DirectoryResolver(TemplateResolver):
    """Templates stored as '<activity>@<context>.csv' files in one directory."""

    def __init__(self, directory: Path, name: Optional[str] = None):
        self.directory = Path(directory)
        self._name = name or self.directory.name

    def path_for(self, context: Context, activity: Activity) -> Path:
        return self.directory / template_filename(context, activity)

    def contains(self, context: Context, activity: Activity) -> bool:
        return self.path_for(context, activity).is_file()

    def lookup(self, context: Context, activity: Activity) -> Optional[Schedule]:
        path = self.path_for(context, activity)
        if not path.is_file():
            return None
        schedule = Schedule.from_text(path.read_text(encoding="utf-8"))
        if (schedule.context, schedule.activity) != (context, activity):
            raise ValidationError(
                f"{path.name} declares {schedule.filename[:-len(TEMPLATE_EXTENSION)]}",
                hint="Template contents must match the file name",
            )
        return schedule

    def template_files(self) -> List[Path]:
        if not self.directory.is_dir():
            return []
        return sorted(self.directory.glob(f"*{TEMPLATE_EXTENSION}"))

    def get_name(self) -> str:
        return self._name


class ScheduleCache:
    """Process-local cache of parsed schedules with explicit invalidation."""

    def __init__(self):
        self._entries: Dict[CacheKey, Schedule] = {}
        self._lock = threading.Lock()

    def get(self, context: Context, activity: Activity) -> Optional[Schedule]:
        with self._lock:
            return self._entries.get((context, activity))

    def put(self, schedule: Schedule) -> None:
        with self._lock:
            self._entries[(schedule.context, schedule.activity)] = schedule

    def invalidate(self, context: Context, activity: Activity) -> None:
        with self._lock:
            self._entries.pop((context, activity), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class TemplateStore:
    """
    模板仓库：用户模板优先，其次是内置默认模板。
    """

    def __init__(
        self,
        user_dir: Optional[Path] = None,
        bundled_dir: Optional[Path] = None,
        resolvers: Optional[Sequence[TemplateResolver]] = None,
        cache: Optional[ScheduleCache] = None,
    ):
        self.user_resolver = DirectoryResolver(user_dir or USER_TEMPLATES_DIR, name="user")
        self.bundled_resolver = DirectoryResolver(bundled_dir or BUNDLED_TEMPLATES_DIR, name="bundled")
        if resolvers is None:
            resolvers = [self.user_resolver, self.bundled_resolver]
        self.resolvers: List[TemplateResolver] = list(resolvers)
        self.cache = cache if cache is not None else ScheduleCache()

    @property
    def user_dir(self) -> Path:
        return self.user_resolver.directory

    def load_schedule(self, context: Context, activity: Activity) -> Optional[Schedule]:
        """
        Load the schedule for a context + activity pair.

        A resolver whose template is malformed is logged and skipped so the
        next resolver can still answer. Returns None when nobody has one.
        """
        cached = self.cache.get(context, activity)
        if cached is not None:
            return cached

        for resolver in self.resolvers:
            try:
                schedule = resolver.lookup(context, activity)
            except ParseError as e:
                log_parse_failure(
                    f"{resolver.get_name()}:{template_filename(context, activity)}",
                    e.line_number, e.raw_line, e.message,
                )
                continue
            except CoachError as e:
                logger.warning(
                    "Template %s from %s rejected: %s",
                    template_filename(context, activity), resolver.get_name(), e.message,
                )
                continue
            if schedule is not None:
                logger.info("Loaded %r from %s templates", schedule, resolver.get_name())
                self.cache.put(schedule)
                return schedule

        miss = TemplateNotFound(context.identifier, activity.identifier)
        logger.warning(miss.message)
        return None

    def require_schedule(self, context: Context, activity: Activity) -> Schedule:
        """Like load_schedule, but raises TemplateNotFound on a miss."""
        schedule = self.load_schedule(context, activity)
        if schedule is None:
            raise TemplateNotFound(context.identifier, activity.identifier)
        return schedule

    def has_schedule(self, context: Context, activity: Activity) -> bool:
        return any(r.contains(context, activity) for r in self.resolvers)

    def save_schedule(self, schedule: Schedule) -> Path:
        """Write a schedule into the user templates directory."""
        path = self.user_resolver.path_for(schedule.context, schedule.activity)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(schedule.to_text(), encoding="utf-8")
        self.cache.invalidate(schedule.context, schedule.activity)
        logger.info("Saved %r to %s", schedule, path)
        return path

    def import_schedule(self, source: Path) -> Schedule:
        """
        Parse a template file and store it as a user template.

        Raises:
            ParseError / ValidationError: the file is not a valid template.
        """
        source = Path(source)
        schedule = Schedule.from_text(source.read_text(encoding="utf-8"))
        self.save_schedule(schedule)
        return schedule

    def export_schedule(self, schedule: Schedule, destination: Path) -> Path:
        destination = Path(destination)
        if destination.is_dir():
            destination = destination / schedule.filename
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(schedule.to_text(), encoding="utf-8")
        return destination

    def delete_user_schedule(self, context: Context, activity: Activity) -> bool:
        path = self.user_resolver.path_for(context, activity)
        if not path.is_file():
            return False
        path.unlink()
        self.cache.invalidate(context, activity)
        logger.info("Deleted user template %s", path.name)
        return True

    def refresh(self) -> None:
        self.cache.clear()

    def seed_defaults(self) -> int:
        """Copy bundled templates into an empty user directory. Returns files copied."""
        user_dir = self.user_dir
        user_dir.mkdir(parents=True, exist_ok=True)
        if any(user_dir.iterdir()):
            # 用户已有模板，不覆盖
            return 0

        copied = 0
        for path in self.bundled_resolver.template_files():
            shutil.copyfile(path, user_dir / path.name)
            copied += 1
        logger.info("Seeded %d default templates into %s", copied, user_dir)
        return copied

    def available_templates(self) -> List[CacheKey]:
        """(context, activity) pairs any resolver can answer, user first."""
        seen: List[CacheKey] = []
        for resolver in self.resolvers:
            if not isinstance(resolver, DirectoryResolver):
                continue
            for path in resolver.template_files():
                pair = _pair_from_filename(path.name)
                if pair is not None and pair not in seen:
                    seen.append(pair)
        return seen


def _pair_from_filename(filename: str) -> Optional[CacheKey]:
    stem = filename[: -len(TEMPLATE_EXTENSION)] if filename.endswith(TEMPLATE_EXTENSION) else filename
    activity_id, _, context_id = stem.partition("@")
    activity = Activity.from_identifier(activity_id)
    context = Context.from_identifier(context_id)
    if activity is None or context is None:
        return None
    return context, activity
