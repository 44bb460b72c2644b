from pathlib import Path

import pytest

from core.exceptions import ParseError, TemplateNotFound, ValidationError
from core.models import Activity, Context
from core.schedule import Schedule
from core.template_store import DirectoryResolver, ScheduleCache, TemplateStore

STUDY_HOME = "home\nstudy\nUser Study\n07:45,NO_COFFEE,CRITICAL\n08:00,STUDY_START,TRANSITION,,90\n"
BUNDLED_STUDY_HOME = "home\nstudy\nBundled Study\n09:00,STUDY_START,TRANSITION\n"
REST_HOME = "home\nrest\n12:00,MEAL_TIME,TRANSITION\n"


def _store(tmp_path: Path) -> TemplateStore:
    user = tmp_path / "user"
    bundled = tmp_path / "bundled"
    bundled.mkdir()
    (bundled / "study@home.csv").write_text(BUNDLED_STUDY_HOME, encoding="utf-8")
    (bundled / "rest@home.csv").write_text(REST_HOME, encoding="utf-8")
    return TemplateStore(user_dir=user, bundled_dir=bundled)


def test_bundled_template_is_used_when_user_has_none(tmp_path):
    store = _store(tmp_path)
    schedule = store.load_schedule(Context.HOME, Activity.STUDY)
    assert schedule.name == "Bundled Study"
    assert store.has_schedule(Context.HOME, Activity.STUDY)


def test_user_template_shadows_bundled(tmp_path):
    store = _store(tmp_path)
    store.user_dir.mkdir()
    (store.user_dir / "study@home.csv").write_text(STUDY_HOME, encoding="utf-8")

    assert store.load_schedule(Context.HOME, Activity.STUDY).name == "User Study"


def test_malformed_user_template_falls_through_to_bundled(tmp_path):
    store = _store(tmp_path)
    store.user_dir.mkdir()
    (store.user_dir / "study@home.csv").write_text("home\nstudy\n8am,STUDY_START,TRANSITION\n", encoding="utf-8")

    assert store.load_schedule(Context.HOME, Activity.STUDY).name == "Bundled Study"


def test_template_declaring_another_pair_is_skipped(tmp_path):
    store = _store(tmp_path)
    store.user_dir.mkdir()
    (store.user_dir / "study@home.csv").write_text(REST_HOME, encoding="utf-8")

    assert store.load_schedule(Context.HOME, Activity.STUDY).name == "Bundled Study"


def test_miss_returns_none_and_require_raises(tmp_path):
    store = _store(tmp_path)
    assert store.load_schedule(Context.GYM, Activity.EXERCISE) is None
    with pytest.raises(TemplateNotFound) as excinfo:
        store.require_schedule(Context.GYM, Activity.EXERCISE)
    assert excinfo.value.activity_id == "exercise"


def test_cache_serves_until_saved_over(tmp_path):
    store = _store(tmp_path)
    first = store.load_schedule(Context.HOME, Activity.STUDY)
    assert store.load_schedule(Context.HOME, Activity.STUDY) is first
    assert len(store.cache) == 1

    path = store.save_schedule(Schedule.from_text(STUDY_HOME))
    assert path == store.user_dir / "study@home.csv"
    assert len(store.cache) == 0
    assert store.load_schedule(Context.HOME, Activity.STUDY).name == "User Study"


def test_save_refuses_a_name_that_would_not_load_back(tmp_path):
    store = _store(tmp_path)
    bundled = store.load_schedule(Context.HOME, Activity.STUDY)
    renamed = Schedule(bundled.context, bundled.activity, bundled.events, name="Study, evenings")

    with pytest.raises(ValidationError):
        store.save_schedule(renamed)
    assert not (store.user_dir / "study@home.csv").exists()


def test_import_export_and_delete(tmp_path):
    store = _store(tmp_path)
    source = tmp_path / "mine.csv"
    source.write_text(STUDY_HOME, encoding="utf-8")

    imported = store.import_schedule(source)
    assert (store.user_dir / "study@home.csv").is_file()

    out_dir = tmp_path / "out"
    out_dir.mkdir()
    exported = store.export_schedule(imported, out_dir)
    assert exported == out_dir / "study@home.csv"
    assert Schedule.from_text(exported.read_text(encoding="utf-8")) == imported

    assert store.delete_user_schedule(Context.HOME, Activity.STUDY)
    assert not store.delete_user_schedule(Context.HOME, Activity.STUDY)
    assert store.load_schedule(Context.HOME, Activity.STUDY).name == "Bundled Study"


def test_import_rejects_malformed_file(tmp_path):
    store = _store(tmp_path)
    source = tmp_path / "bad.csv"
    source.write_text("home\nstudy\n09:00,STUDY_START\n", encoding="utf-8")
    with pytest.raises(ParseError):
        store.import_schedule(source)
    assert not store.user_dir.exists() or not any(store.user_dir.iterdir())


def test_seed_defaults_only_into_empty_directory(tmp_path):
    store = _store(tmp_path)
    assert store.seed_defaults() == 2
    assert sorted(p.name for p in store.user_dir.iterdir()) == ["rest@home.csv", "study@home.csv"]
    assert store.seed_defaults() == 0


def test_available_templates_lists_each_pair_once(tmp_path):
    store = _store(tmp_path)
    store.seed_defaults()
    (store.user_dir / "notes.csv").write_text("ignored", encoding="utf-8")

    pairs = store.available_templates()
    assert sorted((c.identifier, a.identifier) for c, a in pairs) == [("home", "rest"), ("home", "study")]


def test_custom_resolver_chain(tmp_path):
    only = DirectoryResolver(tmp_path, name="only")
    (tmp_path / "rest@home.csv").write_text(REST_HOME, encoding="utf-8")
    store = TemplateStore(user_dir=tmp_path / "u", resolvers=[only], cache=ScheduleCache())

    assert store.load_schedule(Context.HOME, Activity.REST) is not None
    assert only.get_name() == "only"


def test_bundled_default_templates_are_valid():
    store = TemplateStore(user_dir=Path("/nonexistent-user-dir"))
    pairs = store.available_templates()
    assert (Context.HOME, Activity.STUDY) in pairs
    for context, activity in pairs:
        assert store.load_schedule(context, activity) is not None
