from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fakes import BASE_TIME, make_task, shifted
from models.goal import Goal
from services.merge import merge_goals, merge_tasks


def _ids(tasks):
    return [task.id for task in tasks]


def test_merge_is_idempotent_for_identical_sides():
    tasks = [make_task("a"), make_task("b", title="Other")]
    result = merge_tasks(tasks, [make_task("a"), make_task("b", title="Other")], is_polling_pass=False)
    assert result.merged == tasks
    assert not result.remote_changed
    assert not result.local_is_stale
    assert result.tie_conflicts == []


def test_remote_only_task_is_added():
    result = merge_tasks([make_task("a")], [make_task("a"), make_task("b")], is_polling_pass=True)
    assert _ids(result.merged) == ["a", "b"]
    assert result.remote_changed


def test_local_only_task_is_kept():
    result = merge_tasks([make_task("a"), make_task("local")], [make_task("a")], is_polling_pass=False)
    assert _ids(result.merged) == ["a", "local"]
    assert not result.remote_changed


def test_remote_newer_beyond_tolerance_wins():
    local = make_task("a", title="Local")
    remote = make_task("a", title="Remote", last_modified=shifted(BASE_TIME, 5000))

    result = merge_tasks([local], [remote], is_polling_pass=True)

    assert result.merged[0].title == "Remote"
    assert result.remote_changed
    assert not result.local_is_stale


def test_remote_touch_without_other_edits_is_adopted():
    local = make_task("a")
    remote = make_task("a", last_modified=shifted(BASE_TIME, 5000))

    result = merge_tasks([local], [remote], is_polling_pass=True)

    assert result.merged[0].lastModified == remote.lastModified
    assert result.remote_changed


def test_local_newer_marks_remote_stale_outside_polling():
    local = make_task("a", title="Local", last_modified=shifted(BASE_TIME, 5000))
    remote = make_task("a", title="Remote")

    result = merge_tasks([local], [remote], is_polling_pass=False)

    assert result.merged[0].title == "Local"
    assert result.local_is_stale
    assert not result.remote_changed


def test_local_newer_is_not_reported_during_polling():
    local = make_task("a", title="Local", last_modified=shifted(BASE_TIME, 5000))
    remote = make_task("a", title="Remote")

    result = merge_tasks([local], [remote], is_polling_pass=True)

    assert result.merged[0].title == "Local"
    assert not result.local_is_stale


def test_edits_within_skew_window_keep_local():
    local = make_task("a", title="Local", last_modified=shifted(BASE_TIME, 400))
    remote = make_task("a", title="Remote", last_modified=shifted(BASE_TIME, 900))

    result = merge_tasks([local], [remote], is_polling_pass=False)

    assert result.merged[0].title == "Local"
    assert result.tie_conflicts == ["a"]
    assert not result.remote_changed
    assert not result.local_is_stale


def test_exactly_tolerance_apart_is_still_a_tie():
    local = make_task("a", title="Local")
    remote = make_task("a", title="Remote", last_modified=shifted(BASE_TIME, 1000))
    assert merge_tasks([local], [remote], is_polling_pass=False).merged[0].title == "Local"


def test_unparsable_remote_stamp_never_wins():
    local = make_task("a", title="Local")
    remote = make_task("a", title="Remote", last_modified="not a date")

    result = merge_tasks([local], [remote], is_polling_pass=False)

    assert result.merged[0].title == "Local"
    assert result.local_is_stale


def test_merge_keeps_local_order_then_remote_additions():
    local = [make_task("c"), make_task("a")]
    remote = [make_task("b"), make_task("a", title="Newer", last_modified=shifted(BASE_TIME, 2000)), make_task("d")]

    result = merge_tasks(local, remote, is_polling_pass=False)

    assert _ids(result.merged) == ["c", "a", "b", "d"]
    assert result.merged[1].title == "Newer"


def test_merge_goals_remote_overwrites_and_union():
    local = [Goal(id="g1", title="Local"), Goal(id="g2", title="Only local")]
    remote = [Goal(id="g1", title="Remote"), Goal(id="g3", title="Only remote")]

    merged = merge_goals(local, remote)

    assert [(g.id, g.title) for g in merged] == [("g1", "Remote"), ("g2", "Only local"), ("g3", "Only remote")]


def test_merge_is_idempotent_over_mixed_cases():
    local = [
        make_task("local-only"),
        make_task("remote-newer", title="Stale local"),
        make_task("local-newer", title="Fresh local", last_modified=shifted(BASE_TIME, 30_000)),
        make_task("tie", title="Local side", last_modified=shifted(BASE_TIME, 200)),
    ]
    remote = [
        make_task("remote-only"),
        make_task("remote-newer", title="Fresh remote", last_modified=shifted(BASE_TIME, 30_000)),
        make_task("local-newer", title="Stale remote"),
        make_task("tie", title="Remote side", last_modified=shifted(BASE_TIME, 700)),
    ]

    first = merge_tasks(local, remote, is_polling_pass=False)
    second = merge_tasks(first.merged, remote, is_polling_pass=False)

    assert second.merged == first.merged
    assert not second.remote_changed
    titles = {task.id: task.title for task in first.merged}
    assert titles == {
        "local-only": "Task",
        "remote-newer": "Fresh remote",
        "local-newer": "Fresh local",
        "tie": "Local side",
        "remote-only": "Task",
    }
