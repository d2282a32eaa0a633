import os
import pytest

import gradle_tasks
from gradle_tasks import Build, TaskGraphError, install_sqflite_hook, FIX_SQFLITE_TASK, PRE_BUILD_TASK


@pytest.fixture
def build(tmp_path):
    b = Build(str(tmp_path / "android"))
    b.add_subproject(":app", group="com.medubs")
    b.add_subproject("sqflite_android", group="com.tekartik.sqflite")
    return b


@pytest.fixture
def patch_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(gradle_tasks.sqflite_patch, "fix_sqflite", lambda home=None: calls.append(home) or True)
    return calls


def test_pre_build_depends_on_fix_sqflite(build, patch_calls):
    app = build.project(":app")
    install_sqflite_hook(app, home="/h")
    pre = app.tasks.register(PRE_BUILD_TASK)

    assert pre.depends_on == [FIX_SQFLITE_TASK]
    executed = build.run(":app", PRE_BUILD_TASK)
    assert [t.name for t in executed] == [FIX_SQFLITE_TASK, PRE_BUILD_TASK]
    assert patch_calls == ["/h"]


def test_other_tasks_are_not_hooked(build, patch_calls):
    app = build.project(":app")
    install_sqflite_hook(app)
    compile_task = app.tasks.register("compileDebugJavaWithJavac")
    pre_debug = app.tasks.register("preDebugBuild")

    assert compile_task.depends_on == []
    assert pre_debug.depends_on == []
    build.run(":app", "compileDebugJavaWithJavac")
    assert patch_calls == []


def test_hook_only_sees_tasks_added_after_it(build):
    app = build.project(":app")
    early = app.tasks.register(PRE_BUILD_TASK)
    install_sqflite_hook(app)
    assert early.depends_on == []


def test_task_runs_once_per_project(build, patch_calls):
    for project in build.subproject_list:
        install_sqflite_hook(project)
        project.tasks.register(PRE_BUILD_TASK)
        project.tasks.register("assemble").add_dependency(PRE_BUILD_TASK)

    build.run(":app", PRE_BUILD_TASK)
    build.run(":app", "assemble")
    build.run(":sqflite_android", "assemble")

    # one patch per subproject, never twice in the same one
    assert len(patch_calls) == 2
    assert build.project(":app").tasks.get(FIX_SQFLITE_TASK).state == "done"


def test_dependencies_run_first_in_declared_order(build):
    order = []
    app = build.project(":app")
    for name in ("a", "b", "c"):
        app.tasks.register(name, lambda task: order.append(task.name))
    app.tasks.get("c").add_dependency("a")
    app.tasks.get("c").add_dependency("b")
    app.tasks.get("b").add_dependency("a")

    build.run(":app", "c")
    assert order == ["a", "b", "c"]


def test_cycle_is_rejected(build):
    app = build.project(":app")
    app.tasks.register("a").add_dependency("b")
    app.tasks.register("b").add_dependency("a")
    with pytest.raises(TaskGraphError, match="Circular"):
        build.run(":app", "a")


def test_unknown_task_and_project(build):
    with pytest.raises(TaskGraphError):
        build.run(":app", "nope")
    with pytest.raises(TaskGraphError):
        build.project(":missing")
    build.project(":app").tasks.register("dup")
    with pytest.raises(TaskGraphError, match="already exists"):
        build.project(":app").tasks.register("dup")


def test_action_errors_propagate(build):
    def boom(task):
        raise OSError("disk full")

    app = build.project(":app")
    app.tasks.register(FIX_SQFLITE_TASK, boom)
    app.tasks.register(PRE_BUILD_TASK).add_dependency(FIX_SQFLITE_TASK)

    with pytest.raises(OSError):
        build.run(":app", PRE_BUILD_TASK)
    assert app.tasks.get(PRE_BUILD_TASK).state == "pending"


def test_evaluation_depends_on_app(tmp_path):
    b = Build(str(tmp_path))
    b.add_subproject("path_provider_android")
    b.add_subproject("sqflite_android")
    b.add_subproject("app")
    b.subprojects(lambda p: b.evaluation_depends_on(p, ":app"))

    seen = []
    b.subprojects(lambda p: p.after_evaluate(lambda proj: seen.append(proj.path)))
    b.evaluate()

    assert seen[0] == ":app"
    assert sorted(seen) == [":app", ":path_provider_android", ":sqflite_android"]
    assert all(p.evaluated for p in b.subproject_list)


def test_evaluation_cycle(tmp_path):
    b = Build(str(tmp_path))
    one = b.add_subproject("one")
    two = b.add_subproject("two")
    b.evaluation_depends_on(one, ":two")
    b.evaluation_depends_on(two, ":one")
    with pytest.raises(TaskGraphError):
        b.evaluate()


def test_task_paths(build):
    app = build.project(":app")
    assert app.tasks.register("x").path == ":app:x"
    assert build.root.tasks.register("clean").path == ":clean"
    assert build.root.name == "android"
    assert app.name == "app"


def test_hook_runs_given_patches(build, patch_calls):
    applied = []

    class RecordingPatch:
        def __init__(self, name):
            self.name = name

        def apply(self, home=None):
            applied.append((self.name, home))
            return True

    app = build.project(":app")
    install_sqflite_hook(app, home="/h", patches=[RecordingPatch("one"), RecordingPatch("two")])
    app.tasks.register(PRE_BUILD_TASK)

    build.run(":app", PRE_BUILD_TASK)

    assert applied == [("one", "/h"), ("two", "/h")]
    # the stock sqflite fix is not used when patches are given
    assert patch_calls == []
