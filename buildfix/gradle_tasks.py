import logging
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

import sqflite_patch

logger = logging.getLogger(__name__)

FIX_SQFLITE_TASK = "fixSqflite"
PRE_BUILD_TASK = "preBuild"


class TaskGraphError(Exception):
    pass


class Task:
    def __init__(self, name: str, project: "Project", action: Optional[Callable] = None):
        self.name = name
        self.project = project
        self.action = action
        self.depends_on: List[str] = []
        self.state = "pending"

    @property
    def path(self) -> str:
        if self.project.path == ":":
            return f":{self.name}"
        return f"{self.project.path}:{self.name}"

    def add_dependency(self, name: str):
        if name not in self.depends_on:
            self.depends_on.append(name)

    def execute(self):
        if self.action is not None:
            self.action(self)
        self.state = "done"

    def __repr__(self):
        return f"Task({self.path}, {self.state})"


class TaskContainer:
    """Tasks of one project, by name. Hooks see every task added after them."""

    def __init__(self, project: "Project"):
        self.project = project
        self._tasks: "OrderedDict[str, Task]" = OrderedDict()
        self._added_hooks: List[Callable[[Task], None]] = []

    def register(self, name: str, action: Optional[Callable] = None) -> Task:
        if name in self._tasks:
            raise TaskGraphError(f"Task '{name}' already exists in {self.project.path}")
        task = Task(name, self.project, action)
        self._tasks[name] = task
        for hook in self._added_hooks:
            hook(task)
        return task

    def get(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise TaskGraphError(f"Task '{name}' not found in {self.project.path}") from None

    def when_task_added(self, callback: Callable[[Task], None]):
        self._added_hooks.append(callback)

    def names(self) -> List[str]:
        return list(self._tasks)

    def __contains__(self, name):
        return name in self._tasks

    def __iter__(self):
        return iter(self._tasks.values())


class Project:
    def __init__(self, path: str, group: str = "", name: Optional[str] = None):
        self.path = path
        self.name = name or path.rsplit(":", 1)[-1]
        self.group = group
        self.tasks = TaskContainer(self)
        self.extensions: Dict[str, object] = {}
        self.repositories: List[str] = []
        self.build_dir: Optional[str] = None
        self.evaluated = False
        self._after_evaluate: List[Callable[["Project"], None]] = []

    def has_property(self, name: str) -> bool:
        return name in self.extensions

    def after_evaluate(self, callback: Callable[["Project"], None]):
        self._after_evaluate.append(callback)

    def evaluate(self):
        for callback in self._after_evaluate:
            callback(self)
        self.evaluated = True

    def __repr__(self):
        return f"Project({self.path})"


class Build:
    """
    In-process model of one Gradle build: a root project plus subprojects.
    Single-threaded. Each task runs at most once per build.
    """

    def __init__(self, root_dir: str, name: str = "android"):
        self.root_dir = root_dir
        self.root = Project(":", name=name)
        self._projects: "OrderedDict[str, Project]" = OrderedDict([(":", self.root)])
        self._evaluation_deps: Dict[str, List[str]] = {}

    # --- PROJETOS ---
    def add_subproject(self, path: str, group: str = "") -> Project:
        if not path.startswith(":"):
            path = ":" + path
        if path in self._projects:
            raise TaskGraphError(f"Project {path} already exists")
        project = Project(path, group=group)
        self._projects[path] = project
        return project

    def project(self, path: str) -> Project:
        if not path.startswith(":"):
            path = ":" + path
        try:
            return self._projects[path]
        except KeyError:
            raise TaskGraphError(f"Project with path '{path}' could not be found") from None

    @property
    def subproject_list(self) -> List[Project]:
        return [p for path, p in self._projects.items() if path != ":"]

    def subprojects(self, configure: Callable[[Project], None]):
        for project in self.subproject_list:
            configure(project)

    def allprojects(self, configure: Callable[[Project], None]):
        for project in self._projects.values():
            configure(project)

    # --- AVALIAÇÃO ---
    def evaluation_depends_on(self, project: Project, path: str):
        target = self.project(path)
        # a project depending on itself is already being evaluated
        if target is project:
            return
        deps = self._evaluation_deps.setdefault(project.path, [])
        if target.path not in deps:
            deps.append(target.path)

    def evaluation_order(self) -> List[Project]:
        order: List[Project] = []
        visiting = set()
        done = set()

        def visit(path, chain):
            if path in done:
                return
            if path in visiting:
                raise TaskGraphError("Circular evaluation dependency: " + " -> ".join(chain + [path]))
            visiting.add(path)
            for dep in self._evaluation_deps.get(path, []):
                visit(dep, chain + [path])
            visiting.discard(path)
            done.add(path)
            order.append(self._projects[path])

        for path in self._projects:
            visit(path, [])
        return order

    def evaluate(self) -> List[Project]:
        order = self.evaluation_order()
        for project in order:
            if not project.evaluated:
                logger.debug("evaluating %s", project.path)
                project.evaluate()
        return order

    # --- EXECUÇÃO ---
    def run(self, project_path: str, task_name: str) -> List[Task]:
        """Runs a task after its dependencies. Returns the tasks executed by this call."""
        project = self.project(project_path)
        executed: List[Task] = []
        self._run_task(project, task_name, [], executed)
        return executed

    def _run_task(self, project: Project, name: str, chain: List[str], executed: List[Task]):
        task = project.tasks.get(name)
        if task.state == "done":
            return
        if task.path in chain:
            raise TaskGraphError("Circular dependency between tasks: " + " -> ".join(chain + [task.path]))

        chain.append(task.path)
        for dep in task.depends_on:
            self._run_task(project, dep, chain, executed)
        chain.pop()

        logger.debug("> Task %s", task.path)
        task.execute()
        executed.append(task)


def install_sqflite_hook(project: Project, home: Optional[str] = None,
                         patches: Optional[List["sqflite_patch.DependencyPatch"]] = None) -> Task:
    """
    Registers fixSqflite and makes any later preBuild task depend on it.
    Without `patches` the task runs the stock sqflite BAKLAVA fix.
    """
    def run_patches(task: Task):
        if patches is None:
            sqflite_patch.fix_sqflite(home=home)
            return
        for patch in patches:
            patch.apply(home=home)

    fix_task = project.tasks.register(FIX_SQFLITE_TASK, run_patches)

    def on_task_added(task: Task):
        if task.name == PRE_BUILD_TASK:
            task.add_dependency(FIX_SQFLITE_TASK)

    project.tasks.when_task_added(on_task_added)
    return fix_task
