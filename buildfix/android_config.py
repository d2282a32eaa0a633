import os
import shutil
import logging
from typing import List, Optional
from pydantic import BaseModel

import sqflite_patch
from gradle_tasks import Build, Project, install_sqflite_hook, PRE_BUILD_TASK, FIX_SQFLITE_TASK

logger = logging.getLogger(__name__)

ROOT_SCRIPT_NAME = "build.gradle.kts"
CLEAN_TASK = "clean"


# --- MODELOS ---
class AndroidSettings(BaseModel):
    compile_sdk: str = "android-36"
    build_tools: str = "36.0.0"
    ndk: str = "27.0.12077973"


class AndroidExtension(BaseModel):
    """What a subproject's `android { }` block ends up holding."""
    compile_sdk_version: Optional[str] = None
    build_tools_version: Optional[str] = None
    ndk_version: Optional[str] = None
    namespace: Optional[str] = None


class RootBuildConfig(BaseModel):
    repositories: List[str] = ["google()", "mavenCentral()"]
    build_dir: str = "../../build"
    evaluation_anchor: str = ":app"
    android: AndroidSettings = AndroidSettings()
    patches: List[sqflite_patch.DependencyPatch] = [sqflite_patch.SQFLITE_BAKLAVA]


# --- CONFIGURAÇÃO DO BUILD ---

def root_build_dir(android_dir: str, config: Optional[RootBuildConfig] = None) -> str:
    # buildDirectory.dir("../../build") is relative to the default android/build
    config = config or RootBuildConfig()
    return os.path.normpath(os.path.join(android_dir, "build", config.build_dir))


def apply_android_plugin(project: Project, namespace: Optional[str] = None) -> AndroidExtension:
    """Gives the project an android extension and its preBuild task, like the AGP plugin does."""
    extension = AndroidExtension(namespace=namespace)
    project.extensions["android"] = extension
    project.tasks.register(PRE_BUILD_TASK)
    return extension


def apply_android_settings(project: Project, settings: AndroidSettings) -> bool:
    if not project.has_property("android"):
        return False
    android = project.extensions["android"]
    android.compile_sdk_version = settings.compile_sdk
    android.build_tools_version = settings.build_tools
    android.ndk_version = settings.ndk
    if android.namespace is None:
        print(f"Fixing missing namespace for {project.name}")
        android.namespace = str(project.group)
    return True


def clean_build_dir(path: str) -> bool:
    if not os.path.exists(path):
        return False
    shutil.rmtree(path)
    print(f"🗑️ Removed {path}")
    return True


def configure_build(build: Build, config: Optional[RootBuildConfig] = None, home: Optional[str] = None) -> Build:
    """Applies the root build.gradle.kts wiring to an in-process Build."""
    config = config or RootBuildConfig()
    new_build_dir = root_build_dir(build.root_dir, config)

    def add_repositories(project: Project):
        for repo in config.repositories:
            if repo not in project.repositories:
                project.repositories.append(repo)

    build.allprojects(add_repositories)

    build.root.build_dir = new_build_dir
    for project in build.subproject_list:
        project.build_dir = os.path.join(new_build_dir, project.name)

    def pin_android(project: Project):
        project.after_evaluate(lambda p: apply_android_settings(p, config.android))

    build.subprojects(pin_android)
    build.subprojects(lambda p: build.evaluation_depends_on(p, config.evaluation_anchor))
    build.subprojects(lambda p: install_sqflite_hook(p, home=home, patches=config.patches))

    if CLEAN_TASK not in build.root.tasks:
        build.root.tasks.register(CLEAN_TASK, lambda task: clean_build_dir(new_build_dir))
    logger.debug("configured %d subproject(s), build dir %s", len(build.subproject_list), new_build_dir)
    return build


# --- SCRIPT GRADLE ---

def render_patch_block(patch: sqflite_patch.DependencyPatch) -> str:
    relative = patch.relative_path.replace(os.sep, "/")
    patch_path = f"${{System.getProperty(\"user.home\")}}/.pub-cache/hosted/pub.dev/{patch.package_dir}/{relative}"
    return f"""            file("{patch_path}").let {{ target ->
                if (target.exists()) {{
                    var content = target.readText()
                    content = content.replace("{patch.token}", "{patch.replacement}")
                    target.writeText(content)
                    println("{patch.message}")
                }}
            }}"""


def render_root_build_script(config: Optional[RootBuildConfig] = None) -> str:
    config = config or RootBuildConfig()
    repos = "\n".join(f"        {repo}" for repo in config.repositories)
    patch_blocks = "\n".join(render_patch_block(patch) for patch in config.patches)

    return f"""allprojects {{
    repositories {{
{repos}
    }}
}}

val newBuildDir: Directory = rootProject.layout.buildDirectory.dir("{config.build_dir}").get()
rootProject.layout.buildDirectory.value(newBuildDir)

subprojects {{
    val newSubprojectBuildDir: Directory = newBuildDir.dir(project.name)
    project.layout.buildDirectory.value(newSubprojectBuildDir)
}}
subprojects {{
    afterEvaluate {{
        if (project.hasProperty("android")) {{
            val androidExtension = project.extensions.findByName("android")
            if (androidExtension is com.android.build.gradle.BaseExtension) {{
                androidExtension.compileSdkVersion = "{config.android.compile_sdk}"
                androidExtension.buildToolsVersion = "{config.android.build_tools}"
                androidExtension.ndkVersion = "{config.android.ndk}"
                if (androidExtension.namespace == null) {{
                    androidExtension.namespace = project.group.toString()
                }}
            }}
        }}
    }}
}}

subprojects {{
    project.evaluationDependsOn("{config.evaluation_anchor}")
}}

subprojects {{
    tasks.register("{FIX_SQFLITE_TASK}") {{
        doLast {{
{patch_blocks}
        }}
    }}

    tasks.whenTaskAdded {{
        if (name == "{PRE_BUILD_TASK}") {{
            dependsOn("{FIX_SQFLITE_TASK}")
        }}
    }}
}}

tasks.register<Delete>("{CLEAN_TASK}") {{
    delete(rootProject.layout.buildDirectory)
}}
"""


def write_root_build_script(android_dir: str, config: Optional[RootBuildConfig] = None) -> str:
    path = os.path.join(android_dir, ROOT_SCRIPT_NAME)
    print(f"Writing {path}...")
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_root_build_script(config))
    return path
