import os
import logging
import click

import sqflite_patch
from gradle_tasks import Build, TaskGraphError, PRE_BUILD_TASK
from android_config import (
    RootBuildConfig,
    apply_android_plugin,
    clean_build_dir,
    configure_build,
    root_build_dir,
    write_root_build_script,
)

# Rodamos a partir da raiz do projeto Flutter (medubs_native/)
DEFAULT_ANDROID_DIR = "android"
APP_PROJECT = ":app"


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show task-level debug output.")
def cli(verbose):
    """Build fixes for the MedUBS Android wrapper."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")


@cli.command("fix-sqflite")
@click.option("--home", default=None, help="Home directory holding .pub-cache (default: current user).")
def fix_sqflite_cmd(home):
    """Patch sqflite_android's Utils.java in the pub cache."""
    try:
        sqflite_patch.fix_sqflite(home=home)
    except (OSError, UnicodeError) as e:
        raise click.ClickException(f"Could not patch {sqflite_patch.sqflite_utils_path(home)}: {e}")


@cli.command("root-gradle")
@click.argument("android_dir", default=DEFAULT_ANDROID_DIR, type=click.Path(file_okay=False))
def root_gradle_cmd(android_dir):
    """Write android/build.gradle.kts with repositories, SDK pins and the sqflite fix."""
    if not os.path.isdir(android_dir):
        raise click.ClickException(f"{android_dir} not found!")
    path = write_root_build_script(android_dir)
    print(f"✅ Root build script written: {path}")


@cli.command("prebuild")
@click.option("--android-dir", default=DEFAULT_ANDROID_DIR, type=click.Path(file_okay=False))
@click.option("--home", default=None, help="Home directory holding .pub-cache (default: current user).")
@click.option("--subproject", "-p", multiple=True, help="Plugin subproject to include besides :app.")
@click.option("--group", default="com.example", show_default=True, help="Group used for missing namespaces.")
def prebuild_cmd(android_dir, home, subproject, group):
    """Evaluate the build and run preBuild in every subproject."""
    build = Build(android_dir)
    # ":foo" e "foo" são o mesmo projeto; repetidos entram uma vez só
    names = [APP_PROJECT]
    for p in subproject:
        path = ":" + p.lstrip(":")
        if path not in names:
            names.append(path)
    for name in names:
        build.add_subproject(name, group=group)

    configure_build(build, RootBuildConfig(), home=home)
    for project in build.subproject_list:
        apply_android_plugin(project)

    try:
        for project in build.evaluate():
            if PRE_BUILD_TASK in project.tasks:
                executed = build.run(project.path, PRE_BUILD_TASK)
                print(f"{project.path}: " + ", ".join(t.name for t in executed))
    except (OSError, UnicodeError, TaskGraphError) as e:
        raise click.ClickException(str(e))


@cli.command("clean")
@click.argument("android_dir", default=DEFAULT_ANDROID_DIR, type=click.Path(file_okay=False))
def clean_cmd(android_dir):
    """Delete the redirected build directory (<android>/../build)."""
    if not clean_build_dir(root_build_dir(android_dir)):
        print("Nothing to clean.")


if __name__ == "__main__":
    cli()
