import stat
import sys

import pytest

from ezserver.exceptions import BuildError
from ezserver.process.build import BuildRunner

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses a shell script as java")


def fake_java_home(tmp_path, script):
    """Java home whose bin/java is a shell script."""
    bin_dir = tmp_path / "jdk" / "bin"
    bin_dir.mkdir(parents=True)
    java = bin_dir / "java"
    java.write_text("#!/bin/sh\n" + script)
    java.chmod(java.stat().st_mode | stat.S_IXUSR)
    return tmp_path / "jdk"


async def test_successful_build_streams_output(tmp_path):
    java_home = fake_java_home(tmp_path, 'echo "building $2"\necho "args $3 $4"\nexit 0\n')
    lines = []

    outcome = await BuildRunner().build(
        tmp_path / "BuildTools.jar", tmp_path, java_home, ["--rev", "1.20.4"], observer=lines.append
    )

    assert outcome.exit_code == 0
    assert lines == [f"building {tmp_path / 'BuildTools.jar'}", "args --rev 1.20.4"]


async def test_build_runs_in_work_dir(tmp_path):
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    java_home = fake_java_home(tmp_path, "touch built.jar\n")

    await BuildRunner().build("BuildTools.jar", work_dir, java_home)

    assert (work_dir / "built.jar").exists()


async def test_failed_build_raises_with_outcome(tmp_path):
    java_home = fake_java_home(tmp_path, "echo broken >&2\nexit 3\n")
    lines = []

    with pytest.raises(BuildError) as exc_info:
        await BuildRunner().build("installer.jar", tmp_path, java_home, observer=lines.append)

    assert exc_info.value.outcome.exit_code == 3
    assert lines == ["broken"]


async def test_missing_java_raises_with_failed_outcome(tmp_path):
    with pytest.raises(BuildError) as exc_info:
        await BuildRunner().build("installer.jar", tmp_path, tmp_path / "no-jdk")

    assert exc_info.value.outcome.failed_to_spawn
