"""
Unit tests for the image verifier.
"""
import json
import subprocess
import pytest
from redpack.errors import BuildError
from redpack.MANAGERS.image_verifier import ImageVerifier
from redpack.RECIPES.topologies import cluster_recipe, sentinel_recipe


class FakeDocker:
    """Answers docker commands from canned outputs."""

    def __init__(self, recipe, config=None, stat=None, status="running", pid1=None, start_error=None):
        self.calls = []
        self.config = config if config is not None else {
            "ExposedPorts": {recipe.exposed_port: {}},
            "WorkingDir": recipe.workdir,
            "Entrypoint": recipe.entrypoint,
        }
        self.stat = stat if stat is not None else (
            f"redis:redis 644 {recipe.config_path}\n"
            f"redis:redis 755 {recipe.script_path}\n"
        )
        self.status = status
        self.pid1 = pid1 if pid1 is not None else [recipe.script_path]
        self.start_error = start_error

    def run(self, command, input_bytes=None, check=True, timeout=None):
        self.calls.append(command)
        text = " ".join(command)
        if text.startswith("docker image inspect"):
            out = json.dumps(self.config)
        elif text.startswith("docker run --rm --entrypoint stat"):
            out = self.stat
        elif text.startswith("docker create"):
            out = "c0ffee\n"
        elif text.startswith("docker start") and self.start_error:
            return subprocess.CompletedProcess(command, 126, "", self.start_error)
        elif "{{.State.Status}}" in text:
            out = self.status + "\n"
        elif "{{json .Path}}" in text:
            out = f"{json.dumps(self.pid1[0])} {json.dumps(self.pid1[1:])}\n"
        else:
            out = ""
        return subprocess.CompletedProcess(command, 0, out, "")

    def removed(self):
        return ["docker", "rm", "-f", "c0ffee"] in self.calls


def checks(report):
    return {check.name: check.passed for check in report.checks}


class TestImageVerifier:
    """Tests for ImageVerifier."""

    @pytest.mark.parametrize("recipe", [sentinel_recipe(), cluster_recipe()])
    def test_good_image_passes(self, recipe):
        docker = FakeDocker(recipe)
        report = ImageVerifier(runner=docker, poll_interval=0).verify(recipe)
        assert report.passed, report.failures
        assert set(checks(report)) == {
            "exposed-port", "workdir", "entrypoint",
            "config-owner", "script-owner", "script-executable", "pid1",
        }
        assert docker.removed()

    def test_tag_override(self):
        recipe = sentinel_recipe()
        docker = FakeDocker(recipe)
        report = ImageVerifier(runner=docker, poll_interval=0).verify(recipe, tag="acme/sentinel:dev")
        assert report.tag == "acme/sentinel:dev"
        assert docker.calls[0][-1] == "acme/sentinel:dev"

    def test_wrong_port_and_entrypoint(self):
        recipe = sentinel_recipe()
        docker = FakeDocker(recipe, config={"ExposedPorts": {"6379/tcp": {}}, "WorkingDir": "/data",
                                            "Entrypoint": ["docker-entrypoint.sh"]})
        result = checks(ImageVerifier(runner=docker, poll_interval=0).verify(recipe))
        assert result["exposed-port"] is False
        assert result["workdir"] is False
        assert result["entrypoint"] is False

    def test_root_owned_config(self):
        recipe = cluster_recipe()
        docker = FakeDocker(recipe, stat=(
            f"root:root 644 {recipe.config_path}\n"
            f"redis:redis 644 {recipe.script_path}\n"
        ))
        report = ImageVerifier(runner=docker, poll_interval=0).verify(recipe)
        result = checks(report)
        assert result["config-owner"] is False
        assert result["script-owner"] is True
        assert result["script-executable"] is False
        assert not report.passed

    def test_missing_files(self):
        recipe = cluster_recipe()
        docker = FakeDocker(recipe, stat="")
        result = checks(ImageVerifier(runner=docker, poll_interval=0).verify(recipe))
        assert result["config-owner"] is False
        assert result["script-executable"] is False

    def test_script_behind_shell_is_pid1(self):
        recipe = sentinel_recipe()
        docker = FakeDocker(recipe, pid1=["/bin/sh", recipe.script_path])
        assert checks(ImageVerifier(runner=docker, poll_interval=0).verify(recipe))["pid1"] is True

    def test_other_pid1_fails(self):
        recipe = sentinel_recipe()
        docker = FakeDocker(recipe, pid1=["redis-server", "/redis/sentinel.conf", "--sentinel"])
        report = ImageVerifier(runner=docker, poll_interval=0).verify(recipe)
        assert checks(report)["pid1"] is False
        assert docker.removed()

    def test_container_that_never_starts(self):
        recipe = sentinel_recipe()
        docker = FakeDocker(recipe, status="created")
        verifier = ImageVerifier(runner=docker, start_timeout=0, poll_interval=0)
        report = verifier.verify(recipe)
        assert checks(report)["pid1"] is False
        assert docker.removed()

    def test_exited_container_still_reports_pid1(self):
        recipe = sentinel_recipe()
        docker = FakeDocker(recipe, status="exited")
        assert checks(ImageVerifier(runner=docker, poll_interval=0).verify(recipe))["pid1"] is True

    def test_bad_inspect_output(self):
        recipe = sentinel_recipe()
        docker = FakeDocker(recipe)
        docker.run = lambda command, **kwargs: subprocess.CompletedProcess(command, 0, "not json", "")
        with pytest.raises(BuildError):
            ImageVerifier(runner=docker).verify(recipe)

    def test_script_that_cannot_start_is_reported(self):
        recipe = sentinel_recipe()
        docker = FakeDocker(recipe, stat=(
            f"redis:redis 644 {recipe.config_path}\n"
            f"redis:redis 644 {recipe.script_path}\n"
        ), start_error="exec /redis/sentinel-entrypoint.sh: permission denied\n")
        report = ImageVerifier(runner=docker, poll_interval=0).verify(recipe)
        result = checks(report)
        assert result["script-executable"] is False
        assert result["pid1"] is False
        assert "permission denied" in report.checks[-1].detail
        assert ["docker", "start", "c0ffee"] in docker.calls
        assert docker.removed()
        assert not any("{{.State.Status}}" in " ".join(call) for call in docker.calls)
