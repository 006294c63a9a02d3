# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""
Verification of built images: exposed port, working directory,
entrypoint, file ownership and modes, and the process started as PID 1.
"""
import json
from typing import Any, Dict, List, Optional

from tenacity import retry, retry_if_result, stop_after_delay, wait_fixed, RetryError

from ..errors import BuildError
from ..MODELS.build_result import VerificationReport
from ..MODELS.image_recipe import ImageRecipe
from ..RUNNERS.command_runner import CommandRunner
from ..RUNNERS.entrypoint_executor import EntrypointExecutor


class ImageVerifier:
    """
    Checks a built image against its recipe using the docker CLI.
    """

    def __init__(self, runner: Optional[CommandRunner] = None, start_timeout: float = 10.0,
                 poll_interval: float = 0.5):
        """
        Initializes the verifier.

        :param runner: Runs docker commands.
        :param start_timeout: Seconds to wait for a verification container to start.
        :param poll_interval: Seconds between container state polls.
        """
        self.runner = runner or CommandRunner()
        self.executor = EntrypointExecutor()
        self.start_timeout = start_timeout
        self.poll_interval = poll_interval

    def verify(self, recipe: ImageRecipe, tag: Optional[str] = None) -> VerificationReport:
        """
        Runs every check.

        :param recipe: The recipe the image was built from.
        :param tag: Image to check; the recipe's tag by default.
        :return: A VerificationReport.
        """
        tag = tag or recipe.tag
        name = recipe.topology.value
        report = VerificationReport(tag=tag)

        print(f"[{name}] Verifying {tag}")
        config = self.inspect_config(tag)
        self._check_config(recipe, config, report)
        self._check_files(recipe, tag, report)
        self._check_pid1(recipe, tag, report)

        for check in report.checks:
            status = "ok" if check.passed else "FAILED"
            print(f"[{name}] {check.name}: {status} {check.detail}".rstrip())
        return report

    def inspect_config(self, tag: str) -> Dict[str, Any]:
        result = self.runner.run(["docker", "image", "inspect", "--format", "{{json .Config}}", tag])
        try:
            return json.loads(result.stdout) or {}
        except json.JSONDecodeError as exc:
            raise BuildError(f"Unexpected output from docker image inspect: {exc}") from exc

    def _check_config(self, recipe: ImageRecipe, config: Dict[str, Any], report: VerificationReport):
        ports = sorted((config.get("ExposedPorts") or {}).keys())
        report.add("exposed-port", recipe.exposed_port in ports, f"exposed: {', '.join(ports) or 'none'}")

        workdir = config.get("WorkingDir") or ""
        report.add("workdir", workdir == recipe.workdir, f"working directory: {workdir or 'unset'}")

        entrypoint = config.get("Entrypoint") or []
        report.add("entrypoint", entrypoint == recipe.entrypoint, f"entrypoint: {entrypoint}")

    def _check_files(self, recipe: ImageRecipe, tag: str, report: VerificationReport):
        command = [
            "docker", "run", "--rm", "--entrypoint", "stat", tag,
            "-c", "%U:%G %a %n", recipe.config_path, recipe.script_path,
        ]
        result = self.runner.run(command, check=False)
        stats = self._parse_stat(result.stdout)

        config = stats.get(recipe.config_path)
        report.add(
            "config-owner",
            config is not None and config[0] == recipe.ownership,
            f"{recipe.config_path}: {config[0] if config else 'missing'}",
        )

        script = stats.get(recipe.script_path)
        report.add(
            "script-owner",
            script is not None and script[0] == recipe.ownership,
            f"{recipe.script_path}: {script[0] if script else 'missing'}",
        )
        report.add(
            "script-executable",
            script is not None and bool(int(script[1], 8) & 0o100),
            f"{recipe.script_path}: mode {script[1] if script else 'missing'}",
        )

    def _parse_stat(self, output: str) -> Dict[str, tuple]:
        stats = {}
        for line in output.splitlines():
            parts = line.strip().split(" ", 2)
            if len(parts) == 3:
                owner, mode, path = parts
                stats[path] = (owner, mode)
        return stats

    def _check_pid1(self, recipe: ImageRecipe, tag: str, report: VerificationReport):
        result = self.runner.run(["docker", "create", tag])
        container = result.stdout.strip()
        try:
            # A script that cannot be executed fails here and leaves the container 'created'
            started = self.runner.run(["docker", "start", container], check=False)
            if started.returncode != 0:
                error = (started.stderr or "").strip() or f"exit code {started.returncode}"
                report.add("pid1", False, f"container failed to start: {error}")
                return
            try:
                state = self.wait_started(container)
            except RetryError:
                report.add("pid1", False, f"container did not start within {self.start_timeout}s")
                return
            command = self.pid1_command(container)
            report.add(
                "pid1",
                self.executor.launches_script(command, recipe.script_path),
                f"process 1: {' '.join(command)} ({state})",
            )
        finally:
            self.runner.run(["docker", "rm", "-f", container], check=False)

    def wait_started(self, container: str) -> str:
        """
        Waits until the container has left the 'created' state.

        :return: The container's status ('running', 'exited', ...).
        :raises RetryError: if it is still 'created' after start_timeout.
        """
        @retry(
            retry=retry_if_result(lambda status: status == "created"),
            stop=stop_after_delay(self.start_timeout),
            wait=wait_fixed(self.poll_interval),
        )
        def poll() -> str:
            result = self.runner.run(
                ["docker", "container", "inspect", "--format", "{{.State.Status}}", container])
            return result.stdout.strip()

        return poll()

    def pid1_command(self, container: str) -> List[str]:
        """
        The command Docker launched as the container's first process.
        """
        result = self.runner.run(
            ["docker", "container", "inspect", "--format", "{{json .Path}} {{json .Args}}", container])
        text = result.stdout.strip()
        decoder = json.JSONDecoder()
        try:
            path, end = decoder.raw_decode(text)
            rest = text[end:].strip()
            args = decoder.raw_decode(rest)[0] if rest else []
        except json.JSONDecodeError as exc:
            raise BuildError(f"Unexpected output from docker container inspect: {exc}") from exc
        return [path] + list(args or [])
