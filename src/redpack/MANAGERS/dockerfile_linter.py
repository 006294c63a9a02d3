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
Lints a Dockerfile against the recipe it is supposed to implement.
"""
import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..MODELS.image_definition import CopyStep, ImageDefinition
from ..MODELS.image_recipe import ImageRecipe
from ..REGISTRY.image_reference import ImageReference
from ..RUNNERS.entrypoint_executor import EntrypointExecutor

# Directories on the default PATH of the redis images
PATH_DIRS = ("/usr/local/sbin", "/usr/local/bin", "/usr/sbin", "/usr/bin", "/sbin", "/bin")


class Severity(str, Enum):
    """How serious a lint finding is."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class LintFinding:
    """One problem found in a Dockerfile."""

    code: str
    severity: Severity
    message: str

    def __str__(self) -> str:
        return f"{self.severity.value}: {self.code}: {self.message}"


class DockerfileLinter:
    """
    Compares an ImageDefinition with an ImageRecipe. Catches the mistakes
    that otherwise surface only when a container fails to start: a config
    the service account cannot rewrite, a script that is not executable,
    or a port or entrypoint that does not match the topology.
    """

    def __init__(self):
        self.executor = EntrypointExecutor()

    def lint(self, image: ImageDefinition, recipe: ImageRecipe) -> List[LintFinding]:
        """
        Run every check.

        :param image: Summary of the Dockerfile under test.
        :param recipe: The recipe it should implement.
        :return: Findings, errors and warnings in check order.
        """
        findings: List[LintFinding] = []
        self._check_base(image, recipe, findings)
        config = self._check_config(image, recipe, findings)
        script = self._check_script(image, recipe, findings)
        if config is not None:
            self._check_config_owner(image, recipe, config, findings)
        if script is not None:
            self._check_script_mode(image, recipe, script, findings)
        self._check_ports(image, recipe, findings)
        self._check_entrypoint(image, recipe, script, findings)
        return findings

    def has_errors(self, findings: List[LintFinding]) -> bool:
        return any(f.severity == Severity.ERROR for f in findings)

    def _check_base(self, image, recipe, findings):
        if not image.base_image:
            findings.append(LintFinding("base-missing", Severity.ERROR, "no FROM instruction"))
            return
        try:
            reference = ImageReference.parse(image.base_image)
        except ValueError as exc:
            findings.append(LintFinding("base-invalid", Severity.ERROR, str(exc)))
            return
        if reference.repository != recipe.base_reference.repository:
            findings.append(LintFinding(
                "base-repository", Severity.WARNING,
                f"base image {image.base_image} is not {recipe.base_reference.repository}"))
        if not reference.matches_variant(recipe.base_variant):
            findings.append(LintFinding(
                "base-variant", Severity.ERROR,
                f"base image {image.base_image} is not a {recipe.base_variant} variant"))
        if not reference.is_pinned:
            findings.append(LintFinding(
                "base-unpinned", Severity.WARNING,
                f"base image {image.base_image} is not pinned to a digest"))

    def _copy_of(self, image: ImageDefinition, name: str) -> Optional[CopyStep]:
        for step in image.copies:
            if posixpath.basename(step.source.rstrip("/")) == name:
                return step
        return None

    def _check_config(self, image, recipe, findings) -> Optional[CopyStep]:
        step = self._copy_of(image, recipe.config_file)
        if step is None:
            findings.append(LintFinding(
                "config-missing", Severity.ERROR, f"{recipe.config_file} is never copied"))
            return None
        if step.destination != recipe.config_path:
            findings.append(LintFinding(
                "config-location", Severity.ERROR,
                f"{recipe.config_file} is copied to {step.destination}, expected {recipe.config_path}"))
        return step

    def _check_script(self, image, recipe, findings) -> Optional[CopyStep]:
        step = self._copy_of(image, recipe.entrypoint_script)
        if step is None:
            findings.append(LintFinding(
                "script-missing", Severity.ERROR, f"{recipe.entrypoint_script} is never copied"))
        return step

    def _check_config_owner(self, image, recipe, step, findings):
        owner = image.ownership.get(step.destination) or step.chown
        if owner != recipe.ownership:
            detail = f"owned by {owner}" if owner else "ownership is never set"
            findings.append(LintFinding(
                "config-owner", Severity.ERROR,
                f"{step.destination} must be owned by {recipe.ownership}, {detail}"))

    def _check_script_mode(self, image, recipe, step, findings):
        mode = image.modes.get(step.destination) or step.chmod
        if not mode or not self._grants_owner_execute(mode):
            findings.append(LintFinding(
                "script-mode", Severity.WARNING,
                f"{step.destination} is not made executable in the Dockerfile; "
                f"startup depends on the source file's permissions"))

    def _grants_owner_execute(self, mode: str) -> bool:
        if re.fullmatch(r'[0-7]{3,4}', mode):
            return bool(int(mode, 8) & 0o100)
        for clause in mode.split(","):
            match = re.fullmatch(r'([ugoa]*)([-+=])([rwxXst]+)', clause)
            if match and match.group(2) in "+=" and "x" in match.group(3).lower():
                who = match.group(1)
                if not who or "u" in who or "a" in who:
                    return True
        return False

    def _check_ports(self, image, recipe, findings):
        if recipe.exposed_port not in image.exposed_ports:
            findings.append(LintFinding(
                "port-missing", Severity.ERROR, f"port {recipe.port} is not exposed"))
        extra = [p for p in image.exposed_ports if p != recipe.exposed_port]
        if extra:
            findings.append(LintFinding(
                "port-extra", Severity.WARNING, f"unexpected exposed ports: {', '.join(extra)}"))

    def _check_entrypoint(self, image, recipe, script, findings):
        if not image.entrypoint:
            findings.append(LintFinding("entrypoint-missing", Severity.ERROR, "no ENTRYPOINT"))
            return
        if not image.entrypoint_exec_form:
            findings.append(LintFinding(
                "entrypoint-shell-form", Severity.ERROR,
                "ENTRYPOINT uses shell form; the script would not run as process 1"))
            return
        expected = script.destination if script is not None else recipe.script_path
        command = self.executor.get_full_command(image.entrypoint, image.cmd)
        if self.executor.launches_script(command, expected):
            return
        # A bare name resolves through PATH
        first = command[0]
        if ("/" not in first and script is not None and first == posixpath.basename(expected)
                and posixpath.dirname(expected) in PATH_DIRS):
            return
        findings.append(LintFinding(
            "entrypoint-script", Severity.ERROR,
            f"ENTRYPOINT {image.entrypoint} does not start {expected}"))
