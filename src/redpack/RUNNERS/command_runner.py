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
Execution of docker CLI commands with consistent error handling.
"""
import subprocess
from typing import List, Optional

from ..errors import BuildError, DockerNotFoundError


class CommandRunner:
    """
    Runs one external command at a time and turns failures into BuildError.
    """
    def __init__(self, name: str = "docker", verbose: bool = False, timeout: Optional[float] = None):
        """
        Initializes the command runner.

        Args:
            name (str): Prefix for printed progress lines.
            verbose (bool): Print every command before running it.
            timeout (Optional[float]): Default timeout in seconds for each command.
        """
        self.name = name
        self.verbose = verbose
        self.timeout = timeout

    def run(self,
            command: List[str],
            input_bytes: Optional[bytes] = None,
            check: bool = True,
            timeout: Optional[float] = None) -> subprocess.CompletedProcess:
        """
        Runs a command and captures its output as text.

        Args:
            command (List[str]): Command and arguments to execute.
            input_bytes (Optional[bytes]): Data written to the command's stdin.
            check (bool): Raise BuildError on a non-zero exit code.
            timeout (Optional[float]): Overrides the default timeout.

        Returns:
            subprocess.CompletedProcess: The finished process, stdout/stderr decoded.
        """
        cmd_str = " ".join(command)
        if self.verbose:
            print(f"[{self.name}] Running: {cmd_str}")

        effective_timeout = timeout if timeout is not None else self.timeout
        try:
            result = subprocess.run(
                command,
                input=input_bytes,
                capture_output=True,
                timeout=effective_timeout,
                # Avoid shell=True for security reasons (CWE-78)
                shell=False,
            )
        except FileNotFoundError as exc:
            raise DockerNotFoundError(
                f"Required command not found: {command[0]}. Please install it and try again.",
                command=command,
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise BuildError(
                f"Command timed out after {effective_timeout}s: {cmd_str}", command=command
            ) from exc

        stdout = result.stdout.decode("utf-8", errors="replace")
        stderr = result.stderr.decode("utf-8", errors="replace")
        completed = subprocess.CompletedProcess(command, result.returncode, stdout, stderr)

        if check and result.returncode != 0:
            message = f"Command failed ({result.returncode}): {cmd_str}"
            if stderr.strip():
                message = f"{message}\n{stderr.strip()}"
            raise BuildError(message, command=command, returncode=result.returncode)
        return completed
