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
Domain errors raised by redpack.
"""
from typing import List, Optional


class RedpackError(RuntimeError):
    """Raised when an image cannot be rendered, built or verified."""


class ConfigError(RedpackError):
    """Raised when the project configuration cannot be loaded."""


class MissingInputError(RedpackError):
    """Raised when a recipe's configuration file or entrypoint script is absent."""

    def __init__(self, topology: str, missing: List[str]):
        self.topology = topology
        self.missing = list(missing)
        super().__init__(
            f"Cannot build {topology} image, missing input file(s): {', '.join(self.missing)}"
        )


class BuildError(RedpackError):
    """Raised when a docker command fails."""

    def __init__(self, message: str, command: Optional[List[str]] = None, returncode: Optional[int] = None):
        self.command = list(command or [])
        self.returncode = returncode
        super().__init__(message)


class DockerNotFoundError(BuildError):
    """Raised when the docker CLI is not installed."""
