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
Build context staging.
Collects a recipe's Dockerfile, configuration file and entrypoint script
into a tar archive whose bytes depend only on the file contents, so that
identical inputs always produce an identical context digest.
"""

import hashlib
import io
import os
import tarfile
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..errors import MissingInputError
from ..CONVERTERS.to_dockerfile import DockerfileConverter
from ..MODELS.image_recipe import ImageRecipe

DOCKERFILE_NAME = "Dockerfile"
FILE_MODE = 0o644


@dataclass
class BuildContext:
    """A staged build context for one recipe."""
    recipe: ImageRecipe
    dockerfile: str
    # file name -> (content, mode)
    files: Dict[str, tuple] = field(default_factory=dict)
    archive: bytes = b""

    @property
    def digest(self) -> str:
        return f"sha256:{hashlib.sha256(self.archive).hexdigest()}"

    @property
    def names(self) -> List[str]:
        return sorted(self.files)


class BuildContextBuilder:
    """
    Stages build contexts from a source directory holding the
    configuration files and entrypoint scripts.
    """

    def __init__(self, source_dir: str = ".", converter: Optional[DockerfileConverter] = None):
        """
        Initialize the builder.

        Args:
            source_dir: Directory inputs are read from, unless a recipe sets its own.
            converter: Dockerfile renderer. A default one is created when omitted.
        """
        self.source_dir = source_dir
        self.converter = converter or DockerfileConverter()

    def input_dir(self, recipe: ImageRecipe) -> str:
        return recipe.source_dir or self.source_dir

    def missing_inputs(self, recipe: ImageRecipe) -> List[str]:
        """
        List the recipe inputs that are not regular files in its source directory.
        """
        base = self.input_dir(recipe)
        return [
            os.path.join(base, name)
            for name in recipe.input_files
            if not os.path.isfile(os.path.join(base, name))
        ]

    def stage(self, recipe: ImageRecipe) -> BuildContext:
        """
        Stage the context for a recipe.

        Args:
            recipe: The recipe to stage.

        Returns:
            The staged BuildContext.

        Raises:
            MissingInputError: if the configuration file or script is absent.
        """
        missing = self.missing_inputs(recipe)
        if missing:
            raise MissingInputError(recipe.topology.value, missing)

        dockerfile = self.converter.render(recipe)
        files = {DOCKERFILE_NAME: (dockerfile.encode("utf-8"), FILE_MODE)}

        base = self.input_dir(recipe)
        with open(os.path.join(base, recipe.config_file), "rb") as f:
            files[recipe.config_file] = (f.read(), FILE_MODE)
        # Mode is normalized here and set again in the image, never taken from the source
        with open(os.path.join(base, recipe.entrypoint_script), "rb") as f:
            files[recipe.entrypoint_script] = (f.read(), recipe.mode_bits)

        context = BuildContext(recipe=recipe, dockerfile=dockerfile, files=files)
        context.archive = self._archive(files)
        return context

    def _archive(self, files: Dict[str, tuple]) -> bytes:
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w", format=tarfile.USTAR_FORMAT) as tar:
            for name in sorted(files):
                content, mode = files[name]
                info = tarfile.TarInfo(name=name)
                info.size = len(content)
                info.mode = mode
                info.mtime = 0
                info.uid = info.gid = 0
                info.uname = info.gname = ""
                tar.addfile(info, io.BytesIO(content))
        return buffer.getvalue()

    def write(self, context: BuildContext, output: str) -> str:
        """
        Write a staged context to disk: a tar file when `output` ends
        in '.tar', otherwise a directory.

        Returns:
            The path written.
        """
        if output.endswith(".tar"):
            parent = os.path.dirname(output)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(output, "wb") as f:
                f.write(context.archive)
        else:
            os.makedirs(output, exist_ok=True)
            for name, (content, mode) in context.files.items():
                path = os.path.join(output, name)
                with open(path, "wb") as f:
                    f.write(content)
                os.chmod(path, mode)
        print(f"[{context.recipe.topology.value}] Build context written to {output} ({context.digest})")
        return output
