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
Parser for redpack.yml project files.
"""
import os
from typing import Any, Dict, Optional

import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from ..errors import ConfigError
from ..MODELS.image_recipe import Topology
from ..MODELS.project_config import ProjectConfig
from ..RECIPES.topologies import make_recipe
from ..UTILS.string_interpolation import EnvironmentInterpolator


class ProjectConfigParser:
    """
    Loads the project configuration: optional top-level `base_image` and
    `source_dir`, and an `images` mapping of topology to recipe overrides.
    Topologies left out of `images` get their default recipe.
    """

    SUPPORTED_KEYS = {"base_image", "source_dir", "images"}

    def __init__(self, context: Optional[Dict[str, str]] = None, env_file: Optional[str] = ".env"):
        """
        :param context: Variables for ${VAR} interpolation. Defaults to the process
            environment layered over the values of `env_file`.
        :param env_file: dotenv file read when no explicit context is given.
        """
        if context is None:
            context = {}
            if env_file and os.path.exists(env_file):
                context.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
            context.update(os.environ)
        self.interpolator = EnvironmentInterpolator(context)

    def load(self, config_path: Optional[str]) -> ProjectConfig:
        """
        Loads a project file. No path means an all-defaults project.

        :param config_path: Path to the YAML file, or None.
        :return: Parsed configuration.
        """
        if not config_path:
            return self.parse_data({})
        if not os.path.exists(config_path):
            raise ConfigError(f"Config file not found: {config_path}")
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except OSError as exc:
            raise ConfigError(f"Cannot read config file '{config_path}': {exc}") from exc
        return self.parse_from_string(content, base_dir=os.path.dirname(os.path.abspath(config_path)))

    def parse_from_string(self, content: str, base_dir: str = ".") -> ProjectConfig:
        """
        Parses YAML content.

        :param content: YAML text.
        :param base_dir: Directory that relative `source_dir` values are resolved against.
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid config file: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("Config file must contain a YAML mapping at the root.")
        return self.parse_data(data, base_dir=base_dir)

    def parse_data(self, data: Dict[str, Any], base_dir: str = ".") -> ProjectConfig:
        unknown = sorted(str(key) for key in set(data) - self.SUPPORTED_KEYS)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

        try:
            data = self.interpolator.interpolate_tree(data)
        except KeyError as exc:
            raise ConfigError(f"Variable {exc.args[0]} is not set and has no default") from exc

        images_spec = data.get('images') or {}
        if not isinstance(images_spec, dict):
            raise ConfigError("'images' must be a mapping of topology to settings.")

        base_image = data.get('base_image')
        source_dir = self._resolve_dir(data.get('source_dir') or ".", base_dir)

        images = {}
        try:
            for name, overrides in images_spec.items():
                topology = self._topology(name)
                images[topology] = self._recipe(topology, overrides, base_image, base_dir)
            for topology in Topology:
                if topology not in images:
                    images[topology] = make_recipe(topology, base_image=base_image)
            return ProjectConfig(base_image=base_image, source_dir=source_dir, images=images)
        except ValidationError as exc:
            raise ConfigError(f"Invalid image settings: {exc}") from exc

    def _recipe(self, topology: Topology, overrides: Any, base_image: Optional[str], base_dir: str):
        if overrides is None:
            overrides = {}
        if not isinstance(overrides, dict):
            raise ConfigError(f"Settings for '{topology.value}' must be a mapping.")
        if not all(isinstance(key, str) for key in overrides):
            raise ConfigError(f"Setting names for '{topology.value}' must be strings.")
        if 'topology' in overrides:
            raise ConfigError(f"'topology' cannot be set inside images.{topology.value}")
        overrides = dict(overrides)
        if overrides.get('source_dir'):
            overrides['source_dir'] = self._resolve_dir(overrides['source_dir'], base_dir)
        return make_recipe(topology, base_image=base_image, **overrides)

    def _topology(self, name: Any) -> Topology:
        try:
            return Topology(name)
        except ValueError:
            choices = ", ".join(t.value for t in Topology)
            raise ConfigError(f"Unknown topology '{name}' (expected one of: {choices})") from None

    def _resolve_dir(self, path: str, base_dir: str) -> str:
        return os.path.normpath(os.path.join(base_dir, str(path)))
