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
Converters for rendering image recipes as Dockerfiles.
"""
import json
import os
from jinja2 import Environment, StrictUndefined
from ..MODELS.image_recipe import ImageRecipe

DOCKERFILE_TEMPLATE = """\
FROM {{ recipe.base_image }}
{% if labels %}
LABEL {{ labels }}
{% endif %}
RUN mkdir -p {{ recipe.workdir }}
WORKDIR {{ recipe.workdir }}
COPY {{ recipe.config_file }} {{ recipe.config_path }}
COPY {{ recipe.entrypoint_script }} {{ recipe.script_path }}
RUN chown -R {{ recipe.ownership }} {{ recipe.workdir }} && chmod {{ recipe.script_mode }} {{ recipe.script_path }}
EXPOSE {{ recipe.port }}
ENTRYPOINT {{ recipe.entrypoint | json }}
"""


def _quote(value: str) -> str:
    # The build engine expands $VAR inside LABEL values
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$")
    return f'"{escaped}"'


class DockerfileConverter:
    """
    Renders an ImageRecipe into Dockerfile text. Output depends only on
    the recipe, so rendering the same recipe twice gives identical bytes.
    """

    def __init__(self):
        env = Environment(
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        env.filters["json"] = json.dumps
        self.template = env.from_string(DOCKERFILE_TEMPLATE)

    def render(self, recipe: ImageRecipe) -> str:
        """
        Renders the Dockerfile for a recipe.

        :param recipe: The recipe to render.
        :return: Dockerfile text.
        """
        labels = " ".join(
            f"{key}={_quote(value)}" for key, value in sorted(recipe.labels.items())
        )
        return self.template.render(recipe=recipe, labels=labels)

    def convert(self, recipe: ImageRecipe, output_dir: str) -> str:
        """
        Writes `<output_dir>/<topology>/Dockerfile`.

        :param recipe: The recipe to render.
        :param output_dir: Directory that receives one sub-directory per topology.
        :return: The path of the written Dockerfile.
        """
        target_dir = os.path.join(output_dir, recipe.topology.value)
        os.makedirs(target_dir, exist_ok=True)
        path = os.path.join(target_dir, "Dockerfile")
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(self.render(recipe))
        print(f"[{recipe.topology.value}] Dockerfile written to {path}")
        return path
