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
The sentinel and cluster recipe definitions.
"""
from typing import Any, Dict, Optional

from ..MODELS.image_recipe import ImageRecipe, Topology


TOPOLOGY_DEFAULTS: Dict[Topology, Dict[str, Any]] = {
    # Monitoring/control protocol
    Topology.SENTINEL: {
        "config_file": "sentinel.conf",
        "entrypoint_script": "sentinel-entrypoint.sh",
        "port": 26379,
    },
    # Data protocol
    Topology.CLUSTER: {
        "config_file": "cluster.conf",
        "entrypoint_script": "cluster-entrypoint.sh",
        "port": 6379,
    },
}


def make_recipe(topology, base_image: Optional[str] = None, **overrides: Any) -> ImageRecipe:
    """
    Builds the recipe for a topology, layering `overrides` on its defaults.

    :param topology: A Topology or its string value.
    :param base_image: Base image to start from; the recipe default when None.
    :param overrides: Any other ImageRecipe field.
    :return: A validated ImageRecipe.
    """
    topology = Topology(topology)
    fields = dict(TOPOLOGY_DEFAULTS[topology])
    if base_image:
        fields["base_image"] = base_image
    fields.update({key: value for key, value in overrides.items() if value is not None})
    fields["topology"] = topology
    return ImageRecipe(**fields)


def sentinel_recipe(**overrides: Any) -> ImageRecipe:
    return make_recipe(Topology.SENTINEL, **overrides)


def cluster_recipe(**overrides: Any) -> ImageRecipe:
    return make_recipe(Topology.CLUSTER, **overrides)


def default_recipes(base_image: Optional[str] = None) -> Dict[Topology, ImageRecipe]:
    return {topology: make_recipe(topology, base_image=base_image) for topology in Topology}
