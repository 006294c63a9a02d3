"""
Models for the overall project configuration.
"""
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict
from .image_recipe import ImageRecipe, Topology

class ProjectConfig(BaseModel):
    """
    Complete configuration for both images.
    Equivalent to a parsed redpack.yml file.
    """
    model_config = ConfigDict(extra="forbid")

    base_image: Optional[str] = None
    source_dir: str = "."
    images: Dict[Topology, ImageRecipe]

    def recipe(self, topology: Topology) -> ImageRecipe:
        return self.images[Topology(topology)]
