"""
Models representing what a Dockerfile does to an image,
reduced to the facts a Redis recipe cares about.
"""
from typing import List, Dict, Optional
from pydantic import BaseModel

class CopyStep(BaseModel):
    """
    One COPY or ADD: a source in the build context and the absolute
    path it lands on inside the image.
    """
    source: str
    destination: str
    chown: Optional[str] = None
    chmod: Optional[str] = None

class ImageDefinition(BaseModel):
    """
    Summary of a Dockerfile's effect on the image it builds.
    """
    base_image: str = ""
    working_directory: str = "/"
    created_directories: List[str] = []

    copies: List[CopyStep] = []
    run_instructions: List[str] = []

    # path -> "owner:group" / octal mode, as set by RUN chown / chmod
    ownership: Dict[str, str] = {}
    modes: Dict[str, str] = {}

    exposed_ports: List[str] = []
    entrypoint: List[str] = []
    entrypoint_exec_form: bool = False
    cmd: List[str] = []
    user: Optional[str] = None
    labels: Dict[str, str] = {}

    def copy_to(self, destination: str) -> Optional[CopyStep]:
        for step in self.copies:
            if step.destination == destination:
                return step
        return None
