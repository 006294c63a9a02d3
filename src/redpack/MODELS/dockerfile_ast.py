"""
Models for the Dockerfile Abstract Syntax Tree.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel

class Instruction(BaseModel):
    """
    A single Dockerfile instruction. Leading `--name=value` options
    (COPY --chown, COPY --chmod, FROM --platform) are kept apart
    from the positional arguments.
    """
    instruction: str
    arguments: List[str]
    flags: Dict[str, str] = {}
    exec_form: bool = False
    raw: str

class DockerfileAST(BaseModel):
    """
    Represents the complete Abstract Syntax Tree of a Dockerfile.
    """
    instructions: List[Instruction] = []

    def find(self, name: str) -> List[Instruction]:
        return [inst for inst in self.instructions if inst.instruction == name]

    def last(self, name: str) -> Optional[Instruction]:
        found = self.find(name)
        return found[-1] if found else None
