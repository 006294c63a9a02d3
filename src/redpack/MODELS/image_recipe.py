"""
Models describing the two Redis image recipes.
"""
import posixpath
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ..REGISTRY.image_reference import ImageReference


def _has_blank_or_control(value: str) -> bool:
    # Paths go into the Dockerfile unquoted
    return any(ch.isspace() or not ch.isprintable() for ch in value)


class Topology(str, Enum):
    """
    Deployment topology an image is built for.
    """
    SENTINEL = "sentinel"
    CLUSTER = "cluster"


class ImageRecipe(BaseModel):
    """
    Everything needed to produce one image: the base it starts from,
    the files copied into the working directory, who owns them,
    the advertised port and the startup script.
    """
    model_config = ConfigDict(extra="forbid")

    topology: Topology
    base_image: str = "redis:alpine"
    base_variant: str = "alpine"

    workdir: str = "/redis"
    config_file: str
    entrypoint_script: str

    owner: str = "redis"
    group: str = "redis"
    script_mode: str = "0755"

    port: int
    tag: str = ""
    # Where the config file and script are read from; the project source_dir when None
    source_dir: Optional[str] = None
    labels: Dict[str, str] = {}

    @field_validator("workdir")
    @classmethod
    def _absolute_workdir(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"workdir must be an absolute path, got {value!r}")
        if _has_blank_or_control(value):
            raise ValueError(f"workdir must not contain whitespace, got {value!r}")
        return posixpath.normpath(value)

    @field_validator("config_file", "entrypoint_script")
    @classmethod
    def _bare_file_name(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value or value in (".", ".."):
            raise ValueError(f"expected a bare file name, got {value!r}")
        if _has_blank_or_control(value):
            raise ValueError(f"file name must not contain whitespace, got {value!r}")
        return value

    @field_validator("owner", "group")
    @classmethod
    def _account_name(cls, value: str) -> str:
        if not value or ":" in value or any(ch.isspace() for ch in value):
            raise ValueError(f"invalid account name {value!r}")
        return value

    @field_validator("labels")
    @classmethod
    def _single_line_labels(cls, value: Dict[str, str]) -> Dict[str, str]:
        for key, text in value.items():
            if not key or any(ch.isspace() or ch in "=\"" for ch in key):
                raise ValueError(f"invalid label name {key!r}")
            if "\n" in text or "\r" in text:
                raise ValueError(f"label {key!r} must be a single line")
        return value

    @field_validator("port")
    @classmethod
    def _port_range(cls, value: int) -> int:
        if not 1 <= value <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {value}")
        return value

    @field_validator("script_mode", mode="before")
    @classmethod
    def _mode_from_int(cls, value):
        # YAML reads an unquoted 0755 as the integer 493
        if isinstance(value, int) and not isinstance(value, bool):
            return f"{value:04o}"
        return value

    @field_validator("script_mode")
    @classmethod
    def _executable_mode(cls, value: str) -> str:
        try:
            mode = int(value, 8)
        except ValueError:
            raise ValueError(f"script_mode must be an octal string, got {value!r}")
        if not 0 <= mode <= 0o7777:
            raise ValueError(f"script_mode out of range: {value!r}")
        if not mode & 0o100:
            raise ValueError(f"script_mode {value!r} does not make the script executable")
        return f"{mode:04o}"

    @model_validator(mode="after")
    def _check_base_and_defaults(self) -> "ImageRecipe":
        reference = ImageReference.parse(self.base_image)
        if not reference.matches_variant(self.base_variant):
            raise ValueError(
                f"base image {self.base_image!r} is not a {self.base_variant!r} variant"
            )
        if self.config_file == self.entrypoint_script:
            raise ValueError("config_file and entrypoint_script must differ")
        if not self.tag:
            self.tag = f"redpack/redis-{self.topology.value}:latest"
        self.labels = {"io.redpack.topology": self.topology.value, **self.labels}
        return self

    @property
    def base_reference(self) -> ImageReference:
        return ImageReference.parse(self.base_image)

    @property
    def config_path(self) -> str:
        return posixpath.join(self.workdir, self.config_file)

    @property
    def script_path(self) -> str:
        return posixpath.join(self.workdir, self.entrypoint_script)

    @property
    def ownership(self) -> str:
        return f"{self.owner}:{self.group}"

    @property
    def exposed_port(self) -> str:
        return f"{self.port}/tcp"

    @property
    def entrypoint(self) -> List[str]:
        return [self.script_path]

    @property
    def mode_bits(self) -> int:
        return int(self.script_mode, 8)

    @property
    def input_files(self) -> List[str]:
        """Source files the build context needs, in copy order."""
        return [self.config_file, self.entrypoint_script]
