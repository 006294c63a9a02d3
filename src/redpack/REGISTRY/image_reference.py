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
Base image reference parsing.
Splits references like 'redis:alpine' or 'docker.io/library/redis:7.2-alpine@sha256:...'
into their parts and answers the two questions a recipe asks of its base:
which variant it is, and whether it is pinned to a digest.
"""

from typing import Optional
from dataclasses import dataclass


@dataclass(frozen=True)
class ImageReference:
    """
    Parsed image reference.

    Examples:
        - redis -> docker.io/library/redis:latest
        - redis:alpine -> docker.io/library/redis:alpine (variant 'alpine')
        - redis:7.2-alpine -> docker.io/library/redis:7.2-alpine (variant 'alpine')
        - localhost:5000/redis:7 -> localhost:5000/redis:7 (no variant)
        - redis@sha256:abc... -> docker.io/library/redis@sha256:abc... (pinned)
    """

    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    DEFAULT_REGISTRY = "docker.io"
    DEFAULT_TAG = "latest"

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse an image reference string.

        Args:
            reference: Image reference string (e.g., 'redis:alpine').

        Returns:
            Parsed ImageReference object.
        """
        reference = (reference or "").strip()
        if not reference:
            raise ValueError("Empty image reference")
        if any(ch.isspace() for ch in reference):
            raise ValueError(f"Invalid image reference: {reference!r}")

        digest = None
        if "@" in reference:
            reference, digest = reference.rsplit("@", 1)
            if ":" not in digest:
                raise ValueError(f"Invalid digest in image reference: {digest!r}")

        tag = None
        last_colon = reference.rfind(":")
        if last_colon != -1:
            after_colon = reference[last_colon + 1 :]
            # 'localhost:5000/redis' has a port, not a tag
            if "/" not in after_colon:
                tag = after_colon
                reference = reference[:last_colon]

        parts = reference.split("/")
        first = parts[0]
        if len(parts) > 1 and ("." in first or ":" in first or first == "localhost"):
            registry = first
            repository = "/".join(parts[1:])
        else:
            registry = cls.DEFAULT_REGISTRY
            repository = reference if len(parts) > 1 else f"library/{reference}"

        if not repository or repository.endswith("/"):
            raise ValueError(f"Invalid image reference: {reference!r}")

        if not tag and not digest:
            tag = cls.DEFAULT_TAG

        return cls(registry=registry, repository=repository, tag=tag, digest=digest)

    @property
    def is_pinned(self) -> bool:
        """True when the reference names an immutable digest."""
        return self.digest is not None

    @property
    def variant(self) -> Optional[str]:
        """
        The distribution variant carried by the tag.
        'alpine' and '7.2-alpine' are both the 'alpine' variant; '7.2' has none.
        """
        if not self.tag:
            return None
        if "-" in self.tag:
            return self.tag.rsplit("-", 1)[1]
        if self.tag[0].isdigit() or self.tag == self.DEFAULT_TAG:
            return None
        return self.tag

    def matches_variant(self, variant: str) -> bool:
        """
        Whether this base can be used where `variant` is expected.
        A digest-only reference cannot be checked and is accepted.
        """
        if self.tag is None and self.is_pinned:
            return True
        actual = self.variant
        # 'alpine3.19' is still the alpine variant
        return actual is not None and actual.startswith(variant)

    def pinned(self, digest: str) -> "ImageReference":
        """Return a copy of this reference pinned to `digest`."""
        return ImageReference(self.registry, self.repository, self.tag, digest)

    @property
    def full_name(self) -> str:
        """Get full image name with registry."""
        name = f"{self.registry}/{self.repository}"
        if self.tag:
            name = f"{name}:{self.tag}"
        if self.digest:
            name = f"{name}@{self.digest}"
        return name

    @property
    def short_name(self) -> str:
        """Get short image name (without registry if default)."""
        if self.registry != self.DEFAULT_REGISTRY:
            return self.full_name
        name = self.repository
        if name.startswith("library/"):
            name = name[len("library/"):]
        if self.tag:
            name = f"{name}:{self.tag}"
        if self.digest:
            name = f"{name}@{self.digest}"
        return name

    def __str__(self) -> str:
        return self.short_name
