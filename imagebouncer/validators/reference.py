"""
Container image reference parsing.

Follows the reference grammar used by container registries and runtimes:

    [registry[:port]/]path[:tag][@digest]

Examples:
    nginx                     -> docker.io/library/nginx:latest
    bitnami/redis:7.2         -> docker.io/bitnami/redis:7.2
    localhost:5000/app        -> localhost:5000/app:latest
    gcr.io/distroless/base@sha256:<hex>  -> tag absent, digest pinned
"""

import re
from dataclasses import dataclass
from typing import Optional

from imagebouncer.validators.base import InputError


DEFAULT_REGISTRY = "docker.io"
LEGACY_DEFAULT_REGISTRY = "index.docker.io"
OFFICIAL_REPO_PREFIX = "library/"
DEFAULT_TAG = "latest"
NAME_TOTAL_LENGTH_MAX = 255

_ALPHANUMERIC = r"[a-z0-9]+"
_SEPARATOR = r"(?:[._]|__|[-]+)"
_PATH_COMPONENT = rf"{_ALPHANUMERIC}(?:{_SEPARATOR}{_ALPHANUMERIC})*"
_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN = rf"{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?"
_TAG = r"[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}"
_DIGEST = r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}"

REFERENCE_RE = re.compile(
    rf"^(?P<name>(?:(?P<domain>{_DOMAIN})/)?{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*)"
    rf"(?::(?P<tag>{_TAG}))?"
    rf"(?:@(?P<digest>{_DIGEST}))?\Z"
)
ANCHORED_IDENTIFIER_RE = re.compile(r"^[a-f0-9]{64}\Z")


class ImageReferenceError(InputError):
    """Raised when an image string is not a valid image reference."""


@dataclass(frozen=True)
class ImageReference:
    """A normalized image reference."""

    registry: str
    repository: str
    tag: Optional[str]
    digest: Optional[str] = None
    original: str = ""

    @property
    def name(self) -> str:
        return f"{self.registry}/{self.repository}"

    @property
    def uses_latest_tag(self) -> bool:
        # A digest pins the content even if the tag floats
        return self.tag == DEFAULT_TAG and self.digest is None

    def __str__(self) -> str:
        reference = self.name
        if self.tag:
            reference += f":{self.tag}"
        if self.digest:
            reference += f"@{self.digest}"
        return reference


def _split_registry(image: str):
    """Split the registry host off an image string, defaulting to Docker Hub."""
    first, sep, remainder = image.partition("/")
    if not sep or (
        "." not in first
        and ":" not in first
        and first != "localhost"
        and first.lower() == first
    ):
        registry, remainder = DEFAULT_REGISTRY, image
    else:
        registry = first

    if registry == LEGACY_DEFAULT_REGISTRY:
        registry = DEFAULT_REGISTRY
    if registry == DEFAULT_REGISTRY and "/" not in remainder:
        remainder = OFFICIAL_REPO_PREFIX + remainder

    return registry, remainder


def parse_image_reference(image: str) -> ImageReference:
    """
    Parse and normalize an image string.

    A missing registry becomes ``docker.io`` and a missing tag becomes
    ``latest`` unless the reference is pinned by digest.

    Raises:
        ImageReferenceError: if the string is not a valid reference.
    """
    if not image:
        raise ImageReferenceError("invalid reference format: repository name must have at least one component")

    if ANCHORED_IDENTIFIER_RE.match(image):
        raise ImageReferenceError(
            f"invalid repository name ({image}), cannot specify 64-byte hexadecimal strings"
        )

    registry, remainder = _split_registry(image)

    path = remainder.split("@", 1)[0].split(":", 1)[0]
    if path.lower() != path:
        raise ImageReferenceError(f"invalid reference format: repository name must be lowercase: {image}")

    match = REFERENCE_RE.match(f"{registry}/{remainder}")
    if not match:
        raise ImageReferenceError(f"invalid reference format: {image}")

    name = match.group("name")
    if len(name) > NAME_TOTAL_LENGTH_MAX:
        raise ImageReferenceError(
            f"repository name must not be more than {NAME_TOTAL_LENGTH_MAX} characters: {image}"
        )

    tag = match.group("tag")
    digest = match.group("digest")
    if tag is None and digest is None:
        tag = DEFAULT_TAG

    return ImageReference(
        registry=registry,
        repository=name[len(registry) + 1:],
        tag=tag,
        digest=digest,
        original=image,
    )
