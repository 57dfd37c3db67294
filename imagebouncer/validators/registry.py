import logging
from typing import Iterable

from imagebouncer.validators.base import InputError
from imagebouncer.validators.reference import ImageReference


logger = logging.getLogger(__name__)


class RegistryError(InputError):
    """Raised when the registry of an image cannot be identified."""


def is_from_whitelisted_registry(reference: ImageReference, whitelist: Iterable[str]) -> bool:
    """Check if an image's registry host is in the allowlist (exact match)."""
    if not reference.registry or not reference.repository:
        raise RegistryError(f"error while identifying the registry of {reference.original or reference}")

    whitelist = list(whitelist)
    if reference.registry in whitelist:
        return True

    logger.warning("Registry %s not in %s", reference.registry, whitelist)
    return False
