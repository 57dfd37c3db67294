import logging
from typing import Iterable


logger = logging.getLogger(__name__)


def is_namespace_exempt(namespace: str, whitelist: Iterable[str]) -> bool:
    """Check if a namespace is exempt from the image policy.

    A namespace is exempt when it equals a whitelist entry or contains one as
    a substring, so an entry of ``dev`` also exempts ``devops-prod``.
    Blank entries never match.
    """
    for entry in whitelist:
        if not entry:
            continue
        if namespace == entry or entry in namespace:
            logger.debug("Namespace %s matches whitelist entry %s", namespace, entry)
            return True
    return False
