"""
Verdict type and the input error base shared by the image policy checks.
"""

from dataclasses import dataclass
from typing import Optional


class InputError(Exception):
    """Request data that cannot be evaluated against the policy.

    These are never policy rejections: the transport answers them with a
    bad-request status and no notification is sent.
    """


@dataclass(frozen=True)
class Verdict:
    """Result of evaluating a pod against the image policy."""

    allowed: bool
    reason: Optional[str] = None
    violating_image: Optional[str] = None
    rule: Optional[str] = None
    exempt: bool = False

    @classmethod
    def allow(cls) -> "Verdict":
        """Create an allowed verdict."""
        return cls(allowed=True)

    @classmethod
    def exemption(cls) -> "Verdict":
        """Create an allowed verdict for a pod the policy does not apply to."""
        return cls(allowed=True, exempt=True)

    @classmethod
    def deny(cls, reason: str, image: str, rule: str) -> "Verdict":
        """Create a denied verdict naming the offending image."""
        return cls(allowed=False, reason=reason, violating_image=image, rule=rule)
