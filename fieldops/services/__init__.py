"""Business logic services."""

from fieldops.services.membership import MembershipService

__all__ = [
    "MembershipService",
]
