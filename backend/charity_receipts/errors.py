"""
Failure types raised by the donation pipeline.

Duplicates and zero donations are outcomes, not errors, and have no class here.
"""


class DonationError(Exception):
    """Base class for pipeline failures."""


class StorageError(DonationError):
    """Persistence is unavailable or rejected a write for a reason other than a duplicate order."""


class CompositionError(DonationError):
    """A receipt template or the PDF engine failed; nothing should be sent."""


class DeliveryError(DonationError):
    """The mail transport (or the sender lookup) failed. Not retried."""


class DonationNotFound(DonationError):
    """No donation with that id for the shop."""
