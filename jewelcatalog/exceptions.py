"""Custom exception hierarchy for the jewellery catalog data layer.

Remote, persistence and wishlist failures each get their own branch so
callers can decide between failing open, degrading to cached data, or
surfacing the error to the user.
"""


class JewelCatalogError(Exception):
    """Base exception for all catalog data-layer errors."""

    pass


# Remote store exceptions
class RemoteStoreError(JewelCatalogError):
    """Raised when the remote document store cannot be reached or read."""

    pass


class DocumentNotFoundError(RemoteStoreError):
    """Raised when a required remote document does not exist."""

    pass


# Local persistence exceptions
class VersionStoreError(JewelCatalogError):
    """Raised when the local version record cannot be read or written."""

    pass


# Wishlist exceptions
class WishlistError(JewelCatalogError):
    """Base exception for wishlist operations."""

    pass


class WishlistWriteError(WishlistError):
    """Raised when an authoritative wishlist add/remove fails remotely."""

    pass


class NotAuthenticatedError(WishlistError):
    """Raised when a user-scoped operation runs without a signed-in user."""

    pass


# Configuration exceptions
class ConfigurationError(JewelCatalogError):
    """Raised when catalog settings are invalid."""

    pass
