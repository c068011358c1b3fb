"""Data layer error hierarchy."""

from storefront.errors import StorefrontError


class DataError(StorefrontError):
    """Base for all storefront.data errors."""


class QueryError(DataError):
    """Raised when a SQL statement fails."""
