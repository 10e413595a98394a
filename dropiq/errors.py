"""Exception types surfaced by the search and enrichment services."""


class DropIQError(Exception):
    """Base error; carries the HTTP status and the message shown to clients."""

    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: str = "", public_message: str | None = None):
        super().__init__(message or self.public_message)
        if public_message is not None:
            self.public_message = public_message


class InvalidRetailerError(DropIQError):
    status_code = 400
    public_message = "Invalid retailer. Must be: amazon, flipkart, samsung, or sony"


class ProductNotFoundError(DropIQError):
    status_code = 404
    public_message = "Product not found"


class SearchError(DropIQError):
    """A table query failed; the whole search is abandoned."""

    public_message = "Failed to search products"


class EnrichmentError(DropIQError):
    """External recommendation/comparison provider failed."""

    public_message = "Failed to fetch enrichment data"
