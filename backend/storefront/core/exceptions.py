"""Custom exception classes for the application."""


class StorefrontException(Exception):
    """Base exception for all storefront errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class SupplierError(StorefrontException):
    """Raised when a supplier API call fails."""

    def __init__(self, supplier: str, message: str):
        self.supplier = supplier
        super().__init__(f"Supplier error for {supplier}: {message}")


class SupplierAuthError(SupplierError):
    """Raised when a supplier rejects or lacks credentials.

    A bad credential invalidates every later call, so this aborts the run.
    """

    def __init__(self, supplier: str, message: str = "authentication rejected"):
        super().__init__(supplier, message)


class SupplierHTTPError(SupplierError):
    """Raised on a non-2xx supplier response other than 401/403/429."""

    def __init__(self, supplier: str, status_code: int, body: str = ""):
        self.status_code = status_code
        detail = f"HTTP {status_code}"
        if body:
            detail = f"{detail} - {body[:200]}"
        super().__init__(supplier, detail)


class SupplierThrottledError(SupplierError):
    """Raised when a supplier keeps answering 429 after every cooldown."""

    def __init__(self, supplier: str, attempts: int):
        self.attempts = attempts
        super().__init__(supplier, f"rate limit exceeded after {attempts} attempts")


class CategorySelectionError(StorefrontException):
    """Raised when the category selection resolves to nothing."""


class SyncInProgressError(StorefrontException):
    """Raised when a sync for the same supplier is already running."""

    def __init__(self, supplier: str):
        self.supplier = supplier
        super().__init__(f"A sync for {supplier} is already running")
