"""Exceptions raised by pyinflate."""


class PyinflateError(Exception):
    """Base class for pyinflate errors."""


class AllocationError(PyinflateError):
    """Raised when a memory block cannot be allocated.

    This is the condition the tool exists to provoke, so it is always
    propagated to the caller of the inflation.
    """

    def __init__(self, requested_mb: int, allocated_mb: int) -> None:
        super().__init__(
            f"Failed to allocate {requested_mb} MB block "
            f"after {allocated_mb} MB already allocated"
        )
        self.requested_mb = requested_mb
        self.allocated_mb = allocated_mb


class InvalidParameterError(PyinflateError, ValueError):
    """Raised for a negative target or a non-positive step size."""
