
class StrobeError(Exception):
    """Base class for every error raised by the strobemers package."""


class InvalidInput(StrobeError, ValueError):
    """Bad parameters or input: k, window offsets, order, sequence length, prime."""


class HasherFailure(StrobeError, RuntimeError):
    """The k-mer hasher produced something that is not a usable 64-bit hash."""
