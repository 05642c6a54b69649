"""
Exception taxonomy for the Lagrange erasure kit.

I/O failures are not wrapped: they surface as the built-in ``OSError`` family
(``FileNotFoundError``, ``FileExistsError``, ...).
"""


class ErasureError(Exception):
    """Base class for every error raised by this package."""


class FormatError(ErasureError):
    """Raised when a pattern, file name or persisted record fails to parse."""


class ManifestError(FormatError):
    """Raised when a manifest is missing, malformed or inconsistent."""


class GeometryError(ErasureError):
    """Raised when fewer fragments are known than the data count requires."""


class InvariantViolation(ErasureError):
    """Raised when a precondition breach or internal corruption is detected."""


class CodecError(InvariantViolation):
    """Raised when an integer cannot be mapped back to fragment bytes."""
