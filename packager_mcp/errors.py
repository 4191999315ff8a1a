class PackagerError(Exception):
    """Base class for packager-specific errors."""


# Tool parameters
class ParameterError(PackagerError, ValueError):
    pass


# Archive container
class InvalidArchiveFormat(PackagerError):
    """Raised when a file is not a packager archive at all.

    Callers use this to tell "not an archive" apart from every other failure
    (the decompress tool falls back to a plain copy on it).
    """


class ArchiveIntegrityError(PackagerError):
    pass


class ArchivePathError(PackagerError, ValueError):
    pass


# Codecs
class UnsupportedAlgorithm(PackagerError, ValueError):
    pass


class CompressionError(PackagerError):
    pass


# Keys / signatures
class KeyFormatError(PackagerError, ValueError):
    pass
