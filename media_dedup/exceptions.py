"""
Custom exception hierarchy for the media deduplicator.

Only InvalidRootError and ScriptWriteError are fatal to a run; the others
are caught close to where they happen and turned into run warnings.
"""


class MediaDedupError(Exception):
    """Base exception for all media deduplicator errors."""
    pass


class InvalidRootError(MediaDedupError):
    """Raised when the scan root does not exist or is not a directory."""
    pass


class FileHashError(MediaDedupError):
    """Raised when a file cannot be read for hashing."""
    pass


class CacheError(MediaDedupError):
    """Raised when the checksum cache cannot be read or written."""
    pass


class ScriptWriteError(MediaDedupError):
    """Raised when the remediation script cannot be written."""
    pass
