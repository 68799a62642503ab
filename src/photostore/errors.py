"""Typed failures raised by the photo store and its collaborators."""


class PhotoStoreError(Exception):
    """Base class for every failure the store reports to callers."""


class PersistenceError(PhotoStoreError):
    """The database rejected a read or write (disk, corruption, locked file)."""


class SchemaVersionError(PersistenceError):
    """The stored schema version is not one this code knows how to handle."""


class FileSystemError(PhotoStoreError):
    """Writing or removing an image payload failed."""


class WriteError(FileSystemError):
    """A payload could not be written (no space, permission denied)."""


class BlobNotFoundError(FileSystemError):
    """The file is already absent."""


class BlobPermissionError(FileSystemError):
    """The file exists but may not be removed."""


class RecordNotFoundError(PhotoStoreError):
    """No record matches the requested uri or id."""


class MalformedRecordError(PhotoStoreError, ValueError):
    """A record is missing its required uri."""


class CaptureError(PhotoStoreError):
    """The capture source failed to produce a payload."""
