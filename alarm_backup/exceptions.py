# alarm_backup/exceptions.py
"""
Error taxonomy for the alarm pipeline.
Each error carries the HTTP-equivalent status a synchronous caller should see.
"""


class PipelineError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(PipelineError):
    """Null alarm, missing or empty triggers, unparseable payload."""
    status_code = 400


class ConfigurationError(PipelineError):
    """A required bucket, queue or secret reference is not configured."""


class CredentialsError(ConfigurationError):
    """The credentials secret is malformed or incomplete."""


class ArtifactStoreError(PipelineError):
    """A blob-store read or write failed."""


class VideoFetchError(PipelineError):
    """Video retrieval from the source system failed. Recoverable."""


class VideoUploadError(ArtifactStoreError):
    """The retrieved video could not be written to the blob store. Recoverable."""


class QueueError(PipelineError):
    """Enqueue or dead-letter transport failure."""
