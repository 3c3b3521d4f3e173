"""
Error taxonomy for the generation pipeline.
"""


class PipelineError(Exception):
    """Base exception for pipeline errors. `details` carries raw diagnostics."""

    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.message = message
        self.details = details


class UpstreamGenerationFailure(PipelineError):
    """The generative model returned empty or blocked content."""


class ProcessFailure(PipelineError):
    """An external process exited non-zero, timed out, or could not be started."""

    def __init__(self, message: str, stdout: str = "", stderr: str = "", exit_code=None):
        super().__init__(message, details=stderr or stdout)
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code


class ArtifactNotFound(PipelineError):
    """The renderer's output file could not be located."""


class UploadFailure(PipelineError):
    """Blob storage rejected an upload."""


class ConfigurationError(PipelineError):
    """A required credential or setting is missing."""


class MissingArtifact(PipelineError):
    """A stage was called without the artifact its predecessor produced."""


class JobNotFound(PipelineError):
    pass


class InvalidTransition(PipelineError):
    """The job's status does not allow the requested stage or mutation."""
