"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for collector failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PipelineError):
    """Raised when one location's pipeline cannot complete."""

    error_code = "STAGE_ERROR"


class ValidationError(StageError):
    """Raised when a reading is present but physically implausible."""

    error_code = "VALIDATION_ERROR"


class StoreError(StageError):
    """Raised for document store failures other than exhausted conflicts."""

    error_code = "STORE_ERROR"


class StoreConflictError(StoreError):
    """Raised when a transaction keeps losing to concurrent writers."""

    error_code = "STORE_CONFLICT"


class CollectionError(PipelineError):
    """Raised when no location in a run succeeded."""

    error_code = "COLLECTION_FAILED"
