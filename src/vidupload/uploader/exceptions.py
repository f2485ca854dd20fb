"""Error vocabulary of the upload client.

Every failure an upload attempt can produce is one of these. Phase errors
carry the failing phase and a human readable cause, which the coordinator
also mirrors into its ``UploadStatus``.
"""

from vidupload.uploader.state import Phase


class UploadError(Exception):
    """Base exception for the upload client."""
    pass


class InvalidStateError(UploadError):
    """A phase call was made in a state that does not allow it."""

    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(f"{operation}() is not allowed in state {state}")


class MetadataValidationError(UploadError):
    """Asset metadata was rejected before any network call."""

    field = ""


class TitleValidationError(MetadataValidationError):
    """Title is missing or longer than allowed."""

    field = "title"


class DescriptionValidationError(MetadataValidationError):
    """Description is longer than allowed."""

    field = "description"


class TagsValidationError(MetadataValidationError):
    """Tags are not text."""

    field = "tags"


class VisibilityValidationError(MetadataValidationError):
    """Visibility is not one of public, unlisted, private."""

    field = "visibility"


class PhaseError(UploadError):
    """A phase of the upload attempt failed."""

    phase: Phase

    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"{self.phase.value} failed: {cause}")


class UnreachableError(PhaseError):
    """Transport level failure: the remote side could not be reached."""
    pass


class RejectedError(PhaseError):
    """The remote side answered but refused the request."""
    pass


class InitError(PhaseError):
    phase = Phase.INIT


class InitUnreachableError(InitError, UnreachableError):
    pass


class InitRejectedError(InitError, RejectedError):
    pass


class TransferError(PhaseError):
    phase = Phase.TRANSFER


class TransferUnreachableError(TransferError, UnreachableError):
    pass


class TransferRejectedError(TransferError, RejectedError):
    pass


class FinalizeError(PhaseError):
    phase = Phase.FINALIZE


class FinalizeUnreachableError(FinalizeError, UnreachableError):
    pass


class FinalizeRejectedError(FinalizeError, RejectedError):
    pass


class PhaseCancelledError(PhaseError):
    """The caller cancelled the in-flight phase."""

    def __init__(self, phase: Phase):
        self.phase = phase
        super().__init__("cancelled")
