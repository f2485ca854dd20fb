"""
Upload client

Drives one video upload through its three phases: obtaining a write target
from the origin service, transferring the bytes directly to it, and
finalizing the asset with its metadata.
"""

from vidupload.uploader.coordinator import UploadCoordinator
from vidupload.uploader.exceptions import (
    DescriptionValidationError,
    FinalizeError,
    FinalizeRejectedError,
    FinalizeUnreachableError,
    InitError,
    InitRejectedError,
    InitUnreachableError,
    InvalidStateError,
    MetadataValidationError,
    PhaseCancelledError,
    PhaseError,
    RejectedError,
    TagsValidationError,
    TitleValidationError,
    TransferError,
    TransferRejectedError,
    TransferUnreachableError,
    UnreachableError,
    UploadError,
    VisibilityValidationError,
)
from vidupload.uploader.initiator import SessionInitiator
from vidupload.uploader.metadata import AssetMetadata, ValidatedMetadata, parse_tags, validate_metadata
from vidupload.uploader.state import Phase, SessionState, UploadSession, UploadStatus

__all__ = [
    "UploadCoordinator",
    "SessionInitiator",
    "UploadSession",
    "UploadStatus",
    "SessionState",
    "Phase",
    "AssetMetadata",
    "ValidatedMetadata",
    "parse_tags",
    "validate_metadata",
    "UploadError",
    "InvalidStateError",
    "MetadataValidationError",
    "TitleValidationError",
    "DescriptionValidationError",
    "TagsValidationError",
    "VisibilityValidationError",
    "PhaseError",
    "PhaseCancelledError",
    "UnreachableError",
    "RejectedError",
    "InitError",
    "InitUnreachableError",
    "InitRejectedError",
    "TransferError",
    "TransferUnreachableError",
    "TransferRejectedError",
    "FinalizeError",
    "FinalizeUnreachableError",
    "FinalizeRejectedError",
]
