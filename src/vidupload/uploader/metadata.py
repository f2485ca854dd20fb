"""Asset metadata as submitted by the caller, and its validation."""

from collections import abc
from dataclasses import dataclass
from typing import List, Sequence, Union

from vidupload.models.upload import Visibility
from vidupload.uploader.exceptions import (
    DescriptionValidationError,
    TagsValidationError,
    TitleValidationError,
    VisibilityValidationError,
)

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 1000


@dataclass
class AssetMetadata:
    """Raw metadata for a video, exactly as the caller collected it."""

    title: str
    description: str = ""
    tags: Union[str, Sequence[str]] = ""
    visibility: str = Visibility.PUBLIC.value


@dataclass(frozen=True)
class ValidatedMetadata:
    """Metadata that passed validation and is ready to be submitted."""

    title: str
    description: str
    tags: List[str]
    visibility: Visibility

    @property
    def tags_text(self) -> str:
        """Tags serialized the way the finalize call expects them."""
        return ",".join(self.tags)


def parse_tags(tags: Union[str, Sequence[str], None]) -> List[str]:
    """Split comma separated tags, trimming each and dropping empty entries.

    A sequence is treated as already split, but each entry is split on
    commas too, since the wire form joins tags with them.

    >>> parse_tags("tutorial, react ,go")
    ['tutorial', 'react', 'go']
    >>> parse_tags(["cats,dogs", " fish "])
    ['cats', 'dogs', 'fish']
    """
    if not tags:
        return []
    if isinstance(tags, str):
        tags = [tags]
    elif not isinstance(tags, abc.Sequence):
        raise TagsValidationError(f"Tags must be text or a list of text, got {type(tags).__name__}")

    result = []
    for entry in tags:
        if entry is None:
            continue
        if not isinstance(entry, str):
            raise TagsValidationError(f"Tags must be strings, got {type(entry).__name__}")
        result.extend(tag.strip() for tag in entry.split(",") if tag.strip())
    return result


def parse_visibility(value) -> Visibility:
    """Map a visibility value onto the enum, rejecting anything unknown."""
    if isinstance(value, Visibility):
        return value
    if not isinstance(value, str):
        raise VisibilityValidationError(f"Visibility must be a string, got {type(value).__name__}")
    try:
        return Visibility(value.strip())
    except ValueError:
        allowed = ", ".join(v.value for v in Visibility)
        raise VisibilityValidationError(
            f"Visibility {value!r} is not one of: {allowed}"
        ) from None


def validate_metadata(metadata: AssetMetadata) -> ValidatedMetadata:
    """Validate the whole record; the first failing field raises.

    Raises:
        TitleValidationError: title missing, not text, empty after trimming or over 100 characters
        DescriptionValidationError: description not text or over 1000 characters
        TagsValidationError: a tag entry is not text
        VisibilityValidationError: visibility not public, unlisted or private
    """
    title = metadata.title if metadata.title is not None else ""
    if not isinstance(title, str):
        raise TitleValidationError(f"Title must be a string, got {type(title).__name__}")
    title = title.strip()
    if not title:
        raise TitleValidationError("Title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise TitleValidationError(
            f"Title must be at most {MAX_TITLE_LENGTH} characters, got {len(title)}"
        )

    description = metadata.description if metadata.description is not None else ""
    if not isinstance(description, str):
        raise DescriptionValidationError(
            f"Description must be a string, got {type(description).__name__}"
        )
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise DescriptionValidationError(
            f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters, got {len(description)}"
        )

    tags = parse_tags(metadata.tags)
    visibility = parse_visibility(metadata.visibility)

    return ValidatedMetadata(
        title=title,
        description=description,
        tags=tags,
        visibility=visibility,
    )
