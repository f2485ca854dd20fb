"""Tests for video store."""

from datetime import datetime, timedelta

import pytest

from vidupload.models.upload import VideoStatus, Visibility
from vidupload.storage.video_store import VideoRecord, VideoStore


@pytest.fixture
def video_store():
    """Create a fresh video store for each test."""
    return VideoStore()


@pytest.fixture
def sample_record():
    """Create a sample pending video record."""
    now = datetime.utcnow()
    return VideoRecord(
        video_id="test-uuid-123",
        object_key="videos/test-uuid-123",
        created_at=now,
        updated_at=now,
    )


def test_new_record_defaults(sample_record):
    """Test that new videos start pending and private."""
    assert sample_record.status is VideoStatus.PENDING
    assert sample_record.visibility is Visibility.PRIVATE
    assert sample_record.title == ""
    assert sample_record.tags == []


def test_create_record(video_store, sample_record):
    """Test creating a video record."""
    video_store.create(sample_record)

    retrieved = video_store.get(sample_record.video_id)
    assert retrieved is not None
    assert retrieved.video_id == sample_record.video_id
    assert retrieved.object_key == sample_record.object_key


def test_get_nonexistent_record(video_store):
    """Test retrieving a record that doesn't exist."""
    assert video_store.get("nonexistent-id") is None


def test_record_upload(video_store, sample_record):
    """Test remembering what was stored."""
    video_store.create(sample_record)
    uploaded_at = sample_record.created_at + timedelta(seconds=30)

    video_store.record_upload(sample_record.video_id, "video/mp4", 2048, uploaded_at)

    record = video_store.get(sample_record.video_id)
    assert record.content_type == "video/mp4"
    assert record.size_bytes == 2048
    assert record.updated_at == uploaded_at
    assert record.status is VideoStatus.PENDING


def test_record_upload_unknown_video(video_store):
    """Test that an unknown id is ignored."""
    video_store.record_upload("missing", "video/mp4", 1, datetime.utcnow())
    assert video_store.get("missing") is None


def test_finalize(video_store, sample_record):
    """Test applying metadata."""
    video_store.create(sample_record)
    finalized_at = datetime.utcnow()

    record = video_store.finalize(
        sample_record.video_id,
        title="Cats",
        description="Two cats",
        tags=["cats", "pets"],
        visibility=Visibility.PUBLIC,
        finalized_at=finalized_at,
    )

    assert record is not None
    assert record.status is VideoStatus.FINALIZED
    assert record.title == "Cats"
    assert record.tags == ["cats", "pets"]
    assert record.visibility is Visibility.PUBLIC
    assert record.updated_at == finalized_at


def test_finalize_repeat_with_same_metadata(video_store, sample_record):
    """Test that repeating a finalize returns the stored record unchanged."""
    video_store.create(sample_record)
    first_at = datetime.utcnow()
    kwargs = dict(title="Cats", description="", tags=["cats"], visibility=Visibility.PUBLIC)

    first = video_store.finalize(sample_record.video_id, finalized_at=first_at, **kwargs)
    again = video_store.finalize(sample_record.video_id, finalized_at=first_at + timedelta(minutes=5), **kwargs)

    assert again is first
    assert again.status is VideoStatus.FINALIZED
    assert again.updated_at == first_at


@pytest.mark.parametrize(
    "changes",
    [
        {"title": "Dogs"},
        {"description": "changed"},
        {"tags": ["dogs"]},
        {"visibility": Visibility.PRIVATE},
    ],
)
def test_finalize_again_with_other_metadata(video_store, sample_record, changes):
    """Test that a finalized video keeps its metadata."""
    video_store.create(sample_record)
    kwargs = dict(title="Cats", description="", tags=["cats"], visibility=Visibility.PUBLIC, finalized_at=datetime.utcnow())

    assert video_store.finalize(sample_record.video_id, **kwargs) is not None
    assert video_store.finalize(sample_record.video_id, **{**kwargs, **changes}) is None
    assert video_store.get(sample_record.video_id).title == "Cats"


def test_finalize_unknown_video(video_store):
    """Test finalizing a video that was never initialized."""
    result = video_store.finalize(
        "missing", title="Cats", description="", tags=[], visibility=Visibility.PUBLIC, finalized_at=datetime.utcnow()
    )
    assert result is None
