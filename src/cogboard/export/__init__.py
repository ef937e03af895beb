"""Snapshot export and artifact persistence."""

from cogboard.export.filename import ArtifactKind, default_artifact_name
from cogboard.export.snapshot import SessionSnapshot, snapshot
from cogboard.export.writers import (
    EXPORT_FORMATS,
    ArtifactWriter,
    NpzArtifactWriter,
    TextArtifactWriter,
    create_writer,
    load_npz_artifact,
)

__all__ = [
    "EXPORT_FORMATS",
    "ArtifactKind",
    "ArtifactWriter",
    "NpzArtifactWriter",
    "SessionSnapshot",
    "TextArtifactWriter",
    "create_writer",
    "default_artifact_name",
    "load_npz_artifact",
    "snapshot",
]
