"""Durable storage for exported snapshots.

Writers turn a SessionSnapshot into a file. Every writer writes to a
temporary file in the target directory and renames it into place, so a failed
export never leaves a partial artifact behind and the caller can keep its
buffered data.
"""

from __future__ import annotations

import errno
import io
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

import numpy as np

from cogboard.errors import ArtifactWriteError, DiskFullError
from cogboard.export.filename import artifact_filename
from cogboard.export.snapshot import SessionSnapshot, snapshot_matrix

logger = logging.getLogger(__name__)

FORMAT_NPZ = "npz"
FORMAT_CSV = "csv"
FORMAT_TSV = "tsv"
FORMAT_EXCEL = "excel_compatible"

EXPORT_FORMATS = (FORMAT_NPZ, FORMAT_CSV, FORMAT_TSV, FORMAT_EXCEL)

BOM_UTF8 = "\ufeff"


class ArtifactWriter(Protocol):
    """Persistence collaborator used by exports."""

    def write_artifact(self, name: str, snapshot: SessionSnapshot) -> Path: ...


def _format_value(val: float) -> str:
    """Format a single value for text output."""
    if np.isnan(val):
        return ""
    if float(val).is_integer():
        return str(int(val))
    return f"{val:.6f}"


def _atomic_write(path: Path, write: Callable[[io.BufferedWriter], None]) -> None:
    """Write ``path`` via a temp file + rename, mapping OS errors."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(suffix=".tmp", prefix=f".{path.stem}_", dir=path.parent)
    except OSError as e:
        raise _map_os_error(path, e) from e

    try:
        with os.fdopen(fd, "wb") as f:
            write(f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException as e:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        if isinstance(e, OSError):
            raise _map_os_error(path, e) from e
        raise


def _map_os_error(path: Path, error: OSError) -> ArtifactWriteError | DiskFullError:
    if error.errno == errno.ENOSPC:
        return DiskFullError(str(path))
    return ArtifactWriteError(str(path), error.strerror or str(error))


class _DirectoryWriter:
    """Shared path resolution for writers rooted at an output directory."""

    extension = ""

    def __init__(self, directory: Path | str = ".") -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        """Directory that relative artifact names resolve against."""
        return self._directory

    def resolve_path(self, name: str) -> Path:
        """Return the output path for ``name``.

        ``name`` may include a directory part, relative to ``directory`` or
        absolute; only the final component is sanitized.
        """
        target = Path(name)
        parent = self._directory / target.parent
        return parent / artifact_filename(target.name, self.extension)

    def write_artifact(self, name: str, snapshot: SessionSnapshot) -> Path:
        """Write ``snapshot`` and return the path written.

        Raises:
            DiskFullError: The disk ran out of space.
            ArtifactWriteError: Any other write failure.
        """
        path = self.resolve_path(name)
        _atomic_write(path, lambda f: self._write(f, snapshot))
        logger.info("Exported %d samples to %s", snapshot.nrows, path)
        return path

    def _write(self, f: io.BufferedWriter, snapshot: SessionSnapshot) -> None:
        raise NotImplementedError


class NpzArtifactWriter(_DirectoryWriter):
    """Write snapshots as numpy ``.npz`` archives.

    The archive holds ``x`` (the matrix), ``headers`` and one array per
    header, matching both views of the snapshot.
    """

    extension = "npz"

    def __init__(self, directory: Path | str = ".", compressed: bool = True) -> None:
        super().__init__(directory)
        self._compressed = compressed

    def _write(self, f: io.BufferedWriter, snapshot: SessionSnapshot) -> None:
        arrays: dict[str, Any] = {
            "x": snapshot.matrix,
            "headers": np.array(snapshot.headers),
        }
        for header, column in snapshot.fields.items():
            arrays[f"struct_{header}"] = column
        if self._compressed:
            np.savez_compressed(f, **arrays)
        else:
            np.savez(f, **arrays)


class TextArtifactWriter(_DirectoryWriter):
    """Write snapshots as delimited text (CSV, TSV or Excel-compatible CSV)."""

    def __init__(
        self,
        directory: Path | str = ".",
        format_type: str = FORMAT_CSV,
        metadata: Optional[dict[str, str]] = None,
    ) -> None:
        if format_type not in (FORMAT_CSV, FORMAT_TSV, FORMAT_EXCEL):
            raise ValueError(f"Unsupported text format: {format_type}")
        super().__init__(directory)
        self._format_type = format_type
        self._metadata = dict(metadata or {})

    @property
    def extension(self) -> str:  # type: ignore[override]
        return "tsv" if self._format_type == FORMAT_TSV else "csv"

    def render(self, snapshot: SessionSnapshot) -> str:
        """Render the complete file contents as a string."""
        sep = "\t" if self._format_type == FORMAT_TSV else ","
        terminator = "\r\n" if self._format_type == FORMAT_EXCEL else "\n"

        lines = []
        metadata = {
            "Exported UTC": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "Samples": str(snapshot.nrows),
            **self._metadata,
        }
        for key, value in metadata.items():
            lines.append(f"# {key}: {value}")
        lines.append(sep.join(snapshot.headers))
        for row in snapshot.matrix:
            lines.append(sep.join(_format_value(v) for v in row))

        content = terminator.join(lines) + terminator
        if self._format_type == FORMAT_EXCEL:
            content = BOM_UTF8 + content
        return content

    def _write(self, f: io.BufferedWriter, snapshot: SessionSnapshot) -> None:
        f.write(self.render(snapshot).encode("utf-8"))


def create_writer(
    format_type: str,
    directory: Path | str = ".",
    metadata: Optional[dict[str, str]] = None,
) -> ArtifactWriter:
    """Create the writer for an export format.

    Raises:
        ValueError: If the format is unknown.
    """
    if format_type == FORMAT_NPZ:
        return NpzArtifactWriter(directory)
    if format_type in (FORMAT_CSV, FORMAT_TSV, FORMAT_EXCEL):
        return TextArtifactWriter(directory, format_type, metadata)
    raise ValueError(f"Unknown export format: {format_type}")


def load_npz_artifact(path: Path | str) -> SessionSnapshot:
    """Read back an archive written by NpzArtifactWriter."""
    with np.load(path, allow_pickle=False) as archive:
        headers = tuple(str(h) for h in archive["headers"])
        matrix = np.array(archive["x"], dtype=np.float64)
    return snapshot_matrix(matrix, headers)
