"""
Exporters: write the ordered frames of a run to an image sequence or a movie.

Both exporters share one lifecycle -- ``open(total)``, ``write(index, frame)``
for every frame in plan order, then ``commit()`` on success or ``abort()`` on
failure or cancellation. The failure policy belongs to the exporter:

- image sequences are best-effort: a file that cannot be written is logged
  and recorded, and the remaining frames are still attempted;
- movies are all-or-nothing: any error raises ExportError and nothing is
  left at the target path.

Neither exporter touches the final file names before ``commit()``, so an
aborted run leaves files from earlier runs as they were.
"""

import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Tuple, Union

from flythrough import config
from flythrough.core_types import (
    ExportPolicy,
    ExportTarget,
    ImageSequenceTarget,
    MovieTarget,
    RenderedFrame,
)
from flythrough.encoders import MovieWriter, save_still
from flythrough.exceptions import ExportError, ValidationError
from flythrough.logging_config import get_logger

logger = get_logger(__name__)


def sequence_number(index: int, total: int) -> str:
    """1-based frame number, zero-padded to the digit count of ``total``."""
    return str(index + 1).zfill(len(str(total)))


def sequence_filename(base_name: str, index: int, total: int, extension: str) -> str:
    """File name for frame ``index``: base name, padded number, extension."""
    return f"{base_name}{sequence_number(index, total)}{extension}"


def movie_path(path: Union[str, Path]) -> Path:
    """Append the default container extension when ``path`` has none."""
    path = Path(path)
    if "." not in path.name:
        path = path.with_name(path.name + config.DEFAULT_MOVIE_EXTENSION)
    return path


def sequence_format(target: ImageSequenceTarget) -> str:
    """Return TIFF, JPEG or RAW for the extension of an image sequence.

    Raises:
        ValidationError: for any other extension, including none
    """
    fmt = config.STILL_EXTENSIONS.get(target.extension.lower())
    if fmt is None:
        raise ValidationError(
            f"Invalid filename ({target.base_name}{target.extension}): "
            "extension must be TIFF, JPEG or RAW."
        )
    return fmt


def validate_target(target: ExportTarget) -> ExportTarget:
    """Check an export target before any capture work starts.

    Returns:
        The target, with a movie path completed by the default extension

    Raises:
        ValidationError: bad extension, missing directory or bad frame rate
    """
    if isinstance(target, ImageSequenceTarget):
        if not target.base_name and not target.extension:
            raise ValidationError("No file name given for the image sequence")
        sequence_format(target)
        directory = Path(target.directory)
        if not directory.is_dir():
            raise ValidationError(f"Output directory {directory} does not exist")
        return ImageSequenceTarget(directory, target.base_name, target.extension)

    if isinstance(target, MovieTarget):
        path = movie_path(target.path)
        if path.suffix.lower() not in config.MOVIE_EXTENSIONS:
            raise ValidationError(
                f"Invalid movie filename ({path}): extension must be one of "
                + ", ".join(config.MOVIE_EXTENSIONS)
            )
        if not path.parent.is_dir():
            raise ValidationError(f"Output directory {path.parent} does not exist")
        if path.is_dir():
            raise ValidationError(f"Movie path {path} is a directory")
        if isinstance(target.frame_rate, bool) or not target.frame_rate or target.frame_rate <= 0:
            raise ValidationError(f"Frame rate must be positive, got {target.frame_rate}")
        return MovieTarget(path=path, frame_rate=target.frame_rate)

    raise ValidationError(f"Unknown export target {target!r}")


class FrameExporter(ABC):
    """Consumes the frames of one run in plan order."""

    policy: ExportPolicy

    def __init__(self):
        self.total = 0
        self.written: List[Path] = []
        self.failures: List[Tuple[Path, str]] = []

    @abstractmethod
    def open(self, total: int):
        """Prepare to receive ``total`` frames."""

    @abstractmethod
    def write(self, index: int, frame: RenderedFrame):
        """Consume frame ``index``."""

    @abstractmethod
    def commit(self) -> List[Path]:
        """Finish the export and return the paths produced."""

    @abstractmethod
    def abort(self):
        """Undo everything written so far."""

    def progress_message(self, index: int, total: int) -> str:
        return f"Processing image {index + 1}/{total}"


class ImageSequenceExporter(FrameExporter):
    """Writes each frame as a numbered still image.

    Frames are encoded into a hidden staging directory beside the target
    and moved onto their numbered names by :meth:`commit`.
    """

    policy = ExportPolicy.BEST_EFFORT

    def __init__(self, target: ImageSequenceTarget):
        super().__init__()
        self.target = target
        self.format = sequence_format(target)
        self.staging_dir: Optional[Path] = None
        self.staged: List[Tuple[Path, Path]] = []

    def path_for(self, index: int) -> Path:
        return Path(self.target.directory) / sequence_filename(
            self.target.base_name, index, self.total, self.target.extension
        )

    def open(self, total: int):
        self.total = total
        self.written = []
        self.failures = []
        self.staged = []
        try:
            self.staging_dir = Path(tempfile.mkdtemp(
                prefix=f".{self.target.base_name}.", suffix=".part",
                dir=str(self.target.directory),
            ))
        except OSError as e:
            raise ExportError(f"Cannot write to {self.target.directory}: {e}") from e
        logger.info(
            "Writing %d %s frames to %s",
            total, self.format, self.path_for(0).parent,
        )

    def write(self, index: int, frame: RenderedFrame):
        if self.staging_dir is None:
            raise ExportError("Image sequence exporter is not open")
        path = self.path_for(index)
        staged = self.staging_dir / path.name
        try:
            save_still(frame, staged, self.format)
        except (OSError, ValueError) as e:
            self._record_failure(path, e)
            return
        self.staged.append((staged, path))

    def commit(self) -> List[Path]:
        for staged, path in self.staged:
            try:
                os.replace(staged, path)
            except OSError as e:
                self._record_failure(path, e)
                continue
            self.written.append(path)
        self.staged = []
        self._remove_staging_dir()

        if self.failures:
            logger.warning(
                "Image sequence finished with %d of %d frames missing",
                len(self.failures), self.total,
            )
        return list(self.written)

    def abort(self):
        logger.info("Discarding %d staged frames of aborted image sequence", len(self.staged))
        self.staged = []
        self._remove_staging_dir()

    def _record_failure(self, path: Path, error: Exception):
        message = f"Failed to save {path.name}: {error}"
        logger.error(message)
        self.failures.append((path, message))

    def _remove_staging_dir(self):
        staging_dir, self.staging_dir = self.staging_dir, None
        if staging_dir is None:
            return
        try:
            shutil.rmtree(staging_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove %s: %s", staging_dir, e)

    def progress_message(self, index: int, total: int) -> str:
        return f"Saving {self.path_for(index).name} ({index + 1}/{total})"


class MovieExporter(FrameExporter):
    """Streams frames into one movie container."""

    policy = ExportPolicy.ALL_OR_NOTHING

    def __init__(self, target: MovieTarget):
        super().__init__()
        self.target = target
        self.writer = MovieWriter(target.path, target.frame_rate)

    def open(self, total: int):
        self.total = total
        self.writer.open()

    def write(self, index: int, frame: RenderedFrame):
        if index != self.writer.frame_count:
            raise ExportError(
                f"Movie frames must arrive in order: expected {self.writer.frame_count}, got {index}"
            )
        self.writer.append(frame)

    def commit(self) -> List[Path]:
        if self.writer.frame_count != self.total:
            self.writer.discard()
            raise ExportError(
                f"Movie has {self.writer.frame_count} of {self.total} frames"
            )
        path = self.writer.commit()
        self.written = [path]
        return list(self.written)

    def abort(self):
        self.writer.discard()


def create_exporter(target: ExportTarget) -> FrameExporter:
    """Build the exporter matching ``target``."""
    if isinstance(target, ImageSequenceTarget):
        return ImageSequenceExporter(target)
    if isinstance(target, MovieTarget):
        return MovieExporter(target)
    raise ValidationError(f"Unknown export target {target!r}")


__all__ = [
    "sequence_number",
    "sequence_filename",
    "movie_path",
    "sequence_format",
    "validate_target",
    "FrameExporter",
    "ImageSequenceExporter",
    "MovieExporter",
    "create_exporter",
]
