"""
Encoders for captured frames: sample conversion, still images and movie containers.
"""

import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import cv2
import imageio
import numpy as np
from PIL import Image

from flythrough import config
from flythrough.core_types import RenderedFrame
from flythrough.exceptions import ExportError, ValidationError
from flythrough.logging_config import get_logger

logger = get_logger(__name__)


def to_rgb8(frame: RenderedFrame) -> np.ndarray:
    """Convert a rendered frame to contiguous HxWx3 uint8 RGB.

    Accepts grayscale (HxW or HxWx1), RGB and RGBA buffers. Float buffers
    are taken to be in [0, 1]; 16-bit buffers are scaled down to 8 bits.
    """
    frame = np.asarray(frame)

    if frame.dtype == np.uint8:
        pass
    elif frame.dtype == np.bool_:
        frame = frame.astype(np.uint8) * 255
    elif np.issubdtype(frame.dtype, np.floating):
        frame = (np.clip(frame, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
    elif frame.dtype == np.uint16:
        frame = (frame >> 8).astype(np.uint8)
    else:
        frame = np.clip(frame, 0, 255).astype(np.uint8)

    if frame.ndim == 3 and frame.shape[2] == 1:
        frame = frame[:, :, 0]

    if frame.ndim == 2:
        frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2RGB)
    elif frame.ndim == 3 and frame.shape[2] == 4:
        frame = cv2.cvtColor(frame, cv2.COLOR_RGBA2RGB)
    elif not (frame.ndim == 3 and frame.shape[2] == 3):
        raise ValueError(f"Cannot convert image of shape {frame.shape} to RGB")

    return np.ascontiguousarray(frame)


def still_format(path: Union[str, Path]) -> str:
    """Return TIFF, JPEG or RAW for a still-image path.

    Raises:
        ValidationError: for any other extension
    """
    suffix = Path(path).suffix.lower()
    fmt = config.STILL_EXTENSIONS.get(suffix)
    if fmt is None:
        raise ValidationError(
            f"Invalid filename ({path}): extension must be TIFF, JPEG or RAW."
        )
    return fmt


def save_still(frame: RenderedFrame, path: Union[str, Path], fmt: Optional[str] = None) -> Path:
    """Encode one frame as a still image.

    Args:
        frame: Frame image data
        path: Output file path
        fmt: TIFF, JPEG or RAW; derived from the extension when omitted

    Returns:
        Path written
    """
    path = Path(path)
    fmt = fmt or still_format(path)
    rgb = to_rgb8(frame)

    if fmt == "RAW":
        # Interleaved 8-bit RGB, no header.
        path.write_bytes(rgb.tobytes())
    elif fmt == "JPEG":
        Image.fromarray(rgb).save(path, format="JPEG", quality=config.JPEG_QUALITY)
    elif fmt == "TIFF":
        Image.fromarray(rgb).save(path, format="TIFF")
    else:
        raise ValidationError(f"Unsupported still format {fmt}")

    return path


class MovieWriter:
    """Streams frames into a movie container through imageio's ffmpeg backend.

    Frames go to a hidden temporary file beside the target; :meth:`commit`
    moves it into place in one ``os.replace``, so the target path is either
    the finished movie or whatever was there before.
    """

    def __init__(self, path: Union[str, Path], frame_rate: int,
                 codec: Optional[str] = None, quality: Optional[float] = None):
        self.path = Path(path)
        self.frame_rate = frame_rate
        self.codec = codec if codec is not None else config.MOVIE_CODEC
        self.quality = quality if quality is not None else config.MOVIE_QUALITY
        self.frame_count = 0
        self.frame_shape: Optional[Tuple[int, ...]] = None
        self.temp_path: Optional[Path] = None
        self._writer = None

    def get_writer_params(self) -> Dict[str, Any]:
        """Get parameters for the imageio writer."""
        params: Dict[str, Any] = {
            "format": "FFMPEG",
            "mode": "I",
            "fps": self.frame_rate,
            "macro_block_size": 1,
        }
        if self.codec:
            params["codec"] = self.codec
        if self.quality is not None:
            params["quality"] = self.quality
        return params

    def open(self):
        """Create the temporary file and start the encoder."""
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{self.path.stem}.",
            suffix=self.path.suffix,
            dir=str(self.path.parent),
        )
        os.close(fd)
        self.temp_path = Path(temp_name)
        try:
            self._writer = imageio.get_writer(str(self.temp_path), **self.get_writer_params())
        except Exception as e:
            self.discard()
            raise ExportError(f"Cannot open movie encoder for {self.path}: {e}") from e
        logger.debug("Encoding %s via %s", self.path, self.temp_path)

    def append(self, frame: RenderedFrame):
        """Convert and append one frame.

        Raises:
            ExportError: if the frame cannot be converted, changes size, or the encoder fails
        """
        if self._writer is None:
            raise ExportError("Movie writer is not open")
        try:
            rgb = to_rgb8(frame)
        except ValueError as e:
            raise ExportError(str(e)) from e

        if self.frame_shape is None:
            self.frame_shape = rgb.shape
        elif rgb.shape != self.frame_shape:
            raise ExportError(
                f"Frame {self.frame_count} is {rgb.shape[1]}x{rgb.shape[0]}, "
                f"movie is {self.frame_shape[1]}x{self.frame_shape[0]}"
            )

        try:
            self._writer.append_data(rgb)
        except Exception as e:
            raise ExportError(f"Encoding frame {self.frame_count} failed: {e}") from e
        self.frame_count += 1

    def commit(self) -> Path:
        """Finish encoding and move the movie onto the target path."""
        if self._writer is None or self.temp_path is None:
            raise ExportError("Movie writer is not open")
        if self.frame_count == 0:
            raise ExportError("No frames were written to the movie")

        writer, self._writer = self._writer, None
        try:
            writer.close()
            os.chmod(self.temp_path, self._target_mode())
            os.replace(self.temp_path, self.path)
        except Exception as e:
            self.discard()
            raise ExportError(f"Failed to write movie {self.path}: {e}") from e

        self.temp_path = None
        logger.info("Wrote %d frames to %s", self.frame_count, self.path)
        return self.path

    def _target_mode(self) -> int:
        """Permission bits for the finished movie.

        A replaced movie keeps its mode; a new one gets the mode any
        newly created file would get under the current umask.
        """
        try:
            return stat.S_IMODE(self.path.stat().st_mode)
        except FileNotFoundError:
            pass
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask

    def discard(self):
        """Stop the encoder and delete the temporary file."""
        writer, self._writer = self._writer, None
        if writer is not None:
            try:
                writer.close()
            except Exception as e:
                logger.warning("Error closing movie encoder: %s", e)
        if self.temp_path is not None:
            try:
                self.temp_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Could not remove %s: %s", self.temp_path, e)
            self.temp_path = None


__all__ = ["to_rgb8", "still_format", "save_still", "MovieWriter"]
