"""
Unit tests for file naming, target validation, encoders and exporters.
"""

import os
import stat
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest
from PIL import Image

from flythrough.core_types import ExportPolicy, ImageSequenceTarget, MovieTarget
from flythrough.encoders import MovieWriter, save_still, still_format, to_rgb8
from flythrough.exceptions import ExportError, ValidationError
from flythrough.exporters import (
    ImageSequenceExporter,
    MovieExporter,
    create_exporter,
    movie_path,
    sequence_format,
    sequence_filename,
    sequence_number,
    validate_target,
)


class TestSequenceNaming:
    """Tests for the zero-padded numbering"""

    def test_single_digit_total(self):
        assert [sequence_number(i, 5) for i in range(5)] == ["1", "2", "3", "4", "5"]

    def test_three_digit_total(self):
        assert sequence_number(0, 100) == "001"
        assert sequence_number(9, 100) == "010"
        assert sequence_number(99, 100) == "100"

    def test_width_follows_total_not_index(self):
        assert sequence_number(0, 10) == "01"
        assert sequence_number(9, 10) == "10"

    def test_filename_inserts_number_before_extension(self):
        assert sequence_filename("flight", 0, 100, ".tif") == "flight001.tif"
        assert sequence_filename("shot.v2_", 4, 5, ".JPG") == "shot.v2_5.JPG"


class TestImageSequenceTarget:
    """Tests for splitting a chosen path"""

    def test_from_path_splits_at_last_dot(self, tmp_path):
        target = ImageSequenceTarget.from_path(tmp_path / "run.v1.tiff")
        assert target.directory == tmp_path
        assert target.base_name == "run.v1"
        assert target.extension == ".tiff"

    def test_from_path_without_extension(self, tmp_path):
        target = ImageSequenceTarget.from_path(tmp_path / "frames")
        assert target.extension == ""

    def test_policy(self):
        assert ImageSequenceTarget.policy is ExportPolicy.BEST_EFFORT
        assert MovieTarget.policy is ExportPolicy.ALL_OR_NOTHING


class TestValidateTarget:
    """Tests for pre-flight target validation"""

    @pytest.mark.parametrize("name", ["a.tif", "a.TIFF", "a.jpg", "a.Jpeg", "a.raw"])
    def test_accepts_still_extensions(self, temp_output_dir, name):
        target = ImageSequenceTarget.from_path(temp_output_dir / name)
        assert validate_target(target) == target

    @pytest.mark.parametrize("name", ["a.png", "a.gif", "a", "a.tif.bak"])
    def test_rejects_other_extensions(self, temp_output_dir, name):
        with pytest.raises(ValidationError):
            validate_target(ImageSequenceTarget.from_path(temp_output_dir / name))

    @pytest.mark.parametrize(
        "base_name,extension",
        [("x.tif", ""), ("x.jpg", ".png"), ("x", ".tif1")],
    )
    def test_extension_itself_must_be_a_still_format(self, temp_output_dir, base_name, extension):
        target = ImageSequenceTarget(temp_output_dir, base_name, extension)
        with pytest.raises(ValidationError, match="TIFF, JPEG or RAW"):
            validate_target(target)
        with pytest.raises(ValidationError):
            ImageSequenceExporter(target)

    def test_sequence_format_ignores_case(self, temp_output_dir):
        assert sequence_format(ImageSequenceTarget(temp_output_dir, "x", ".JPEG")) == "JPEG"
        assert sequence_format(ImageSequenceTarget(temp_output_dir, "x.raw", ".tif")) == "TIFF"

    def test_rejects_missing_directory(self, tmp_path):
        with pytest.raises(ValidationError):
            validate_target(ImageSequenceTarget.from_path(tmp_path / "nope" / "a.tif"))

    def test_movie_gets_default_extension(self, temp_output_dir):
        target = validate_target(MovieTarget(path=temp_output_dir / "flight", frame_rate=24))
        assert target.path == temp_output_dir / "flight.avi"

    def test_movie_keeps_given_extension(self, temp_output_dir):
        target = validate_target(MovieTarget(path=temp_output_dir / "flight.mp4", frame_rate=24))
        assert target.path.suffix == ".mp4"

    def test_movie_rejects_unknown_container(self, temp_output_dir):
        with pytest.raises(ValidationError):
            validate_target(MovieTarget(path=temp_output_dir / "flight.tif", frame_rate=24))

    @pytest.mark.parametrize("rate", [0, -5, None])
    def test_movie_rejects_bad_frame_rate(self, temp_output_dir, rate):
        with pytest.raises(ValidationError):
            validate_target(MovieTarget(path=temp_output_dir / "flight.avi", frame_rate=rate))

    def test_unknown_target(self):
        with pytest.raises(ValidationError):
            validate_target("movie.avi")

    def test_movie_path_helper(self):
        assert movie_path("out/clip") == Path("out/clip.avi")
        assert movie_path("out/clip.mkv") == Path("out/clip.mkv")


class TestEncoders:
    """Tests for sample conversion and still encoding"""

    def test_to_rgb8_grayscale(self):
        rgb = to_rgb8(np.full((4, 5), 7, dtype=np.uint8))
        assert rgb.shape == (4, 5, 3)
        assert np.all(rgb == 7)

    def test_to_rgb8_rgba_drops_alpha(self):
        rgba = np.zeros((2, 2, 4), dtype=np.uint8)
        rgba[..., 0] = 200
        rgba[..., 3] = 50
        rgb = to_rgb8(rgba)
        assert rgb.shape == (2, 2, 3)
        assert np.all(rgb[..., 0] == 200)

    def test_to_rgb8_float(self):
        rgb = to_rgb8(np.ones((2, 2, 3), dtype=np.float32))
        assert rgb.dtype == np.uint8
        assert np.all(rgb == 255)

    def test_to_rgb8_rejects_bad_shape(self):
        with pytest.raises(ValueError):
            to_rgb8(np.zeros((2, 2, 2), dtype=np.uint8))

    def test_still_format(self):
        assert still_format("x.TIF") == "TIFF"
        assert still_format("x.jpeg") == "JPEG"
        assert still_format("x.raw") == "RAW"
        with pytest.raises(ValidationError):
            still_format("x.bmp")

    def test_save_tiff_round_trip(self, temp_output_dir):
        frame = np.random.randint(0, 255, (6, 8, 3), dtype=np.uint8)
        path = save_still(frame, temp_output_dir / "a.tif")
        with Image.open(path) as img:
            assert img.format == "TIFF"
            np.testing.assert_array_equal(np.asarray(img), frame)

    def test_save_jpeg(self, temp_output_dir):
        path = save_still(np.zeros((6, 8, 4), dtype=np.uint8), temp_output_dir / "a.jpg")
        with Image.open(path) as img:
            assert img.format == "JPEG"
            assert img.size == (8, 6)

    def test_save_raw_writes_interleaved_bytes(self, temp_output_dir):
        frame = np.arange(2 * 3 * 3, dtype=np.uint8).reshape(2, 3, 3)
        path = save_still(frame, temp_output_dir / "a.raw")
        assert path.read_bytes() == frame.tobytes()


class TestImageSequenceExporter:
    """Tests for best-effort image sequence export"""

    def _frame(self, value):
        return np.full((4, 4, 3), value, dtype=np.uint8)

    def test_writes_numbered_files(self, temp_output_dir):
        exporter = create_exporter(ImageSequenceTarget(temp_output_dir, "shot", ".tif"))
        assert isinstance(exporter, ImageSequenceExporter)
        exporter.open(12)
        for i in range(12):
            exporter.write(i, self._frame(i))
        written = exporter.commit()

        assert [p.name for p in written][:2] == ["shot01.tif", "shot02.tif"]
        assert written[-1].name == "shot12.tif"
        assert all(p.exists() for p in written)
        assert exporter.failures == []

    def test_failure_on_one_frame_does_not_stop_the_rest(self, temp_output_dir):
        exporter = ImageSequenceExporter(ImageSequenceTarget(temp_output_dir, "shot", ".jpg"))
        exporter.open(3)

        real_save = save_still

        def flaky_save(frame, path, fmt=None):
            if path.name == "shot2.jpg":
                raise OSError("disk full")
            return real_save(frame, path, fmt)

        with patch("flythrough.exporters.save_still", side_effect=flaky_save):
            for i in range(3):
                exporter.write(i, self._frame(i))
        written = exporter.commit()

        assert [p.name for p in written] == ["shot1.jpg", "shot3.jpg"]
        assert len(exporter.failures) == 1
        failed_path, message = exporter.failures[0]
        assert failed_path.name == "shot2.jpg"
        assert "disk full" in message

    def test_abort_removes_written_files(self, temp_output_dir):
        exporter = ImageSequenceExporter(ImageSequenceTarget(temp_output_dir, "shot", ".raw"))
        exporter.open(4)
        exporter.write(0, self._frame(0))
        exporter.write(1, self._frame(1))
        exporter.abort()
        assert list(temp_output_dir.iterdir()) == []

    def test_final_names_untouched_until_commit(self, temp_output_dir):
        existing = temp_output_dir / "shot1.raw"
        existing.write_bytes(b"previous run")
        exporter = ImageSequenceExporter(ImageSequenceTarget(temp_output_dir, "shot", ".raw"))
        exporter.open(2)
        exporter.write(0, self._frame(7))
        exporter.write(1, self._frame(8))

        assert existing.read_bytes() == b"previous run"
        assert not (temp_output_dir / "shot2.raw").exists()

        exporter.commit()
        assert existing.read_bytes() == bytes([7]) * 48
        assert sorted(p.name for p in temp_output_dir.iterdir()) == ["shot1.raw", "shot2.raw"]

    def test_abort_keeps_files_from_earlier_runs(self, temp_output_dir):
        existing = temp_output_dir / "shot1.raw"
        existing.write_bytes(b"previous run")
        exporter = ImageSequenceExporter(ImageSequenceTarget(temp_output_dir, "shot", ".raw"))
        exporter.open(2)
        exporter.write(0, self._frame(0))
        exporter.abort()

        assert existing.read_bytes() == b"previous run"
        assert list(temp_output_dir.iterdir()) == [existing]

    def test_failed_move_is_recorded_as_failure(self, temp_output_dir):
        # a directory squatting on the final name cannot be replaced by a file
        (temp_output_dir / "shot2.tif").mkdir()
        exporter = ImageSequenceExporter(ImageSequenceTarget(temp_output_dir, "shot", ".tif"))
        exporter.open(3)
        for i in range(3):
            exporter.write(i, self._frame(i))
        written = exporter.commit()

        assert [p.name for p in written] == ["shot1.tif", "shot3.tif"]
        assert [p.name for p, _ in exporter.failures] == ["shot2.tif"]
        assert sorted(p.name for p in temp_output_dir.iterdir()) == [
            "shot1.tif", "shot2.tif", "shot3.tif",
        ]

    def test_progress_message_names_the_file(self, temp_output_dir):
        exporter = ImageSequenceExporter(ImageSequenceTarget(temp_output_dir, "shot", ".tif"))
        exporter.open(100)
        assert exporter.progress_message(4, 100) == "Saving shot005.tif (5/100)"


class TestMovieExporter:
    """Tests for all-or-nothing movie export"""

    def _frame(self, value, size=(4, 4)):
        return np.full(size + (3,), value, dtype=np.uint8)

    def test_writes_through_temp_file_then_renames(self, temp_output_dir, fake_movie_writer):
        target = MovieTarget(temp_output_dir / "flight.avi", 12)
        exporter = create_exporter(target)
        assert isinstance(exporter, MovieExporter)
        exporter.open(3)

        writer = fake_movie_writer[0]
        assert writer.path.parent == temp_output_dir
        assert writer.path != target.path
        assert writer.path.suffix == ".avi"
        assert writer.params["fps"] == 12

        for i in range(3):
            exporter.write(i, self._frame(i))
        assert not target.path.exists()

        written = exporter.commit()
        assert written == [target.path]
        assert target.path.exists()
        assert not writer.path.exists()
        assert len(writer.frames) == 3
        assert list(temp_output_dir.iterdir()) == [target.path]

    def _record(self, target, frames=2):
        exporter = MovieExporter(target)
        exporter.open(frames)
        for i in range(frames):
            exporter.write(i, self._frame(i))
        return exporter.commit()

    def test_new_movie_gets_normal_file_mode(self, temp_output_dir, fake_movie_writer):
        reference = temp_output_dir / "reference.bin"
        reference.write_bytes(b"")
        expected = stat.S_IMODE(reference.stat().st_mode)

        target = MovieTarget(temp_output_dir / "flight.avi", 12)
        self._record(target)
        assert stat.S_IMODE(target.path.stat().st_mode) == expected

    def test_replaced_movie_keeps_its_mode(self, temp_output_dir, fake_movie_writer):
        target = MovieTarget(temp_output_dir / "flight.avi", 12)
        target.path.write_bytes(b"previous movie")
        os.chmod(target.path, 0o640)

        self._record(target)
        assert target.path.read_bytes() != b"previous movie"
        assert stat.S_IMODE(target.path.stat().st_mode) == 0o640

    def test_abort_leaves_no_file(self, temp_output_dir, fake_movie_writer):
        target = MovieTarget(temp_output_dir / "flight.avi", 12)
        exporter = MovieExporter(target)
        exporter.open(3)
        exporter.write(0, self._frame(0))
        exporter.abort()
        assert list(temp_output_dir.iterdir()) == []

    def test_frame_size_change_is_fatal(self, temp_output_dir, fake_movie_writer):
        exporter = MovieExporter(MovieTarget(temp_output_dir / "flight.avi", 12))
        exporter.open(2)
        exporter.write(0, self._frame(0))
        with pytest.raises(ExportError):
            exporter.write(1, self._frame(1, size=(8, 8)))

    def test_out_of_order_frame_is_fatal(self, temp_output_dir, fake_movie_writer):
        exporter = MovieExporter(MovieTarget(temp_output_dir / "flight.avi", 12))
        exporter.open(2)
        with pytest.raises(ExportError):
            exporter.write(1, self._frame(0))

    def test_commit_with_missing_frames_fails(self, temp_output_dir, fake_movie_writer):
        target = MovieTarget(temp_output_dir / "flight.avi", 12)
        exporter = MovieExporter(target)
        exporter.open(3)
        exporter.write(0, self._frame(0))
        with pytest.raises(ExportError):
            exporter.commit()
        assert list(temp_output_dir.iterdir()) == []

    def test_encoder_failure_raises_export_error(self, temp_output_dir, failing_movie_writer):
        exporter = MovieExporter(MovieTarget(temp_output_dir / "flight.avi", 12))
        exporter.open(3)
        exporter.write(0, self._frame(0))
        with pytest.raises(ExportError):
            exporter.write(1, self._frame(1))
        exporter.abort()
        assert list(temp_output_dir.iterdir()) == []

    def test_grayscale_frames_are_converted(self, temp_output_dir, fake_movie_writer):
        exporter = MovieExporter(MovieTarget(temp_output_dir / "flight.avi", 12))
        exporter.open(1)
        exporter.write(0, np.zeros((4, 4), dtype=np.uint8))
        assert fake_movie_writer[0].frames[0].shape == (4, 4, 3)


class TestMovieWriter:
    """Tests for the imageio-backed movie writer"""

    def test_writer_params(self, tmp_path):
        writer = MovieWriter(tmp_path / "a.mp4", 30, codec="libx264", quality=8)
        params = writer.get_writer_params()
        assert params["fps"] == 30
        assert params["codec"] == "libx264"
        assert params["quality"] == 8
        assert params["format"] == "FFMPEG"

    def test_open_failure_cleans_up(self, temp_output_dir, monkeypatch):
        def broken(path, **params):
            raise RuntimeError("ffmpeg not found")

        monkeypatch.setattr("flythrough.encoders.imageio.get_writer", broken)
        writer = MovieWriter(temp_output_dir / "a.avi", 10)
        with pytest.raises(ExportError):
            writer.open()
        assert list(temp_output_dir.iterdir()) == []

    @pytest.mark.slow
    def test_real_ffmpeg_encode(self, temp_output_dir):
        pytest.importorskip("imageio_ffmpeg")
        target = temp_output_dir / "real.mp4"
        writer = MovieWriter(target, 10)
        writer.open()
        for i in range(5):
            writer.append(np.full((16, 16, 3), i * 40, dtype=np.uint8))
        writer.commit()
        assert target.exists()
        assert target.stat().st_size > 0
