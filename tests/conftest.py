"""Pytest configuration and shared fixtures."""

import pytest
import sys
from pathlib import Path

import numpy as np

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


class FakeDisplay:
    """In-memory display: each rendered frame encodes the view state it was drawn from."""

    def __init__(self, width=8, height=6, fail_on_render=None, channels=3):
        self.width = width
        self.height = height
        self.channels = channels
        self.fail_on_render = fail_on_render
        self.available = True
        self.view_state = np.zeros(2)
        self.history = []
        self.renders = 0
        self.on_render = None

    def is_available(self):
        return self.available

    def get_view_state(self):
        return self.view_state.copy()

    def set_view_state(self, view_state):
        self.view_state = np.array(view_state, dtype=np.float64)
        self.history.append(self.view_state.copy())

    def render_to_image(self):
        if self.fail_on_render is not None and self.renders == self.fail_on_render:
            self.renders += 1
            raise RuntimeError("read-back failed")
        self.renders += 1
        if self.on_render is not None:
            self.on_render(self.renders)
        value = int(round(float(np.sum(self.view_state)))) % 256
        shape = (self.height, self.width, self.channels) if self.channels else (self.height, self.width)
        return np.full(shape, value, dtype=np.uint8)


class FakeMovieWriter:
    """Stands in for an imageio ffmpeg writer; writes a small file on close."""

    instances = []

    def __init__(self, path, fail_on_frame=None, **params):
        self.path = Path(path)
        self.params = params
        self.frames = []
        self.closed = False
        self.fail_on_frame = fail_on_frame
        FakeMovieWriter.instances.append(self)

    def append_data(self, frame):
        if self.fail_on_frame is not None and len(self.frames) == self.fail_on_frame:
            raise IOError("encoder pipe broken")
        self.frames.append(frame.copy())

    def close(self):
        if not self.closed:
            self.path.write_bytes(b"MOVIE" + len(self.frames).to_bytes(4, "little"))
        self.closed = True


@pytest.fixture
def fake_display():
    """Provide a display that renders 8x6 RGB frames."""
    return FakeDisplay()


@pytest.fixture
def sample_keyframes():
    """Keyframes forming an L-shaped path in two dimensions."""
    return [[0.0, 0.0], [10.0, 0.0], [10.0, 10.0]]


@pytest.fixture
def temp_output_dir(tmp_path):
    """Provide a temporary directory for test outputs."""
    out = tmp_path / "outputs"
    out.mkdir()
    return out


@pytest.fixture
def fake_movie_writer(monkeypatch):
    """Route imageio.get_writer to FakeMovieWriter and return the list of writers created."""
    FakeMovieWriter.instances = []

    def get_writer(path, **params):
        return FakeMovieWriter(path, **params)

    monkeypatch.setattr("flythrough.encoders.imageio.get_writer", get_writer)
    return FakeMovieWriter.instances


@pytest.fixture(scope="session")
def project_root_path():
    """Provide the project root path."""
    return Path(__file__).parent.parent


@pytest.fixture
def failing_movie_writer(monkeypatch):
    """Route imageio.get_writer to a FakeMovieWriter whose second frame fails to encode."""
    FakeMovieWriter.instances = []

    def get_writer(path, **params):
        return FakeMovieWriter(path, fail_on_frame=1, **params)

    monkeypatch.setattr("flythrough.encoders.imageio.get_writer", get_writer)
    return FakeMovieWriter.instances
