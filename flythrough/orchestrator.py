"""
Capture orchestration: validates a request, then plans, captures and exports
the frames of a keyframed movie on a background worker.

Run lifecycle::

    IDLE -> VALIDATING -> CAPTURING -> EXPORTING -> DONE
                 |             |            |
                 +-------------+------------+--> FAILED / CANCELLED

Capture and export are interleaved: each frame is handed to the exporter as
soon as it is rendered and then dropped, so a run holds one frame at a time
no matter how long the movie is.
"""

import threading
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from flythrough.capturer import Capturer
from flythrough.core_types import (
    ExportPolicy,
    ExportTarget,
    MovieTarget,
    RunResult,
    RunState,
    TimingParams,
)
from flythrough.display import DisplayCapability, DisplayLease, check_display
from flythrough.encoders import save_still, still_format
from flythrough.exceptions import (
    CaptureCancelled,
    CaptureError,
    ExportError,
    ValidationError,
)
from flythrough.exporters import FrameExporter, create_exporter, validate_target
from flythrough.logging_config import get_logger
from flythrough.planner import FrameSequencePlanner, KeyframeInput
from flythrough.progress import NullProgressSink, ProgressSink, percent_of

logger = get_logger(__name__)


class CaptureJob:
    """Handle on one capture run, safe to poll from any thread."""

    def __init__(self, kind: str):
        self.kind = kind
        self.result_data = RunResult()
        self.exception: Optional[BaseException] = None
        self._state = RunState.IDLE
        self._state_lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._done_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> RunState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: RunState):
        with self._state_lock:
            previous, self._state = self._state, state
            self.result_data.state = state
        logger.debug("%s run: %s -> %s", self.kind, previous.value, state.value)

    def cancel(self):
        """Ask the run to stop before its next frame."""
        self._cancel_event.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    def done(self) -> bool:
        return self._done_event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the run finishes; return False on timeout."""
        return self._done_event.wait(timeout)

    def result(self, timeout: Optional[float] = None) -> RunResult:
        """Wait for the run and return its result.

        Raises:
            TimeoutError: if the run is still going after ``timeout`` seconds
        """
        if not self.wait(timeout):
            raise TimeoutError(f"{self.kind} run still in progress")
        return self.result_data

    def _finish(self):
        self._done_event.set()


class CaptureController:
    """Records stills and keyframed movies from one display.

    Example:
        controller = CaptureController(display, progress=QueueProgressSink())
        job = controller.start_movie(
            keyframes,
            TimingParams(seconds_per_transition=2.0, frames_per_second=24, use_easing=True),
            MovieTarget(path=Path("flight.avi"), frame_rate=24),
        )
        ...
        result = job.result()
    """

    def __init__(
        self,
        display: Optional[DisplayCapability],
        progress: Optional[ProgressSink] = None,
        settle_delay: Optional[float] = None,
    ):
        """Initialize capture controller.

        Args:
            display: Display capability to capture from
            progress: Sink for (percent, message) updates
            settle_delay: Wait after each view change; defaults to config.SETTLE_DELAY
        """
        self.display = display
        self.lease = DisplayLease(display)
        self.progress = progress or NullProgressSink()
        self.settle_delay = settle_delay
        self.current_job: Optional[CaptureJob] = None

    # -- Movies --

    def validate(
        self,
        keyframes: KeyframeInput,
        timing: TimingParams,
        target: ExportTarget,
    ) -> Tuple[FrameSequencePlanner, ExportTarget]:
        """Check a movie request without starting it.

        Returns:
            The frame planner and the normalised export target

        Raises:
            ValidationError: on any unacceptable input
        """
        check_display(self.display)
        planner = FrameSequencePlanner(keyframes, timing)
        target = validate_target(target)
        return planner, target

    def start_movie(
        self,
        keyframes: KeyframeInput,
        timing: TimingParams,
        target: ExportTarget,
    ) -> CaptureJob:
        """Validate and start a movie run on a background thread.

        Raises:
            ValidationError: inputs rejected; nothing was captured
            DisplayBusyError: another run is using the display
        """
        job, planner, exporter = self._prepare_movie(keyframes, timing, target)
        self._start_thread(job, self._run_movie, planner, exporter)
        return job

    def record(
        self,
        keyframes: KeyframeInput,
        timing: TimingParams,
        target: ExportTarget,
    ) -> RunResult:
        """Validate and run a movie capture in the calling thread."""
        job, planner, exporter = self._prepare_movie(keyframes, timing, target)
        self._run_movie(job, planner, exporter)
        return job.result_data

    # -- Snapshots --

    def save_snapshot(self, path: Union[str, Path]) -> Path:
        """Save what the display currently shows as one TIFF, JPEG or RAW image.

        Raises:
            ValidationError: bad extension, missing directory or display
            CaptureError: the display could not produce an image
            ExportError: the image could not be written
        """
        job = self._prepare_snapshot(path)
        self._run_snapshot(job, Path(path))
        if job.exception is not None:
            raise job.exception
        return Path(path)

    def start_snapshot(self, path: Union[str, Path]) -> CaptureJob:
        """Save a snapshot on a background thread."""
        job = self._prepare_snapshot(path)
        self._start_thread(job, self._run_snapshot, Path(path))
        return job

    def cancel(self):
        """Cancel the run in progress, if any."""
        if self.current_job is not None and not self.current_job.done():
            self.current_job.cancel()

    @property
    def busy(self) -> bool:
        return self.lease.held

    # -- Internals --

    def _prepare_movie(self, keyframes, timing, target):
        job = CaptureJob("movie" if isinstance(target, MovieTarget) else "image sequence")
        job._set_state(RunState.VALIDATING)
        try:
            planner, target = self.validate(keyframes, timing, target)
            exporter = create_exporter(target)
            self.lease.acquire(holder=f"{job.kind} capture")
        except ValidationError as e:
            self._fail_before_start(job, e)
            raise
        job.result_data.total_frames = planner.total
        self.current_job = job
        logger.info(
            "Recording %s: %d keyframes, %d frames per transition, %d frames total",
            job.kind, len(planner.keyframes), planner.frames_per_transition, planner.total,
        )
        return job, planner, exporter

    def _prepare_snapshot(self, path) -> CaptureJob:
        job = CaptureJob("snapshot")
        job._set_state(RunState.VALIDATING)
        try:
            check_display(self.display)
            still_format(path)
            if not Path(path).parent.is_dir():
                raise ValidationError(f"Output directory {Path(path).parent} does not exist")
            self.lease.acquire(holder="snapshot")
        except ValidationError as e:
            self._fail_before_start(job, e)
            raise
        job.result_data.total_frames = 1
        self.current_job = job
        return job

    def _fail_before_start(self, job: CaptureJob, error: Exception):
        logger.error("Cannot start %s: %s", job.kind, error)
        job.exception = error
        job.result_data.error = str(error)
        job._set_state(RunState.FAILED)
        job._finish()

    def _start_thread(self, job: CaptureJob, target, *args):
        job._thread = threading.Thread(
            target=target,
            args=(job,) + args,
            name=f"flythrough-{job.kind.replace(' ', '-')}",
            daemon=True,
        )
        try:
            job._thread.start()
        except RuntimeError as e:
            job.exception = e
            job._set_state(RunState.FAILED)
            self.lease.release()
            job._finish()
            raise

    def _report(self, percent: int, message: str):
        self.progress.report(percent, message)

    def _run_movie(self, job: CaptureJob, planner: FrameSequencePlanner, exporter: FrameExporter):
        result = job.result_data
        total = planner.total
        capturer = Capturer(self.display, self.settle_delay)
        original_view = self._current_view_state()

        try:
            job._set_state(RunState.CAPTURING)
            exporter.open(total)

            for entry in planner:
                if job.cancel_requested:
                    raise CaptureCancelled(f"Cancelled after {result.frames_captured}/{total} frames")

                i = entry.index
                # the capping frame completes the sweep
                percent = 100 if entry.is_final else percent_of(i, total)
                self._report(percent, f"Capturing image {i + 1}/{total}")
                frame = capturer.capture(entry.view_state)
                result.frames_captured += 1

                self._report(percent, exporter.progress_message(i, total))
                exporter.write(i, frame)

            if job.cancel_requested:
                raise CaptureCancelled(f"Cancelled after {result.frames_captured}/{total} frames")

            job._set_state(RunState.EXPORTING)
            if exporter.policy is ExportPolicy.ALL_OR_NOTHING:
                self._report(100, "Saving movie")
            result.written = exporter.commit()
            result.failures = list(exporter.failures)

            self._report(100, "Finishing up")
            job._set_state(RunState.DONE)
            if result.failures:
                result.error = f"{len(result.failures)} of {total} images could not be saved"
            logger.info(
                "%s finished: %d files written, %d failed",
                job.kind, len(result.written), len(result.failures),
            )

        except CaptureCancelled as e:
            exporter.abort()
            job.exception = e
            result.error = str(e)
            job._set_state(RunState.CANCELLED)
            logger.info("%s run cancelled: %s", job.kind, e)
        except (CaptureError, ExportError) as e:
            exporter.abort()
            job.exception = e
            result.error = str(e)
            job._set_state(RunState.FAILED)
            logger.error("%s run failed: %s", job.kind, e)
        except Exception as e:
            exporter.abort()
            job.exception = e
            result.error = f"Unexpected error: {e}"
            job._set_state(RunState.FAILED)
            logger.exception("%s run failed unexpectedly", job.kind)
        finally:
            self._end_run(job, original_view)

    def _run_snapshot(self, job: CaptureJob, path: Path):
        result = job.result_data
        capturer = Capturer(self.display, self.settle_delay)
        try:
            job._set_state(RunState.CAPTURING)
            frame = capturer.snapshot()
            result.frames_captured = 1
            job._set_state(RunState.EXPORTING)
            self._report(100, f"Saving {path.name}")
            try:
                save_still(frame, path)
            except (OSError, ValueError) as e:
                raise ExportError(f"Failed to save snapshot {path}: {e}") from e
            result.written = [path]
            job._set_state(RunState.DONE)
            logger.info("Saved snapshot to %s", path)
        except (CaptureError, ExportError) as e:
            job.exception = e
            result.error = str(e)
            job._set_state(RunState.FAILED)
            logger.error("Snapshot failed: %s", e)
        except Exception as e:
            job.exception = e
            result.error = f"Unexpected error: {e}"
            job._set_state(RunState.FAILED)
            logger.exception("Snapshot failed unexpectedly")
        finally:
            self._end_run(job, None)

    def _current_view_state(self) -> Optional[np.ndarray]:
        get_view_state = getattr(self.display, "get_view_state", None)
        if not callable(get_view_state):
            return None
        try:
            return np.array(get_view_state(), dtype=np.float64)
        except Exception as e:
            logger.warning("Could not read current view state: %s", e)
            return None

    def _end_run(self, job: CaptureJob, original_view: Optional[np.ndarray]):
        try:
            if original_view is not None:
                try:
                    self.display.set_view_state(original_view)
                except Exception as e:
                    logger.warning("Could not restore view state: %s", e)
            try:
                self._report(0, "")
            except Exception:
                logger.exception("Progress sink failed during reset")
        finally:
            self.lease.release()
            job._finish()


__all__ = ["CaptureJob", "CaptureController"]
