"""Timed, adaptively extending calibration session.

State machine:

    IDLE ──start()──▶ COLLECTING ──target reached──▶ PROCESSING ─┬─▶ COMPLETED
      ▲                   │    ▲                                 └─▶ FAILED
      │                   │    └── extend (live POOR, < max_extensions)
      └──cancel()/clear()─┘

    start() is legal from IDLE and FAILED only; COMPLETED must be
    cleared first. clear() returns to IDLE from any state.

Threading:
    add_sample() is called from the sensor callback thread; the timing
    loop runs on its own daemon thread and is the only place that mutates
    the target duration and extension count. One re-entrant lock guards
    buffers, state and timing. The loop waits on a threading.Event that
    doubles as its cancellation token, so cancel()/clear()/dispose() stop
    it within one tick period.

Progress:
    Every state change and tick produces a Progress snapshot. Snapshots
    are queued under the lock and delivered to subscribers after it is
    released, in emission order; a slow or failing subscriber never
    blocks sample ingestion. The latest snapshot is always available from
    latest_progress, so late consumers still see the terminal state.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, Mapping, Optional, Tuple, Union

import numpy as np

from motocal.calibration.config import SessionConfig
from motocal.calibration.errors import (
    CalibrationError,
    CalibrationFailure,
    DeviceUnstableError,
    FailureKind,
    InsufficientSamplesError,
)
from motocal.calibration.orientation import solve_orientation
from motocal.calibration.quality import score_quality
from motocal.calibration.result import CalibrationResult
from motocal.calibration.stability import StabilityClassifier, StabilityLevel
from motocal.calibration.statistics import SampleStatistics, compute_statistics
from motocal.sensors.types import RawSample, Vec3Like

logger = logging.getLogger(__name__)

PROCESSING_PERCENT = 95.0


class CalibrationState(Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = (CalibrationState.COMPLETED, CalibrationState.FAILED)
ACTIVE_STATES = (CalibrationState.COLLECTING, CalibrationState.PROCESSING)


@dataclass(frozen=True)
class Progress:
    """
    Snapshot published on every tick and state change.

    Attributes:
        state: Session state at emission time.
        percent: Collection progress 0-100 against the current target.
        message: Rider-facing status text.
        remaining_ms: Time left until the current target duration.
        stability_level: Live stability of the trailing window.
        can_extend: True if reaching the target now would extend collection.
    """

    state: CalibrationState
    percent: float
    message: str
    remaining_ms: int = 0
    stability_level: StabilityLevel = StabilityLevel.UNKNOWN
    can_extend: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


ProgressCallback = Callable[[Progress], None]


class ProgressChannel:
    """
    Bounded progress buffer usable as a session subscriber.

    When full, the oldest snapshot is dropped so the newest (and in
    particular the terminal one) is always retained.

    Example:
        >>> channel = ProgressChannel(maxlen=8)
        >>> unsubscribe = session.subscribe(channel)  # doctest: +SKIP
        >>> progress = channel.get(timeout=1.0)       # doctest: +SKIP
    """

    def __init__(self, maxlen: int = 32):
        if maxlen < 1:
            raise ValueError(f"maxlen must be at least 1, got {maxlen}")
        self._cond = threading.Condition()
        self._queue: Deque[Progress] = deque(maxlen=maxlen)
        self.dropped = 0

    def __call__(self, progress: Progress) -> None:
        with self._cond:
            if len(self._queue) == self._queue.maxlen:
                self.dropped += 1
            self._queue.append(progress)
            self._cond.notify_all()

    def get(self, timeout: Optional[float] = None) -> Optional[Progress]:
        """Pop the oldest buffered snapshot, waiting up to timeout seconds."""
        with self._cond:
            if not self._cond.wait_for(lambda: len(self._queue) > 0, timeout):
                return None
            return self._queue.popleft()

    def drain(self) -> List[Progress]:
        with self._cond:
            items = list(self._queue)
            self._queue.clear()
            return items


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


def _all_finite(stats: SampleStatistics) -> bool:
    return all(
        np.all(np.isfinite(v))
        for v in (
            stats.accel_mean, stats.accel_std,
            stats.gyro_mean, stats.gyro_std,
            stats.mag_mean, stats.mag_std,
        )
    )


class CalibrationSession:
    """
    One-shot mounting calibration with live stability feedback.

    Args:
        config: Default configuration used by start() when none is given.
        clock: Callable returning the current time in milliseconds.
               Default: monotonic clock.
        auto_tick: If True, start() launches the background timing loop.
                   If False, the host calls tick() itself (e.g. from its
                   own scheduler, or deterministically in tests).

    Example:
        >>> session = CalibrationSession(SessionConfig(duration_ms=2000))
        >>> session.start()
        True
        >>> # sensor thread: session.add_sample(accel, gyro, mag)
        >>> state = session.wait_until_finished(timeout=10.0)
        >>> result = session.result  # CalibrationResult or None
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        clock: Optional[Callable[[], int]] = None,
        auto_tick: bool = True,
    ):
        self.config = config or SessionConfig()
        self._clock = clock or _monotonic_ms
        self._auto_tick = auto_tick

        self._lock = threading.RLock()
        self._finished = threading.Condition(self._lock)
        self._emit_lock = threading.RLock()
        # Per-thread callback nesting depth, see _join
        self._dispatch = threading.local()
        self._outbox: Deque[Progress] = deque()
        self._subscribers: Tuple[ProgressCallback, ...] = ()

        self._classifier = StabilityClassifier(
            window=self.config.live_window,
            accel_threshold=self.config.stability_threshold,
        )
        self._state = CalibrationState.IDLE
        self._samples: List[RawSample] = []
        self._live_stability = StabilityLevel.UNKNOWN
        self._start_ms = 0
        self._started_at_ms = 0
        self._target_ms = 0
        self._extension_count = 0
        self._result: Optional[CalibrationResult] = None
        self._failure: Optional[CalibrationFailure] = None
        self._latest = Progress(CalibrationState.IDLE, 0.0, "Ready")

        self._stop_event: Optional[threading.Event] = None
        self._ticker: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(
        self,
        callback: ProgressCallback,
        replay: bool = True,
    ) -> Callable[[], None]:
        """
        Register a progress callback.

        A callback may call cancel() or clear(). The timing thread is then
        stopped without waiting for it to exit.

        Args:
            callback: Called with each Progress, outside the session lock.
            replay: Deliver the latest snapshot immediately.

        Returns:
            A function that removes the subscription.
        """
        with self._lock:
            self._subscribers = self._subscribers + (callback,)
            latest = self._latest

        if replay:
            with self._emit_lock:
                self._notify(callback, latest)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers = tuple(
                    cb for cb in self._subscribers if cb is not callback
                )

        return unsubscribe

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> CalibrationState:
        with self._lock:
            return self._state

    @property
    def result(self) -> Optional[CalibrationResult]:
        with self._lock:
            return self._result

    @property
    def failure(self) -> Optional[CalibrationFailure]:
        with self._lock:
            return self._failure

    @property
    def latest_progress(self) -> Progress:
        with self._lock:
            return self._latest

    @property
    def sample_count(self) -> int:
        with self._lock:
            return len(self._samples)

    @property
    def extension_count(self) -> int:
        with self._lock:
            return self._extension_count

    @property
    def target_duration_ms(self) -> int:
        with self._lock:
            return self._target_ms

    @property
    def live_stability(self) -> StabilityLevel:
        with self._lock:
            return self._live_stability

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(
        self,
        config: Union[SessionConfig, Mapping, None] = None,
    ) -> bool:
        """
        Begin collecting.

        Args:
            config: SessionConfig, or settings-store mapping, for this run.
                    Default: the session's config.

        Returns:
            True if collection started; False if a calibration is already
            running or completed (start is then a no-op).

        Raises:
            InvalidConfigurationError: If a settings mapping is invalid.
        """
        if isinstance(config, Mapping):
            config = SessionConfig.from_settings(config)

        with self._lock:
            if self._state not in (CalibrationState.IDLE, CalibrationState.FAILED):
                logger.debug("start() ignored: session is %s", self._state.value)
                return False

            if config is not None:
                self.config = config
            cfg = self.config
            self._classifier = StabilityClassifier(
                window=cfg.live_window,
                accel_threshold=cfg.stability_threshold,
            )

            self._reset_collection()
            self._failure = None
            self._state = CalibrationState.COLLECTING
            self._start_ms = self._clock()
            self._started_at_ms = int(time.time() * 1000)
            self._target_ms = cfg.duration_ms

            logger.debug(
                "Calibration started: duration=%d ms, min_samples=%d, threshold=%.2f",
                cfg.duration_ms, cfg.min_samples, cfg.stability_threshold,
            )
            self._queue_progress(self._collecting_progress(0))

            if self._auto_tick:
                self._start_ticker()

        self._flush()
        return True

    def add_sample(
        self,
        accel: Vec3Like,
        gyro: Vec3Like,
        mag: Vec3Like,
        timestamp_ms: Optional[int] = None,
    ) -> bool:
        """
        Push one combined sensor triple.

        The vectors are copied. Returns False (and drops the sample) unless
        the session is collecting.

        Raises:
            ValueError: If a vector is malformed or not finite.
        """
        if timestamp_ms is None:
            timestamp_ms = self._clock()
        sample = RawSample(accel=accel, gyro=gyro, mag=mag, timestamp_ms=timestamp_ms)
        return self.add_raw_sample(sample)

    def add_raw_sample(self, sample: RawSample) -> bool:
        with self._lock:
            if self._state is not CalibrationState.COLLECTING:
                return False

            self._samples.append(sample)
            self._live_stability = self._classifier.classify_window(self._samples)

            n = len(self._samples)
            if n % 10 == 0:
                logger.debug(
                    "Collected %d samples (live stability %s)",
                    n, self._live_stability.name,
                )
            return True

    def tick(self) -> Progress:
        """
        Run one iteration of the timing loop.

        Publishes a collecting snapshot, extends the target, or processes
        the collection, depending on elapsed time and live stability.

        Returns:
            The latest Progress after the iteration.
        """
        return self._tick(None)

    def cancel(self) -> bool:
        """
        Abort a running collection and return to IDLE.

        Idempotent: on an IDLE session this does nothing. COMPLETED and
        FAILED sessions are left untouched (use clear()).

        Returns:
            True if a running collection was cancelled.
        """
        with self._lock:
            if self._state not in ACTIVE_STATES:
                return False

            ticker = self._stop_ticker()
            self._reset_collection()
            self._state = CalibrationState.IDLE
            logger.info("Calibration cancelled")
            self._queue_progress(
                Progress(CalibrationState.IDLE, 0.0, "Calibration cancelled")
            )
            self._finished.notify_all()

        self._join(ticker)
        self._flush()
        return True

    def clear(self) -> None:
        """Drop any result or failure and return to IDLE."""
        with self._lock:
            ticker = self._stop_ticker()
            self._reset_collection()
            self._result = None
            self._failure = None
            self._state = CalibrationState.IDLE
            self._queue_progress(Progress(CalibrationState.IDLE, 0.0, "Ready"))
            self._finished.notify_all()

        self._join(ticker)
        self._flush()

    def dispose(self) -> None:
        """Stop the timing loop and drop all subscribers."""
        with self._lock:
            ticker = self._stop_ticker()
            self._subscribers = ()
            if self._state in ACTIVE_STATES:
                self._reset_collection()
                self._state = CalibrationState.IDLE
                self._finished.notify_all()
        self._join(ticker)

    def wait_until_finished(self, timeout: Optional[float] = None) -> CalibrationState:
        """
        Block until the session leaves COLLECTING/PROCESSING.

        Args:
            timeout: Seconds to wait. None waits indefinitely.

        Returns:
            The state when the wait ended (still COLLECTING on timeout).
        """
        with self._finished:
            self._finished.wait_for(
                lambda: self._state not in ACTIVE_STATES, timeout
            )
            return self._state

    # ------------------------------------------------------------------
    # Timing loop
    # ------------------------------------------------------------------

    def _start_ticker(self) -> None:
        stop = threading.Event()
        interval_s = self.config.tick_interval_ms / 1000.0
        thread = threading.Thread(
            target=self._run_ticker,
            args=(stop, interval_s),
            name="calibration-ticker",
            daemon=True,
        )
        self._stop_event = stop
        self._ticker = thread
        thread.start()

    def _run_ticker(self, stop: threading.Event, interval_s: float) -> None:
        while not stop.wait(interval_s):
            self._tick(stop)
        logger.debug("Calibration ticker stopped")

    def _stop_ticker(self) -> Optional[threading.Thread]:
        # Caller holds the lock; the thread is joined after releasing it.
        if self._stop_event is not None:
            self._stop_event.set()
        ticker = self._ticker
        self._stop_event = None
        self._ticker = None
        return ticker

    def _join(self, ticker: Optional[threading.Thread]) -> None:
        if ticker is None or ticker is threading.current_thread():
            return
        # Inside a subscriber this thread holds the emit lock, which the
        # ticker may be waiting for. Its stop event is already set, so it
        # exits on its own after the current tick.
        if getattr(self._dispatch, "depth", 0):
            return
        ticker.join(timeout=5.0)

    def _tick(self, stop: Optional[threading.Event]) -> Progress:
        with self._lock:
            if stop is not None and stop.is_set():
                return self._latest
            if self._state is not CalibrationState.COLLECTING:
                return self._latest

            cfg = self.config
            now = self._clock()
            elapsed = now - self._start_ms

            if elapsed < self._target_ms:
                self._queue_progress(self._collecting_progress(elapsed))
            elif (
                self._live_stability is StabilityLevel.POOR
                and self._extension_count < cfg.max_extensions
            ):
                self._extension_count += 1
                self._target_ms += cfg.extension_ms
                logger.info(
                    "Stability poor at %d ms, extending collection to %d ms (%d/%d)",
                    elapsed, self._target_ms, self._extension_count, cfg.max_extensions,
                )
                self._queue_progress(self._collecting_progress(elapsed))
            else:
                logger.debug("Collection finished after %d ms", elapsed)
                self._process(elapsed)

            latest = self._latest

        self._flush()
        return latest

    def _collecting_progress(self, elapsed_ms: int) -> Progress:
        target = self._target_ms
        remaining = max(target - elapsed_ms, 0)
        percent = min(max(elapsed_ms / target * 100.0, 0.0), 100.0)
        level = self._live_stability
        can_extend = (
            level is StabilityLevel.POOR
            and self._extension_count < self.config.max_extensions
        )

        seconds = remaining // 1000 + 1
        if level is StabilityLevel.BAD:
            message = f"Too much movement! Hold still... {seconds}s"
        elif level is StabilityLevel.POOR:
            message = (
                "Hold steadier, extending time..."
                if self._extension_count > 0 else f"Hold steadier... {seconds}s"
            )
        else:
            message = f"Hold still... {seconds}s"

        return Progress(
            state=CalibrationState.COLLECTING,
            percent=percent,
            message=message,
            remaining_ms=int(remaining),
            stability_level=level,
            can_extend=can_extend,
        )

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def _process(self, elapsed_ms: int) -> None:
        self._state = CalibrationState.PROCESSING
        self._stop_ticker()
        self._queue_progress(Progress(
            CalibrationState.PROCESSING,
            PROCESSING_PERCENT,
            "Processing...",
            0,
            self._live_stability,
        ))

        try:
            result = self._compute_result(elapsed_ms)
        except CalibrationError as e:
            self._fail(CalibrationFailure.from_error(e))
            return
        except (ValueError, ArithmeticError) as e:
            logger.exception("Calibration processing error")
            self._fail(CalibrationFailure(
                FailureKind.ORIENTATION_UNDETERMINED,
                f"Could not compute orientation: {e}",
            ))
            return

        self._result = result
        self._state = CalibrationState.COMPLETED
        self._reset_collection()
        level = result.quality.quality_level()
        logger.info(
            "Calibration complete: score=%.1f (%s), pitch=%.2f, roll=%.2f, azimuth=%.2f",
            result.quality.overall_score, level.value,
            result.pitch, result.roll, result.azimuth,
        )
        self._queue_progress(Progress(
            CalibrationState.COMPLETED,
            100.0,
            f"Calibration complete! Quality: {level.value}",
        ))
        self._finished.notify_all()

    def _compute_result(self, elapsed_ms: int) -> CalibrationResult:
        cfg = self.config
        n = len(self._samples)
        logger.debug("Processing calibration with %d samples", n)

        if n < cfg.min_samples:
            raise InsufficientSamplesError(
                f"Not enough samples collected ({n}/{cfg.min_samples})"
            )

        with np.errstate(over="ignore", invalid="ignore"):
            stats = compute_statistics(self._samples)
        if not _all_finite(stats):
            raise DeviceUnstableError("Sensor readings out of range")

        stable = self._classifier.is_stable(stats)
        logger.debug(
            "Stability check: accel_std=%s, gyro_std=%s, threshold=%.2f, stable=%s",
            stats.accel_std, stats.gyro_std, cfg.stability_threshold, stable,
        )
        if not stable:
            raise DeviceUnstableError("Device was moving during calibration")

        solution = solve_orientation(stats.accel_mean, stats.mag_mean)
        quality = score_quality(
            stats,
            stats.accel_mean,
            stats.mag_mean,
            cfg.stability_threshold,
            stable,
        )
        if not quality.is_acceptable:
            raise DeviceUnstableError(
                f"Calibration quality too low (score {quality.overall_score:.1f}, "
                f"gravity {quality.gravity_consistency:.1f})"
            )

        return CalibrationResult(
            reference_gravity=stats.accel_mean,
            reference_magnetic=stats.mag_mean,
            rotation_matrix=solution.rotation_matrix,
            quaternion=solution.quaternion,
            pitch=solution.pitch,
            roll=solution.roll,
            azimuth=solution.azimuth,
            gyro_bias=stats.gyro_mean,
            quality=quality,
            timestamp_ms=self._started_at_ms,
            duration_ms=int(elapsed_ms),
            sample_count=n,
        )

    def _fail(self, failure: CalibrationFailure) -> None:
        self._failure = failure
        self._state = CalibrationState.FAILED
        self._stop_ticker()
        self._reset_collection()
        logger.warning("Calibration failed (%s): %s", failure.kind.value, failure.reason)
        self._queue_progress(Progress(CalibrationState.FAILED, 0.0, failure.reason))
        self._finished.notify_all()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reset_collection(self) -> None:
        self._samples = []
        self._live_stability = StabilityLevel.UNKNOWN
        self._start_ms = 0
        self._target_ms = 0
        self._extension_count = 0

    def _queue_progress(self, progress: Progress) -> None:
        # Caller holds the lock, so the outbox order is the emission order.
        self._latest = progress
        self._outbox.append(progress)

    def _flush(self) -> None:
        with self._emit_lock:
            while self._outbox:
                try:
                    progress = self._outbox.popleft()
                except IndexError:
                    return
                for callback in self._subscribers:
                    self._notify(callback, progress)

    def _notify(self, callback: ProgressCallback, progress: Progress) -> None:
        depth = getattr(self._dispatch, "depth", 0)
        self._dispatch.depth = depth + 1
        try:
            callback(progress)
        except Exception:
            logger.exception("Progress subscriber raised; continuing")
        finally:
            self._dispatch.depth = depth
