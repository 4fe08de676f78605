"""
Example: Mounting-Orientation Calibration

Simulates a phone resting on a handlebar mount and runs a complete
CalibrationSession over the synthetic stream:
    - Samples arrive at 50 Hz through SampleLatch, as from the sensor platform
    - The session is ticked every 100 ms and reports live stability
    - Poor stability extends collection, up to max_extensions times
    - The result is printed together with its log header

Run from repository root:
    python demos/example_mount_calibration.py
    python demos/example_mount_calibration.py --shake 1.4
    python demos/example_mount_calibration.py --realtime

With --realtime the session's own background loop drives the timing and
samples are fed at wall-clock pace; otherwise a simulated clock is used
so the run completes instantly.
"""

import argparse
import logging
import time
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from tqdm import tqdm

from motocal.calibration import (
    CalibrationSession,
    CalibrationState,
    ProgressChannel,
    SessionConfig,
    no_calibration_header,
)
from motocal.sensors import RawSample, SampleLatch
from motocal.sim import generate_mounted_samples

RATE_HZ = 50.0


class SimulatedClock:
    """Millisecond clock advanced explicitly by the demo loop."""

    def __init__(self):
        self.now_ms = 0

    def __call__(self) -> int:
        return self.now_ms


def build_stream(args, n):
    rng = np.random.default_rng(args.seed)
    samples = generate_mounted_samples(
        np.radians(args.roll),
        np.radians(args.pitch),
        np.radians(args.yaw),
        n=n,
        rate_hz=RATE_HZ,
        accel_noise=0.02,
        gyro_noise=0.002,
        mag_noise=0.3,
        gyro_bias=(0.01, -0.005, 0.002),
        rng=rng,
    )
    if args.shake > 0:
        # Alternating sway of the handlebar on the longitudinal axis
        for k in range(0, n, 2):
            s = samples[k]
            samples[k] = RawSample(
                accel=s.accel + np.array([args.shake, 0.0, args.shake]),
                gyro=s.gyro,
                mag=s.mag,
                timestamp_ms=s.timestamp_ms,
            )
    return samples


def run_simulated(session, clock, samples):
    """Feed samples against a simulated clock, ticking every 100 ms."""
    latch = SampleLatch()
    tick_ms = session.config.tick_interval_ms
    period_ms = 1000.0 / RATE_HZ
    next_tick = tick_ms

    session.start()
    for s in tqdm(samples, desc="Collecting", unit="sample"):
        clock.now_ms = s.timestamp_ms
        latch.on_accel(s.accel)
        latch.on_gyro(s.gyro)
        sample = latch.on_mag(s.mag, s.timestamp_ms)
        if sample is not None:
            session.add_raw_sample(sample)
        while clock.now_ms + period_ms >= next_tick:
            clock.now_ms = next_tick
            session.tick()
            next_tick += tick_ms
        if session.state is not CalibrationState.COLLECTING:
            break


def run_realtime(session, samples):
    """Feed samples at wall-clock pace while the session ticks itself."""
    period_s = 1.0 / RATE_HZ
    session.start()
    for s in tqdm(samples, desc="Collecting", unit="sample"):
        if not session.add_raw_sample(s):
            break
        time.sleep(period_s)
    session.wait_until_finished(timeout=5.0)


def plot_session(samples, progress, args):
    t = np.array([s.timestamp_ms for s in samples]) / 1000.0
    accel = np.array([s.accel for s in samples])
    gyro = np.array([s.gyro for s in samples])

    fig, axes = plt.subplots(3, 1, figsize=(12, 10), sharex=False)

    ax = axes[0]
    for i, label in enumerate(["x", "y", "z"]):
        ax.plot(t, accel[:, i], linewidth=1, label=f"accel {label}")
    ax.set_ylabel("Accel [m/s²]", fontsize=12)
    ax.set_title("Raw Accelerometer During Calibration", fontsize=12)
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)

    ax = axes[1]
    for i, label in enumerate(["x", "y", "z"]):
        ax.plot(t, gyro[:, i], linewidth=1, label=f"gyro {label}")
    ax.set_ylabel("Gyro [rad/s]", fontsize=12)
    ax.set_title("Raw Gyroscope During Calibration", fontsize=12)
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)

    ax = axes[2]
    collecting = [p for p in progress if p.state is CalibrationState.COLLECTING]
    ax.step(range(len(collecting)), [p.percent for p in collecting], "b-", where="post",
            label="percent")
    ax2 = ax.twinx()
    ax2.step(range(len(collecting)), [int(p.stability_level) for p in collecting], "r-",
             where="post", label="stability level")
    ax2.set_yticks([0, 1, 2, 3, 4])
    ax2.set_yticklabels(["UNKNOWN", "EXCELLENT", "GOOD", "POOR", "BAD"])
    ax.set_xlabel("Progress update", fontsize=12)
    ax.set_ylabel("Progress [%]", fontsize=12)
    ax.set_title("Progress and Live Stability", fontsize=12)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    figs_dir = Path("demos/figs")
    figs_dir.mkdir(parents=True, exist_ok=True)
    output_file = figs_dir / "mount_calibration.png"
    plt.savefig(output_file, dpi=150, bbox_inches="tight")
    print(f"Plot saved: {output_file}")

    if not args.no_show:
        plt.show()


def main():
    """Run the mounting calibration example."""
    parser = argparse.ArgumentParser(
        description="Mounting-orientation calibration on a simulated handlebar mount"
    )
    parser.add_argument("--roll", type=float, default=8.0, help="Mount roll [deg]")
    parser.add_argument("--pitch", type=float, default=-25.0, help="Mount pitch [deg]")
    parser.add_argument("--yaw", type=float, default=40.0, help="Mount yaw [deg]")
    parser.add_argument(
        "--shake", type=float, default=0.0,
        help="Alternating accel disturbance [m/s²]; ~1.4 triggers extensions"
    )
    parser.add_argument("--duration-ms", type=int, default=3000, help="Base duration")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument(
        "--realtime", action="store_true",
        help="Use the session's background loop and wall-clock pacing"
    )
    parser.add_argument("--no-show", action="store_true", help="Do not open plot windows")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = SessionConfig(duration_ms=args.duration_ms)
    n = int(config.max_duration_ms / 1000.0 * RATE_HZ) + 10
    samples = build_stream(args, n)

    print("\n" + "=" * 70)
    print("MOUNTING-ORIENTATION CALIBRATION")
    print("=" * 70)
    print(f"\nTrue mount: roll={args.roll:.1f} deg, pitch={args.pitch:.1f} deg, "
          f"yaw={args.yaw:.1f} deg")
    print(f"Duration: {config.duration_ms} ms (max {config.max_duration_ms} ms), "
          f"min samples: {config.min_samples}")

    channel = ProgressChannel(maxlen=256)
    if args.realtime:
        session = CalibrationSession(config)
        session.subscribe(channel, replay=False)
        run_realtime(session, samples)
    else:
        clock = SimulatedClock()
        session = CalibrationSession(config, clock=clock, auto_tick=False)
        session.subscribe(channel, replay=False)
        run_simulated(session, clock, samples)

    progress = channel.drain()
    session.dispose()

    print("\n" + "=" * 70)
    print("RESULT")
    print("=" * 70)
    print(f"Final state: {session.state.value}")
    print(f"Progress updates received: {len(progress)} (dropped {channel.dropped})")

    result = session.result
    if result is not None:
        print(f"\nPitch:   {result.pitch:8.3f} deg")
        print(f"Roll:    {result.roll:8.3f} deg")
        print(f"Azimuth: {result.azimuth:8.3f} deg")
        print(f"Gyro bias: {result.gyro_bias}")
        print(f"Quality: {result.quality.overall_score:.1f} "
              f"({result.quality.quality_level().value})")
        print(f"Samples: {result.sample_count}, duration: {result.duration_ms} ms")
        print("\nLog header:")
        print(result.to_header())
    elif session.failure is not None:
        print(f"\nFailed ({session.failure.kind.value}): {session.failure.reason}")
        print("\nLog header:")
        print(session.failure.to_header())
    else:
        print("\nNo calibration performed.")
        print(no_calibration_header())

    plot_session(samples, progress, args)

    print("\n" + "=" * 70)
    print("EXAMPLE COMPLETED")
    print("=" * 70)


if __name__ == "__main__":
    main()
