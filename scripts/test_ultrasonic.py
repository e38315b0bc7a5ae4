#!/usr/bin/env python3
"""Manual check for the HC-SR04 ultrasonic distance sensor."""

from __future__ import annotations

import argparse
import sys
import time

from _paths import add_project_src_to_path

add_project_src_to_path()

from infomirror.config import get_settings
from infomirror.hardware.ultrasonic import UltrasonicSensor, UltrasonicUnavailable


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Trigger the ultrasonic sensor and print the measured distance in centimetres."
    )
    parser.add_argument("--trig", type=int, default=None, help="Trigger GPIO (BCM). Defaults to INFOMIRROR_ULTRASONIC_TRIG_PIN.")
    parser.add_argument("--echo", type=int, default=None, help="Echo GPIO (BCM). Defaults to INFOMIRROR_ULTRASONIC_ECHO_PIN.")
    parser.add_argument("--samples", type=int, default=5, help="How many readings to take (default: 5).")
    parser.add_argument("--interval", type=float, default=0.5, help="Seconds between readings (default: 0.5).")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    settings = get_settings()
    trig = args.trig if args.trig is not None else settings.ultrasonic_trig_pin
    echo = args.echo if args.echo is not None else settings.ultrasonic_echo_pin

    sensor = UltrasonicSensor(trig, echo)
    try:
        sensor.setup()
    except UltrasonicUnavailable as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    try:
        for sample in range(max(1, args.samples)):
            distance = sensor.measure()
            if distance is None:
                print(f"Sample {sample + 1}: no echo / out of range")
            else:
                print(f"Sample {sample + 1}: {distance:.1f} cm")
            if sample + 1 < args.samples:
                time.sleep(max(0.0, args.interval))
    except UltrasonicUnavailable as exc:
        print(f"ERROR: Failed to read ultrasonic sensor: {exc}", file=sys.stderr)
        return 1
    finally:
        sensor.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
