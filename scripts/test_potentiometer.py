#!/usr/bin/env python3
"""Manual check for the brightness potentiometer behind the configured ADC."""

from __future__ import annotations

import argparse
import sys
import time

from _paths import add_project_src_to_path

add_project_src_to_path()

from infomirror.config import ADCType, get_settings
from infomirror.hardware.adc import ADCUnavailable, ArduinoBridge, read_mcp3008, read_mcp3421
from _args import parse_int_sequence


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Read the potentiometer and print it as a percentage.")
    parser.add_argument(
        "--adc",
        choices=[ADCType.MCP3008.value, ADCType.MCP3421.value, ADCType.ARDUINO.value],
        default=None,
        help="ADC to read. Defaults to INFOMIRROR_ADC_TYPE.",
    )
    parser.add_argument(
        "--address",
        nargs=1,
        default=None,
        help="MCP3421 I2C address, decimal or hex. Defaults to INFOMIRROR_MCP3421_ADDRESS.",
    )
    parser.add_argument("--samples", type=int, default=5, help="How many readings to take (default: 5).")
    parser.add_argument("--interval", type=float, default=1.0, help="Seconds between readings (default: 1.0).")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    settings = get_settings()
    adc = ADCType(args.adc) if args.adc else settings.adc_type
    address = settings.mcp3421_address
    if args.address:
        try:
            address = parse_int_sequence(args.address, "I2C address")[0]
        except argparse.ArgumentTypeError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 2

    bridge = None
    if adc is ADCType.ARDUINO:
        bridge = ArduinoBridge(settings.arduino_ports, settings.arduino_baud_rate)
        try:
            bridge.open(ready_timeout=settings.arduino_ready_timeout_seconds)
        except ADCUnavailable as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 2
        print(f"Arduino connected on {bridge.port_name}")
    elif adc not in (ADCType.MCP3008, ADCType.MCP3421):
        print(f"ERROR: ADC type {adc.value!r} has no reader to test.", file=sys.stderr)
        return 2

    try:
        for sample in range(max(1, args.samples)):
            if bridge is not None:
                percent = bridge.last_value
            elif adc is ADCType.MCP3008:
                percent = read_mcp3008(settings.adc_channel, settings.spi_device) * 100
            else:
                percent = read_mcp3421(settings.i2c_bus_id, address) * 100
            print(f"Sample {sample + 1}: {percent:.0f}%")
            if sample + 1 < args.samples:
                time.sleep(max(0.0, args.interval))
    except ADCUnavailable as exc:
        print(f"ERROR: Failed to read ADC: {exc}", file=sys.stderr)
        return 1
    finally:
        if bridge is not None:
            bridge.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
