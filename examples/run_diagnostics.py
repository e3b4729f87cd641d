#!/usr/bin/env python3
"""
Example running the diagnostic probes against a Fingerbot.

Use this when a device does not react to the standard handshake. Each probe
tries a different packet layout; probing stops at the first one that works.
"""

import asyncio
import logging

from py_fingerbot_ble import BleakTransport, FingerbotConfig, FingerbotDevice

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Device credentials - replace with your actual values
DEVICE_ADDRESS = "AA:BB:CC:DD:EE:FF"
DEVICE_ID = "your-device-id"
DEVICE_LOCAL_KEY = "your-local-key"


async def main():
    """Main function running the probes."""

    print("=== Fingerbot Diagnostics ===\n")

    config = FingerbotConfig(DEVICE_ADDRESS, DEVICE_ID, DEVICE_LOCAL_KEY)
    device = FingerbotDevice(config, BleakTransport())

    try:
        results = await device.run_diagnostics()
    finally:
        device.close()

    print("\nResults:")
    for result in results:
        status = "OK" if result.ok else "FAILED"
        print(f"   [{status}] {result.name}")
        if result.error:
            print(f"      error: {result.error}")
        for response in result.responses:
            print(f"      response: {response.hex()}")

    if results and results[-1].ok:
        print(f"\nWorking protocol: {results[-1].name}")
    else:
        print("\nNo probe worked. Check the credentials and the device distance.")


if __name__ == "__main__":
    asyncio.run(main())
