#!/usr/bin/env python3
"""
Example demonstrating battery monitoring through the switch accessory.

This example shows:
- Creating an accessory from a camelCase configuration mapping
- Reading the cached battery level
- Waiting for the background refresh
- Listening for switch state changes
"""

import asyncio
import logging

from py_fingerbot_ble import FingerbotAccessory, FingerbotError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Accessory configuration in the legacy plugin format
# (pressTime and scanDuration in milliseconds, batteryCheckInterval in minutes)
ACCESSORY_CONFIG = {
    "name": "Coffee Machine",
    "address": "AA:BB:CC:DD:EE:FF",
    "deviceId": "your-device-id",
    "localKey": "your-local-key",
    "pressTime": 3000,
    "scanDuration": 10000,
    "scanRetries": 3,
    "scanRetryCooldown": 2000,
    "batteryCheckInterval": 60,
}


def on_state_change(is_on: bool):
    """Handle switch state changes."""
    print(f">>> Switch is now {'ON' if is_on else 'OFF'}")


async def main():
    """Main function demonstrating battery status."""

    print("=== Fingerbot Battery Status Example ===\n")

    accessory = FingerbotAccessory(ACCESSORY_CONFIG)
    accessory.register_callback(on_state_change)

    # The first read returns the cached value and starts a refresh
    print("1. Reading cached battery level...")
    print(f"   Battery: {accessory.battery_level}%")

    print("\n2. Waiting for the background refresh...")
    await accessory.device.battery.wait_for_refresh()
    print(f"   Battery: {accessory.battery_level}%")

    print("\n3. Pressing via the switch...")
    try:
        await accessory.set_on(True)
        # Give the switch time to turn itself off again
        await asyncio.sleep(accessory.device.config.press_time + 0.5)
    except FingerbotError as e:
        print(f"   Press failed: {e}")
    finally:
        accessory.close()

    print("\n=== Example Complete ===")


if __name__ == "__main__":
    asyncio.run(main())
