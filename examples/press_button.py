#!/usr/bin/env python3
"""
Example demonstrating how to press a Fingerbot button.

This example shows:
- Setting up device credentials
- Storing them with the config manager
- Pressing the button once
- Handling the errors an operation can raise
"""

import asyncio
import logging

from py_fingerbot_ble import (
    BleakTransport,
    BusyError,
    DeviceNotFoundError,
    FingerbotConfig,
    FingerbotConfigManager,
    FingerbotDevice,
    FingerbotError,
)

# Enable debug logging to see every packet
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Device credentials - replace with your actual values
DEVICE_ADDRESS = "AA:BB:CC:DD:EE:FF"
DEVICE_ID = "your-device-id"
DEVICE_LOCAL_KEY = "your-local-key"

# How long the finger stays down, in seconds
PRESS_TIME = 1.5


async def main():
    """Main function demonstrating a single press."""

    print("=== Fingerbot Press Example ===\n")

    # Step 1: Store the device configuration
    print("1. Saving device configuration...")
    manager = FingerbotConfigManager()
    config = manager.add_device(
        FingerbotConfig(
            address=DEVICE_ADDRESS,
            device_id=DEVICE_ID,
            local_key=DEVICE_LOCAL_KEY,
            name="My Fingerbot",
            press_time=PRESS_TIME,
        )
    )
    print(f"   Saved: {config}")

    # Step 2: Create the device on top of the bleak transport
    print("\n2. Creating device...")
    device = FingerbotDevice(config, BleakTransport())

    # Step 3: Press
    print("3. Pressing the button...")
    try:
        await device.press()
        print("   Button pressed and released")
    except DeviceNotFoundError as e:
        print(f"   {e}")
        print("   Make sure the device is powered on and in range")
    except BusyError:
        print("   Another operation is still running")
    except FingerbotError as e:
        print(f"   Press failed: {e}")
    finally:
        device.close()

    print("\n=== Example Complete ===")


if __name__ == "__main__":
    # Run the async main function
    asyncio.run(main())
