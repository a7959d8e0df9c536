"""
Shared fixtures: a scriptable fake `adb` executable.

The fake records every invocation (one line of arguments per call) in
calls.log next to the script, so tests can assert on the exact command
sequence.
"""

import time
from pathlib import Path
from typing import Callable

import pytest


FAKE_ADB_TEMPLATE = """#!/bin/bash
DIR="@DIR@"
echo "$*" >> "$DIR/calls.log"

DEVICE=""
if [ "$1" = "-s" ]; then
  DEVICE="$2"
  shift 2
fi

case "$1" in
  devices)
    COUNT=$(cat "$DIR/devices.count" 2>/dev/null || echo 0)
    COUNT=$((COUNT + 1))
    echo "$COUNT" > "$DIR/devices.count"
    if [ "$COUNT" -le @DEVICES_FAILURES@ ]; then
      echo "error: protocol fault (couldn't read status): Connection reset by peer" >&2
      exit 1
    fi
    cat "$DIR/devices.txt"
    exit 0
    ;;
  kill-server)
    exit 0
    ;;
  shell)
    cat "$DIR/props-$DEVICE.txt" 2>/dev/null
    exit 0
    ;;
  logcat)
    if [ "$2" = "-c" ]; then
      exit 0
    fi
    cat "$DIR/logcat.txt" 2>/dev/null
    echo "- waiting for more output" >&2
    @LOGCAT_TAIL@
    ;;
esac
exit 0
"""


class FakeAdb:
    """Handle on a generated fake adb script"""

    def __init__(self, directory: Path):
        self.directory = directory
        self.path = directory / "adb"

    @property
    def calls(self) -> list[str]:
        """Argument strings of every invocation so far"""
        log = self.directory / "calls.log"
        if not log.exists():
            return []
        return log.read_text().splitlines()


def write_fake_adb(
    directory: Path,
    devices: dict[str, dict[str, str]] | None = None,
    extra_device_lines: tuple[str, ...] = (),
    devices_failures: int = 0,
    logcat_lines: tuple[str, ...] = (),
    logcat_keeps_running: bool = True,
) -> FakeAdb:
    """
    Create a fake adb script.

    Args:
        directory: Where to write the script and its data files
        devices: device id -> getprop properties
        extra_device_lines: Additional raw `adb devices` lines
        devices_failures: Number of initial `adb devices` calls that exit 1
        logcat_lines: Lines printed by `adb logcat`
        logcat_keeps_running: Keep `adb logcat` alive after printing
    """
    directory.mkdir(parents=True, exist_ok=True)
    devices = devices if devices is not None else {}

    listing = ["List of devices attached"]
    listing += [f"{device_id}\tdevice" for device_id in devices]
    listing += list(extra_device_lines)
    (directory / "devices.txt").write_text("\n".join(listing) + "\n\n")

    for device_id, props in devices.items():
        lines = [f"[{key}]: [{value}]" for key, value in props.items()]
        (directory / f"props-{device_id}.txt").write_text("\n".join(lines) + "\n")

    (directory / "logcat.txt").write_text("".join(f"{line}\n" for line in logcat_lines))

    script = (
        FAKE_ADB_TEMPLATE
        .replace("@DIR@", str(directory))
        .replace("@DEVICES_FAILURES@", str(devices_failures))
        .replace("@LOGCAT_TAIL@", "exec sleep 30" if logcat_keeps_running else "exit 0")
    )
    fake = FakeAdb(directory)
    fake.path.write_text(script)
    fake.path.chmod(0o755)
    return fake


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll `predicate` until it is true or `timeout` seconds pass"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


PIXEL_PROPS = {
    "ro.product.manufacturer": "Google",
    "ro.product.model": "Pixel 7",
    "ro.build.version.release": "14",
    "ro.build.version.sdk": "34",
}


@pytest.fixture
def fake_adb_factory(tmp_path) -> Callable[..., FakeAdb]:
    """Build fake adb scripts inside a fresh temporary directory"""
    counter = iter(range(1000))

    def factory(**kwargs) -> FakeAdb:
        return write_fake_adb(tmp_path / f"adb{next(counter)}", **kwargs)

    return factory


@pytest.fixture
def single_device_adb(fake_adb_factory) -> FakeAdb:
    """Fake adb with one healthy emulator"""
    return fake_adb_factory(devices={"emulator-5554": PIXEL_PROPS})
