"""
LOGCAT Monitor adb Command Lines

Argument lists for every adb invocation the monitor makes, plus parsing of
`adb devices` output lines.
"""

from __future__ import annotations


# Tag used by the "only Unity" prefilter
UNITY_TAG = "Unity"

# Trailing state token of a usable device in `adb devices` output
DEVICE_STATE = "device"


def device_selector(device_id: str | None) -> list[str]:
    """`-s <id>` when a device is given, nothing otherwise"""
    return ["-s", device_id] if device_id else []


def clear_log_args(device_id: str | None = None) -> list[str]:
    """[-s <id>] logcat -c"""
    return [*device_selector(device_id), "logcat", "-c"]


def stream_log_args(device_id: str | None = None, only_unity: bool = False) -> list[str]:
    """[-s <id>] logcat -v time [-s Unity]"""
    args = [*device_selector(device_id), "logcat", "-v", "time"]
    if only_unity:
        args += ["-s", UNITY_TAG]
    return args


def list_devices_args() -> list[str]:
    return ["devices"]


def getprop_args(device_id: str) -> list[str]:
    """-s <id> shell getprop"""
    return ["-s", device_id, "shell", "getprop"]


def kill_server_args() -> list[str]:
    return ["kill-server"]


def parse_device_line(line: str) -> str | None:
    """
    Extract the device id from one `adb devices` line.

    Only lines whose last token is the literal state `device` are accepted;
    "offline", "unauthorized" and the "List of devices attached" header are
    rejected.

    Args:
        line: Output line, e.g. "emulator-5554\\tdevice"

    Returns:
        Device id (text before the first tab), or None
    """
    tokens = line.split()
    if not tokens or tokens[-1] != DEVICE_STATE:
        return None

    if "\t" in line:
        device_id = line[:line.index("\t")].strip()
    else:
        device_id = tokens[0]

    if not device_id or device_id == DEVICE_STATE:
        return None
    return device_id
