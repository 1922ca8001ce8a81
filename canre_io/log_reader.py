"""
Capture file reader built on python-can's LogReader.

Supported formats are those python-can reads by extension: CSV, ASC, BLF,
candump .log and PCAN .trc. Frames are returned in file order; error frames
are skipped.
"""
from __future__ import annotations

import logging
import os
from typing import Iterator, List

import can

from canre.exceptions import LogReadError
from canre.models.can_frame import Frame

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ('.csv', '.asc', '.blf', '.log', '.trc')


def message_to_frame(msg: can.Message) -> Frame:
    """Convert a python-can Message to a core Frame."""
    return Frame(
        arbitration_id=msg.arbitration_id,
        timestamp=float(msg.timestamp),
        data=bytes(msg.data or b''),
        dlc=msg.dlc,
        channel=None if msg.channel is None else str(msg.channel),
        is_extended=bool(msg.is_extended_id),
        is_remote=bool(msg.is_remote_frame),
        is_fd=bool(msg.is_fd),
    )


def iter_capture(path: str) -> Iterator[Frame]:
    """Yield frames from a capture file.

    Raises:
        LogReadError: If the file is missing, has an unsupported extension or
            cannot be parsed
    """
    if not os.path.isfile(path):
        raise LogReadError(f"File not found: {path}", path=path)
    ext = os.path.splitext(path)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise LogReadError(f"Unsupported capture format '{ext}' (supported: {', '.join(SUPPORTED_EXTENSIONS)})",
                           path=path)

    skipped = 0
    try:
        with can.LogReader(path) as reader:
            for msg in reader:
                if msg.is_error_frame:
                    skipped += 1
                    continue
                try:
                    frame = message_to_frame(msg)
                except (TypeError, ValueError) as e:
                    skipped += 1
                    logger.warning(f"Skipping malformed frame in {path}: {e}")
                    continue
                yield frame
    except Exception as e:
        # python-can readers raise format-specific errors (BLFParseError, struct.error, ...)
        logger.debug(f"Parser failure in {path}", exc_info=True)
        raise LogReadError(f"Failed to read capture {path}: {e}", path=path, original_error=e) from e

    if skipped:
        logger.info(f"Skipped {skipped} error or malformed frames in {path}")


def read_capture(path: str) -> List[Frame]:
    """Read every frame of a capture file into a list (file order)."""
    frames = list(iter_capture(path))
    logger.info(f"Loaded {len(frames)} frames from {path}")
    return frames


def find_captures(folder: str) -> List[str]:
    """Capture files directly inside ``folder``, sorted by name.

    Raises:
        LogReadError: If the folder does not exist
    """
    if not os.path.isdir(folder):
        raise LogReadError(f"Folder not found: {folder}", path=folder)
    return sorted(
        os.path.join(folder, name) for name in os.listdir(folder)
        if os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS
        and os.path.isfile(os.path.join(folder, name))
    )
