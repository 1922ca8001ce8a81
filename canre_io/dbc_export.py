"""
DBC export of detected signals using cantools.

Each arbitration id with candidates becomes one message; each candidate one
signal with its byte order flag, signedness, scaling, observed range, unit
and (for enum signals with a table) value descriptions.
"""
from __future__ import annotations

import logging
import os
import re
from typing import AbstractSet, List, Mapping, Optional, Sequence

from cantools.database import Database
from cantools.database.can import Message, Signal
from cantools.database.conversion import BaseConversion
from cantools.database.errors import Error as CantoolsError

from canre.constants import CAN_FRAME_MAX_LENGTH, CAN_ID_MAX_STANDARD
from canre.exceptions import DbcExportError
from canre.models.signal_candidate import SignalCandidate, SignalType

logger = logging.getLogger(__name__)

_INVALID_NAME_CHARS = re.compile(r'[^A-Za-z0-9_]')


def dbc_name(name: str) -> str:
    """Make a DBC-safe identifier (letters, digits, underscore; no leading digit)."""
    cleaned = _INVALID_NAME_CHARS.sub('_', name)
    if not cleaned or cleaned[0].isdigit():
        cleaned = f"S_{cleaned}"
    return cleaned


def message_name(arbitration_id: int) -> str:
    return f"ID_{arbitration_id:X}"


def to_cantools_signal(candidate: SignalCandidate) -> Signal:
    choices = None
    if candidate.signal_type is SignalType.ENUM and candidate.value_table:
        choices = {int(raw): label for raw, label in sorted(candidate.value_table.items())}
    conversion = BaseConversion.factory(scale=candidate.factor, offset=candidate.offset,
                                        choices=choices, is_float=False)
    return Signal(
        name=dbc_name(candidate.name),
        start=candidate.start_bit,
        length=candidate.length,
        byte_order=candidate.byte_order.to_cantools(),
        is_signed=candidate.is_signed,
        conversion=conversion,
        minimum=candidate.minimum,
        maximum=candidate.maximum,
        unit=candidate.unit or None,
    )


def build_database(candidates_by_id: Mapping[int, Sequence[SignalCandidate]],
                   dlc_by_id: Optional[Mapping[int, int]] = None,
                   extended_ids: Optional[AbstractSet[int]] = None) -> Database:
    """Build a cantools Database from per-id candidate lists.

    Args:
        candidates_by_id: Arbitration id -> candidates (non-overlapping)
        dlc_by_id: Arbitration id -> declared payload length; defaults to 8
        extended_ids: Ids captured with 29-bit identifiers. Ids above 0x7FF
            are always extended.

    Raises:
        DbcExportError: If cantools rejects a message definition
    """
    dlc_by_id = dlc_by_id or {}
    extended_ids = extended_ids or set()
    messages: List[Message] = []
    for arbitration_id in sorted(candidates_by_id):
        candidates = sorted(candidates_by_id[arbitration_id], key=lambda c: c.start_bit)
        if not candidates:
            continue
        length = dlc_by_id.get(arbitration_id, CAN_FRAME_MAX_LENGTH)
        try:
            message = Message(
                frame_id=arbitration_id,
                name=message_name(arbitration_id),
                length=length,
                signals=[to_cantools_signal(c) for c in candidates],
                is_extended_frame=arbitration_id in extended_ids or arbitration_id > CAN_ID_MAX_STANDARD,
                is_fd=length > CAN_FRAME_MAX_LENGTH,
            )
        except CantoolsError as e:
            raise DbcExportError(f"Invalid message definition for 0x{arbitration_id:X}: {e}",
                                 arbitration_id=arbitration_id, original_error=e) from e
        messages.append(message)
        logger.debug(f"Message {message.name}: {len(candidates)} signals")

    return Database(messages=messages)


def export_dbc(candidates_by_id: Mapping[int, Sequence[SignalCandidate]],
               dlc_by_id: Optional[Mapping[int, int]], output_path: str,
               extended_ids: Optional[AbstractSet[int]] = None) -> str:
    """Write detected signals to a DBC file and return its path.

    Raises:
        DbcExportError: If the database cannot be built or written
    """
    database = build_database(candidates_by_id, dlc_by_id, extended_ids)
    try:
        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(database.as_dbc_string())
    except OSError as e:
        raise DbcExportError(f"Failed to write DBC file {output_path}: {e}", original_error=e) from e

    signal_count = sum(len(m.signals) for m in database.messages)
    logger.info(f"DBC file generated: {output_path} ({len(database.messages)} messages, {signal_count} signals)")
    return output_path
