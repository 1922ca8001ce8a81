"""
CAN Frame model for representing captured CAN bus frames.
"""
from dataclasses import dataclass
from typing import Optional

from canre.constants import CAN_ID_MAX, CAN_FD_FRAME_MAX_LENGTH


@dataclass(frozen=True)
class Frame:
    """Represents a captured CAN frame. Immutable once ingested.

    Attributes:
        arbitration_id: CAN identifier (0-0x1FFFFFFF for extended, 0-0x7FF for standard)
        timestamp: Capture time in seconds (non-decreasing within a capture)
        data: Payload bytes (up to 64 bytes for CAN FD)
        dlc: Declared payload length in bytes (defaults to len(data))
        channel: Capture channel name (optional)
        is_extended: Frame uses a 29-bit identifier
        is_remote: Remote transmission request frame
        is_fd: CAN FD frame
    """
    arbitration_id: int
    timestamp: float
    data: bytes
    dlc: Optional[int] = None
    channel: Optional[str] = None
    is_extended: bool = False
    is_remote: bool = False
    is_fd: bool = False

    def __post_init__(self):
        """Validate frame data after initialization."""
        if not isinstance(self.data, bytes):
            raise TypeError(f"data must be bytes, got {type(self.data)}")
        if len(self.data) > CAN_FD_FRAME_MAX_LENGTH:
            raise ValueError(f"CAN data length must be <= {CAN_FD_FRAME_MAX_LENGTH} bytes, got {len(self.data)}")
        if not (0 <= self.arbitration_id <= CAN_ID_MAX):
            raise ValueError(f"CAN ID out of range: 0x{self.arbitration_id:X}")
        if self.dlc is None:
            object.__setattr__(self, 'dlc', len(self.data))
        elif not (0 <= self.dlc <= CAN_FD_FRAME_MAX_LENGTH):
            raise ValueError(f"DLC out of range: {self.dlc}")

    @property
    def data_hex(self) -> str:
        """Return frame data as hexadecimal string."""
        return self.data.hex()

    def padded_data(self, length: int) -> bytes:
        """Return the payload zero-padded (or truncated) to ``length`` bytes."""
        if len(self.data) >= length:
            return self.data[:length]
        return self.data + b'\x00' * (length - len(self.data))

    def __str__(self) -> str:
        return f"{self.timestamp:.6f} {self.channel or '-'} {self.arbitration_id:X} [{self.dlc}] {self.data.hex(' ')}"
