"""
Time-series storage for frames grouped by arbitration id.

Each ArbitrationGroup owns the ordered frames of one id and derives typed
columnar views on demand: a zero-padded uint8 byte matrix (one column per
payload offset) and a float64 timestamp vector. The views are built once and
cached until the next append.
"""
import logging
from typing import Dict, Iterable, List, Optional

import numpy as np

from canre.models.can_frame import Frame
from canre.models.j1979_parameter import J1979Parameter, get_parameter, is_j1979_id

logger = logging.getLogger(__name__)


class ArbitrationGroup:
    """Ordered frames sharing one arbitration id, plus derived time series.

    Attributes:
        arbitration_id: CAN identifier
        frames: Frames in ingestion order
    """

    def __init__(self, arbitration_id: int):
        self.arbitration_id = arbitration_id
        self.frames: List[Frame] = []
        self._dlc = 0
        self._is_extended = False
        self._byte_matrix: Optional[np.ndarray] = None
        self._timestamps: Optional[np.ndarray] = None

    @property
    def name(self) -> str:
        return f"ID_{self.arbitration_id:X}"

    @property
    def dlc(self) -> int:
        """Largest declared length seen for this id."""
        return self._dlc

    @property
    def is_extended(self) -> bool:
        """True if any frame of this id was captured with a 29-bit identifier."""
        return self._is_extended

    @property
    def count(self) -> int:
        return len(self.frames)

    def __len__(self) -> int:
        return len(self.frames)

    def append(self, frame: Frame) -> None:
        """Append a frame and invalidate the cached columnar views.

        Raises:
            ValueError: If the frame belongs to another arbitration id
        """
        if frame.arbitration_id != self.arbitration_id:
            raise ValueError(
                f"Frame 0x{frame.arbitration_id:X} does not belong to group 0x{self.arbitration_id:X}")
        self.frames.append(frame)
        self._dlc = max(self._dlc, frame.dlc, len(frame.data))
        self._is_extended = self._is_extended or frame.is_extended
        self._byte_matrix = None
        self._timestamps = None

    def byte_matrix(self) -> np.ndarray:
        """Return a (frame count, DLC) uint8 matrix, missing bytes zero-padded."""
        if self._byte_matrix is None:
            width = self._dlc
            matrix = np.zeros((len(self.frames), width), dtype=np.uint8)
            for row, frame in enumerate(self.frames):
                data = frame.data[:width]
                if data:
                    matrix[row, :len(data)] = np.frombuffer(data, dtype=np.uint8)
            self._byte_matrix = matrix
        return self._byte_matrix

    def byte_series(self, byte_index: int) -> np.ndarray:
        """Values of one payload offset across all frames (length == frame count).

        Offsets at or beyond the DLC read as zeros.
        """
        if byte_index < 0:
            raise IndexError(f"Byte index must be non-negative, got {byte_index}")
        if byte_index >= self._dlc:
            return np.zeros(len(self.frames), dtype=np.uint8)
        return self.byte_matrix()[:, byte_index]

    def timestamps(self) -> np.ndarray:
        if self._timestamps is None:
            self._timestamps = np.fromiter((f.timestamp for f in self.frames), dtype=np.float64,
                                           count=len(self.frames))
        return self._timestamps

    def sampled(self, sample_limit: int) -> 'ArbitrationGroup':
        """Return a group holding at most ``sample_limit`` evenly strided frames."""
        if len(self.frames) <= sample_limit:
            return self
        step = len(self.frames) // sample_limit
        subset = ArbitrationGroup(self.arbitration_id)
        for frame in self.frames[::step][:sample_limit]:
            subset.append(frame)
        return subset

    @property
    def is_j1979(self) -> bool:
        return is_j1979_id(self.arbitration_id)

    @property
    def j1979_parameter(self) -> Optional[J1979Parameter]:
        return get_parameter(self.arbitration_id)

    def __repr__(self) -> str:
        return f"ArbitrationGroup({self.name}, frames={len(self.frames)}, dlc={self._dlc})"


class TimeSeriesStore:
    """Owned map of arbitration id -> ArbitrationGroup.

    The store is held by the aggregation stage and passed by reference into
    later stages; nothing registers groups globally.
    """

    def __init__(self):
        self._groups: Dict[int, ArbitrationGroup] = {}
        self.total_frames = 0

    def add_frame(self, frame: Frame) -> ArbitrationGroup:
        group = self._groups.get(frame.arbitration_id)
        if group is None:
            group = ArbitrationGroup(frame.arbitration_id)
            self._groups[frame.arbitration_id] = group
            logger.debug(f"Created new group {group.name}")
        group.append(frame)
        self.total_frames += 1
        return group

    def add_frames(self, frames: Iterable[Frame]) -> int:
        """Append frames in order. Returns the number of frames added."""
        added = 0
        for frame in frames:
            self.add_frame(frame)
            added += 1
        return added

    def get(self, arbitration_id: int) -> Optional[ArbitrationGroup]:
        return self._groups.get(arbitration_id)

    def __getitem__(self, arbitration_id: int) -> ArbitrationGroup:
        return self._groups[arbitration_id]

    def __contains__(self, arbitration_id: int) -> bool:
        return arbitration_id in self._groups

    def __len__(self) -> int:
        return len(self._groups)

    def ids(self) -> List[int]:
        """Arbitration ids in ascending order."""
        return sorted(self._groups)

    def groups(self) -> List[ArbitrationGroup]:
        """Groups ordered by ascending arbitration id."""
        return [self._groups[i] for i in self.ids()]

    def most_frequent(self, count: int = 20) -> List[ArbitrationGroup]:
        return sorted(self._groups.values(), key=lambda g: len(g), reverse=True)[:count]

    def time_span(self) -> float:
        """Span between the earliest and latest timestamp across all groups."""
        if not self._groups:
            return 0.0
        firsts = [g.frames[0].timestamp for g in self._groups.values()]
        lasts = [g.frames[-1].timestamp for g in self._groups.values()]
        return max(lasts) - min(firsts)
