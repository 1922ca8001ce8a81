"""
SAE J1979 (OBD-II) parameters used to flag well-known arbitration ids.
"""
from dataclasses import dataclass
from typing import Dict, Optional

from canre.constants import J1979_ID_MIN, J1979_ID_MAX


@dataclass(frozen=True)
class J1979Parameter:
    """A standard OBD-II parameter carried on a fixed arbitration id."""
    arbitration_id: int
    name: str
    description: str
    unit: str = ''
    factor: float = 1.0
    offset: float = 0.0
    byte_position: int = 0
    length: int = 1


STANDARD_PARAMETERS: Dict[int, J1979Parameter] = {
    # Mode 01 PIDs
    0x201: J1979Parameter(0x201, 'EngineRPM', 'Engine RPM', 'RPM', 0.25, 0.0, 0, 2),
    0x203: J1979Parameter(0x203, 'VehicleSpeed', 'Vehicle Speed', 'km/h', 1.0, 0.0, 0, 1),
    0x205: J1979Parameter(0x205, 'EngineCoolantTemp', 'Engine Coolant Temperature', 'degC', 1.0, -40.0, 0, 1),
    0x20B: J1979Parameter(0x20B, 'IntakeManifoldPressure', 'Intake Manifold Pressure', 'kPa', 1.0, 0.0, 0, 1),
    0x20C: J1979Parameter(0x20C, 'EngineLoad', 'Engine Load', '%', 100.0 / 255.0, 0.0, 0, 1),
    0x210: J1979Parameter(0x210, 'MAFAirFlowRate', 'MAF Air Flow Rate', 'g/s', 0.01, 0.0, 0, 2),
    # Mode 09 PIDs
    0x901: J1979Parameter(0x901, 'VIN', 'Vehicle Identification Number', 'string', 1.0, 0.0, 0, 17),
    0x902: J1979Parameter(0x902, 'CalibrationID', 'Calibration ID', 'string', 1.0, 0.0, 0, 16),
}


def is_j1979_id(arbitration_id: int) -> bool:
    """Return True for diagnostic request/response ids or ids with a known parameter."""
    return J1979_ID_MIN <= arbitration_id <= J1979_ID_MAX or arbitration_id in STANDARD_PARAMETERS


def get_parameter(arbitration_id: int) -> Optional[J1979Parameter]:
    return STANDARD_PARAMETERS.get(arbitration_id)
