"""
Heuristic semantic classification of signals (pure annotation).
"""
import logging
from typing import Dict, Iterable

import numpy as np

from canre.models.signal_candidate import ExtractedSignal, SignalClassification, SignalKey, SignalType

logger = logging.getLogger(__name__)

MIN_CLASSIFICATION_SAMPLES = 10

# Checked in order; first match wins
NAME_KEYWORDS = (
    (('temp', 'temperature'), SignalClassification.SENSOR),
    (('rpm', 'speed', 'velocity'), SignalClassification.SENSOR),
    (('voltage', 'current', 'ampere'), SignalClassification.SENSOR),
    (('pressure', 'force', 'torque'), SignalClassification.SENSOR),
    (('position', 'angle', 'distance'), SignalClassification.SENSOR),
    (('status', 'state', 'mode'), SignalClassification.STATUS),
    (('error', 'fault', 'warning'), SignalClassification.DIAGNOSTIC),
    (('command', 'control', 'setpoint'), SignalClassification.CONTROL),
    (('actuator', 'motor', 'valve'), SignalClassification.ACTUATOR),
)


def classify_signal(signal: ExtractedSignal) -> SignalClassification:
    """Classify by name keywords, then coarse type, then value spread."""
    if len(signal.raw_values) < MIN_CLASSIFICATION_SAMPLES:
        return SignalClassification.UNKNOWN

    name = signal.name.lower()
    for keywords, classification in NAME_KEYWORDS:
        if any(k in name for k in keywords):
            return classification

    if signal.candidate.signal_type in (SignalType.BOOLEAN, SignalType.ENUM):
        return SignalClassification.STATUS

    values = np.asarray(signal.physical_values, dtype=np.float64)
    mean = float(values.mean())
    std = float(values.std())
    if std < 0.01 * mean:
        return SignalClassification.STATUS
    if std > 0.1 * mean:
        return SignalClassification.SENSOR
    return SignalClassification.UNKNOWN


def classify_signals(signals: Iterable[ExtractedSignal]) -> Dict[SignalKey, SignalClassification]:
    classifications = {}
    for signal in signals:
        classifications[signal.key] = classify_signal(signal)
        logger.debug(f"{signal.name}: {classifications[signal.key].value}")
    return classifications
