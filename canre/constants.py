"""
Constants and tuning values for the CAN reverse-engineering core.

This module centralizes the magic numbers used by the analysis stages so the
heuristics can be reviewed in one place.

Constants are organized by category:
- CAN ID ranges and frame limits
- Frame aggregation (cyclicity tolerance)
- Signal detection thresholds (per policy)
- Automatic scaling buckets
- Extraction and correlation sampling caps
- Significance thresholds
- Clustering cut parameters
"""

# CAN ID ranges
CAN_ID_MAX_STANDARD = 0x7FF  # Standard CAN (11-bit)
CAN_ID_MAX_EXTENDED = 0x1FFFFFFF  # Extended CAN (29-bit)
CAN_ID_MAX = CAN_ID_MAX_EXTENDED

# CAN frame limits
CAN_FRAME_MAX_LENGTH = 8  # Classic CAN
CAN_FD_FRAME_MAX_LENGTH = 64

# Frame aggregation
CYCLIC_TOLERANCE = 0.2  # intervals within +/-20% of the mean
CYCLIC_MIN_INTERVALS = 3

# Signal detection
QUICK_SCAN_MAX_BYTES = 8
QUICK_SCAN_BYTE_VARIANCE_MIN = 1.0
QUICK_SCAN_MULTI_VARIANCE_MIN = 10.0
QUICK_SCAN_MIN_FRAMES = 2
FULL_SERIES_BYTE_RANGE_MIN = 2
FULL_SERIES_MULTI_DISTINCT_MIN = 5
FULL_SERIES_MULTI_RANGE_MIN = 10
FULL_SERIES_MIN_FRAMES = 10
MULTI_BYTE_MIN_LENGTH = 2
MULTI_BYTE_MAX_LENGTH = 4
BOOLEAN_MAX_DISTINCT = 2
ENUM_MAX_DISTINCT = 10
OPTIMIZED_SAMPLE_LIMIT = 100
OPTIMIZED_MAX_START_BYTE = 6

# Automatic scaling (display heuristic, not a calibration)
SCALE_8BIT_RANGE = 256
SCALE_8BIT_FACTOR = 100.0 / 255.0
SCALE_16BIT_RANGE = 65536
SCALE_16BIT_FACTOR = 1000.0 / 65535.0

# Extraction / correlation sampling caps
EXTRACTION_FRAME_LIMIT = 100
CORRELATION_MIN_SAMPLES = 10
CROSS_CORRELATION_MIN_OVERLAP = 10
CROSS_MESSAGE_SIGNAL_LIMIT = 20
MAX_LAG_SAMPLES = 10

# Significance
SIGNIFICANCE_CORRELATION = 0.7
SIGNIFICANCE_PVALUE = 0.05
CAUSAL_MIN_LAG = 1
CAUSAL_MIN_CORRELATION = 0.8

# Relationship label buckets
RELATIONSHIP_STRONG = 0.8
RELATIONSHIP_MODERATE = 0.5
RELATIONSHIP_WEAK = 0.3

# Clustering
CLUSTER_CUT_RATIO = 0.3  # threshold = ratio * max merge distance
MIN_CLUSTER_SIZE_DEFAULT = 3

# Pipeline defaults
MIN_MESSAGE_COUNT_DEFAULT = 10  # ids need more than this many frames
MAX_WORKERS_DEFAULT = 4

# J1979 diagnostic request/response range
J1979_ID_MIN = 0x7E0
J1979_ID_MAX = 0x7EF
