"""
Constants for the EDF/EDF+ file layout.

Field widths and byte offsets follow the EDF specification
(https://www.edfplus.info/specs/edf.html) and its EDF+ extension.
"""

from pathlib import Path

# ============================================================================
# Fixed Header (first 256 bytes)
# ============================================================================

FIXED_HEADER_BYTES = 256
SIGNAL_HEADER_BYTES = 256  # Per signal, spread across the field-major zones

# (field name, width) in on-disk order
FIXED_HEADER_FIELDS: tuple[tuple[str, int], ...] = (
    ("version", 8),
    ("patient_id", 80),
    ("recording_id", 80),
    ("start_date", 8),
    ("start_time", 8),
    ("header_bytes", 8),
    ("reserved", 44),
    ("record_count", 8),
    ("record_duration", 8),
    ("num_signals", 4),
)

RECORD_COUNT_OFFSET = 236

# ============================================================================
# Signal Header Zones
# ============================================================================

# Each zone holds ns cells of the given width, zones are stored in this order
SIGNAL_HEADER_FIELDS: tuple[tuple[str, int], ...] = (
    ("label", 16),
    ("transducer", 80),
    ("physical_dimension", 8),
    ("physical_min", 8),
    ("physical_max", 8),
    ("digital_min", 8),
    ("digital_max", 8),
    ("prefiltering", 80),
    ("samples_per_record", 8),
    ("reserved", 32),
)

# ============================================================================
# File Types
# ============================================================================

DEFAULT_VERSION = "0"
EDF_PLUS_CONTINUOUS = "EDF+C"
EDF_PLUS_DISCONTINUOUS = "EDF+D"

UNKNOWN_RECORD_COUNT = -1

# Two-digit years below the pivot belong to the 2000s
YEAR_PIVOT = 85
MIN_HEADER_YEAR = 1985
MAX_HEADER_YEAR = 2084

# ============================================================================
# Samples
# ============================================================================

BYTES_PER_SAMPLE = 2
SAMPLE_DTYPE = "<i2"
INT16_MIN = -32768
INT16_MAX = 32767

# ============================================================================
# Annotations (TAL)
# ============================================================================

ANNOTATION_LABEL = "EDF Annotations"
TAL_SEPARATOR = 0x14
TAL_DURATION_MARKER = 0x15
TAL_TERMINATOR = 0x00

# Annotation channels are not calibrated; these are the conventional bounds
ANNOTATION_DIGITAL_MIN = -32768
ANNOTATION_DIGITAL_MAX = 32767
ANNOTATION_PHYSICAL_MIN = -1.0
ANNOTATION_PHYSICAL_MAX = 1.0

DEFAULT_ANNOTATION_SAMPLES = 60

# ============================================================================
# Configuration & Logging
# ============================================================================

DEFAULT_CONFIG_DIR = Path.home() / ".edfplus"
DEFAULT_CONFIG_FILE = "config.toml"
CONFIG_ENV_VAR = "EDFPLUS_CONFIG"

DEFAULT_LOG_DIR = DEFAULT_CONFIG_DIR / "logs"
DEFAULT_LOG_FILE = "edfplus.log"
DEFAULT_LOG_BACKUP_COUNT = 3
