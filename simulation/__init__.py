"""Synthetic cohort simulation for the pLTV lab."""

from .errors import (
    PLTVError,
    InvalidConfigError,
    MalformedInputError,
    OperationCancelled
)
from .rng import SeededRandom
from .config import (
    PopulationConfig,
    MonetizationConfig,
    BehavioralConfig,
    NoiseConfig,
    SimulationConfig,
    SynthConfig,
    PRESETS,
    get_preset,
    get_default_config
)
from .schema import (
    PlayerRow,
    EventRow,
    PaymentRow,
    UACostRow,
    LabelRow,
    parse_event_params
)
from .generator import (
    GenerationResult,
    SynthOutputStats,
    generate_synthetic_data,
    compute_preview,
    compute_stats_from_tables,
    gini_coefficient,
    histogram
)
from .io import (
    serialize_table,
    parse_table,
    write_tables,
    read_tables
)

__all__ = [
    'PLTVError',
    'InvalidConfigError',
    'MalformedInputError',
    'OperationCancelled',
    'SeededRandom',
    'PopulationConfig',
    'MonetizationConfig',
    'BehavioralConfig',
    'NoiseConfig',
    'SimulationConfig',
    'SynthConfig',
    'PRESETS',
    'get_preset',
    'get_default_config',
    'PlayerRow',
    'EventRow',
    'PaymentRow',
    'UACostRow',
    'LabelRow',
    'parse_event_params',
    'GenerationResult',
    'SynthOutputStats',
    'generate_synthetic_data',
    'compute_preview',
    'compute_stats_from_tables',
    'gini_coefficient',
    'histogram',
    'serialize_table',
    'parse_table',
    'write_tables',
    'read_tables'
]
