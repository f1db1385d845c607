"""
Constants for sampler configuration and pipeline assembly.

This module contains the default values for every sampling method and the
fixed parameters the pipeline builder passes to the stage runtime.
"""

# Seed shared by every seeded method unless overridden
DEFAULT_SEED = 1234

# Shared repetition penalty stage (-1 means "no penalty window" to the runtime)
DEFAULT_PENALTY_LAST_N = -1
DEFAULT_PENALTY_REPEAT = 0.0
DEFAULT_PENALTY_FREQ = 0.0
DEFAULT_PENALTY_PRESENT = 0.0

# Grammar
DEFAULT_GRAMMAR_ROOT = "root"

# DRY
DEFAULT_DRY_MULTIPLIER = 0.0
DEFAULT_DRY_BASE = 1.75
DEFAULT_DRY_ALLOWED_LENGTH = 2
DEFAULT_DRY_PENALTY_LAST_N = -1
# Not exposed through configuration; changing it changes default behavior
DRY_SEQUENCE_BREAKERS = ("\n", ":", "\"", "*")

# Truncation samplers
DEFAULT_TOP_K = 40
DEFAULT_TOP_P = 0.95
DEFAULT_MIN_P = 0.05
DEFAULT_TYPICAL_P = 1.0
DEFAULT_MIN_KEEP = 0

# XTC
DEFAULT_XTC_PROBABILITY = 0.0
DEFAULT_XTC_THRESHOLD = 0.10

# Temperature and Mirostat
DEFAULT_TEMPERATURE = 0.8
DEFAULT_MIROSTAT_TAU = 5.0
DEFAULT_MIROSTAT_ETA = 0.1
MIROSTAT_V1_CANDIDATES = 100  # m: tokens used to estimate s_hat in Mirostat v1
