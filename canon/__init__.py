"""
Canon - Symbolic Ground Truth for Serialized Drama

A deterministic world-state core for episode generation. Prose comes from
language models; what actually happened lives here:
- World state loading, persistence and checkpoints
- Prerequisite expressions for operators
- Validated state deltas with provenance
- Episode-end upkeep (secret decay, thread cadence)
"""

__version__ = "0.1.0"
