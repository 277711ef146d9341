"""Gas attribution engine.

Implements the static side of gas analysis:
  - EVM bytecode decoding with push-data skipping
  - solc source-map interpretation
  - Static gas cost table with runtime-trace refinement
  - Hotspot grouping, pattern detection and severity ranking
  - Guided tour over ranked hotspots
"""
