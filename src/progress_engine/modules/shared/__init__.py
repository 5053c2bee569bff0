"""
Shared Module

Purpose
-------
Domain-level foundations for the reward and progress modules:
- Domain exceptions and error classification helpers
- BaseService with logging and config access
- Reward, level and pricing constants
- Pure formulas (percentages, level curve, bonuses, multipliers, costs)

Nothing here performs I/O; services build on these foundations.
"""
