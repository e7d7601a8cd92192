"""
Approval Kernel - multi-level approval workflow and delegation engine.

A tenant-scoped approval system with:
- Rule-based policy resolution
- Pre-materialized, ordered approval chains
- Race-free step transitions via atomic conditional updates
- Time-boxed approver delegation
"""

__version__ = "0.1.0"
