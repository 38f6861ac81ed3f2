"""
Vacation Kernel

Core of the vacation approval workflow:
- Closed role/status/action enumerations and immutable request snapshots
- Version-token conditional writes (no lost updates between approvers)
- Write-once per-role approval slots
- Hash-chained audit log of every submission and transition
- Typed, coded exceptions and structured JSON logging
"""

__version__ = "0.1.0"
