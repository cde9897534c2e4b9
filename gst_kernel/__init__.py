"""
GST Kernel - temporal tax rule resolution

A versioned, append-only store of GST rules with:
- HSN/SAC classification catalog
- Date-scoped tax rates and denormalized configurations
- Deterministic "as of" resolution with explicit NotFound
- Write-path validation (component consistency, no overlap)
- Scope-serialized writes and auditable change events
"""

__version__ = "0.1.0"
