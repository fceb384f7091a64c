"""
Formflow Kernel

Versioned multi-stage workflow forms with:
- Atomic replace-all rewriting of draft form graphs
- Placeholder-aware reference resolution inside condition blobs
- Condition evaluation for visibility, rule gating and transition guards
- Per-stage access control
- Entry workflow state machine
"""

__version__ = "0.1.0"
