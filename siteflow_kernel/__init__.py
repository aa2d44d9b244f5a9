"""
Siteflow Kernel

Shared infrastructure for the construction-site workflow modules:
- Role-gated state machines with a pure transition engine
- Compare-and-swap persistence on a single status column
- Append-only transition audit trail
- Structured JSON logging
- Bounded retry for transient storage failures
"""

__version__ = "0.1.0"
