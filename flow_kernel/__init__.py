"""
Flow Kernel

Domain types, persistence and host services for declarative approval
flows:
- Versioned flow definitions (stages, transitions, condition trees)
- Approval instances bound to an immutable flow version
- Typed, coded exceptions
- Structured JSON logging
"""

__version__ = "0.1.0"
