from __future__ import annotations


class ValidationError(ValueError):
    """Raised when input records break an invariant the engine cannot repair."""
