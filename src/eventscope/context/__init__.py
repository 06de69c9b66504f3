"""Correlation of captured events into units of work.

Structure:
    correlation.py    - CorrelationContext (thread-local scope stack)
    reentrancy.py     - Guard against recursive internal emission
"""

from eventscope.context.correlation import ContextSnapshot, CorrelationContext, ScopeEmitter
from eventscope.context.reentrancy import in_internal_emission, internal_emission

__all__ = [
    "ContextSnapshot",
    "CorrelationContext",
    "ScopeEmitter",
    "in_internal_emission",
    "internal_emission",
]
