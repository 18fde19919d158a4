"""Domain models and types for ledgerloop.

This package contains the functional core:
- Pure functions with no side effects
- No I/O operations
- Easy to test
- Scheduling logic separated from infrastructure
"""

from ledgerloop.domain.models import Amount, CategoryId, DefinitionId, TransactionId

__all__ = ["Amount", "CategoryId", "DefinitionId", "TransactionId"]
