"""Domain type definitions for ledgerloop.

These NewTypes provide semantic clarity and help with type checking:
- Amount: Positive decimal amount of a recurring payment
- DefinitionId: Opaque identifier of a recurring definition
- CategoryId: Reference to an externally owned category
- TransactionId: Identifier assigned by the ledger to a new entry
"""

from decimal import Decimal
from typing import NewType

# Amounts are kept as Decimal to avoid floating point errors (e.g. 15.99)
Amount = NewType("Amount", Decimal)

# Recurring definition ids look like "rt_<hex>"
DefinitionId = NewType("DefinitionId", str)

# Category ids belong to the category manager, not to this package
CategoryId = NewType("CategoryId", str)

# Ledger transaction ids look like "exp_<hex>" or "inc_<hex>"
TransactionId = NewType("TransactionId", str)
