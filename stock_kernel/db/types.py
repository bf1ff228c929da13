"""
Annotated column type aliases shared by the models.

Centralizes widths and precision so that every model declares counters,
prices and short codes identically.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

# Non-negative stock or fulfillment counter
Counter = Annotated[int, BigInteger]

# Price or cost, two decimal places
Price = Annotated[Decimal, Numeric(18, 2)]

# Generated identifiers and enum values (productId, requisitionID, status)
ShortCode = Annotated[str, String(32)]

# Names and titles
Name = Annotated[str, String(255)]

# Long text for descriptions and comments
LongText = Annotated[str, String(4000)]
