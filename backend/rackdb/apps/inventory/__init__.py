"""
Inventory module.

Handles materials, the entry/issue ledger and the read models built on it.
"""

from .router import router  # noqa: F401
from . import models  # noqa: F401
