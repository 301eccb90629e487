"""
Accounts module.

Issues admin tokens; there are no stored user accounts.
"""

from .router import router  # noqa: F401
