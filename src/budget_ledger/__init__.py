"""Budget commitment ledger.

Tracks committed and actual spend on project sub-accounts as purchase
orders and invoices move through their lifecycles.
"""

__version__ = "0.1.0"
