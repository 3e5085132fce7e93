"""
Ledger Kernel

The accounting ledger core shared by the journal, account ledger, balance
sheet and bank reconciliation screens:
- Double-entry posting with a draft -> posted -> reversed lifecycle
- Running-balance ledger derived by replaying posted lines
- Balance sheet aggregation with an explicit is_balanced signal
- Bank transaction reconciliation against billing payments
"""

__version__ = "0.1.0"
