"""
API routes package

One router module per feature:
- health: health check
- ledger: chart of accounts, trial balance, entries, reversal
- repair: reconciliation and repair screens
"""
