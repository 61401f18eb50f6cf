"""Batch Fraud Screening Service.

This service screens batches of payment transactions for fraud:
- Checks each transaction against caller-supplied custom rules
- Falls back to the pattern-detection engine when no rule fires
- Records every verdict in an append-only store
- Returns a verdict per transaction_id
"""

__version__ = "0.1.0"
