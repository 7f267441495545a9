"""Encryption at rest for persisted credentials.

- crypto: symmetric cipher box for JSON records
- vault: key derivation and encrypted persist/restore
"""
