"""Kraken trade ledger: cached trade history with incremental sync."""
