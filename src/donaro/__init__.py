"""Donaro: donation verification, fraud screening and credit ledger."""
