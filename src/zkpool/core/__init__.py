"""Accumulator, amount checks, transaction records and orchestration."""
