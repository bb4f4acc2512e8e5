"""Fraud ticket reconciliation job."""
