"""Bid cost-breakdown analysis."""
