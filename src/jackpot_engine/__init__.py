"""Pooled-stake jackpot settlement engine."""
