"""Verification engines backed by the Z3 SMT solver."""
