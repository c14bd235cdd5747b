"""Proof exercises: steps, segmentation, checking and feedback routing."""
