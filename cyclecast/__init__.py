"""Cyclecast — period tracking and cycle prediction."""
