"""Reverse mapping: UBL document tree -> canonical invoice."""
