"""Curio award & ranking engine."""
