"""
Configuration package for the formula engine.
"""
