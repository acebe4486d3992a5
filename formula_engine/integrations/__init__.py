"""
Integration modules for descriptor sources.
"""

from .descriptors import DescriptorRepository

__all__ = ["DescriptorRepository"]
