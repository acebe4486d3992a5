"""
dgtools formula engine: fetch, build, install and smoke-test packaged command-line tools.
"""

__version__ = "0.1.0"
