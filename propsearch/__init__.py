# propsearch/__init__.py
"""
propsearch: resolve free-text requests for physical goods (primarily Chilean
real-estate listings) into ranked, policy-filtered candidate results.
"""

__version__ = "0.3.0"
