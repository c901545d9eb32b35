# tests/__init__.py
"""
Expose common test utilities so tests can import directly:
    from tests import make_candidate, make_intent, FakeProvider
"""

from .utils import FakeProvider, FakeRateSource, FakeResp, make_candidate, make_intent, make_raw, make_zones

__all__ = ["make_candidate", "make_intent", "make_raw", "make_zones", "FakeProvider", "FakeRateSource", "FakeResp"]
