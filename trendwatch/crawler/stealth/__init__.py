"""Stealth module: anti-detection fingerprint for Playwright browsers.

Usage:
    from trendwatch.crawler.stealth import build_stealth_js, get_region_profile

    profile = get_region_profile("it")
    stealth_js = build_stealth_js(profile)
"""

from .injection import build_stealth_js
from .profiles import REGION_PROFILES, RegionProfile, UAProfile, get_region_profile

__all__ = [
    "REGION_PROFILES",
    "RegionProfile",
    "UAProfile",
    "build_stealth_js",
    "get_region_profile",
]
