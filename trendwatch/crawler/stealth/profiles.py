"""Region fingerprint profiles.

Each profile bundles everything the browser context exposes about "where"
the visitor is:
- User-Agent string + navigator.platform + Sec-CH-UA client hints
- locale, timezone and geolocation of the emulated region
- the ``lang`` query parameter and Accept-Language header

Mismatches between these fields (a Rome geolocation with a New York
timezone, a Windows UA with a MacIntel platform) are a bot detection signal.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UAProfile:
    """A consistent user agent + platform fingerprint."""
    user_agent: str
    platform: str               # navigator.platform
    sec_ch_ua: str              # Sec-CH-UA header
    sec_ch_ua_platform: str     # Sec-CH-UA-Platform header
    sec_ch_ua_mobile: str = "?0"


@dataclass(frozen=True)
class RegionProfile:
    """Locale, timezone and location of the emulated visitor."""
    region: str
    locale: str
    timezone_id: str
    latitude: float
    longitude: float
    lang: str                   # TikTok "lang" query parameter
    languages: tuple[str, ...]  # navigator.languages
    ua: UAProfile
    viewport_width: int = 1366
    viewport_height: int = 768

    @property
    def accept_language(self) -> str:
        parts = []
        for i, tag in enumerate(self.languages):
            parts.append(tag if i == 0 else f"{tag};q={max(0.1, 1 - i * 0.1):.1f}")
        return ",".join(parts)

    @property
    def geolocation(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


_WINDOWS_CHROME = UAProfile(
    user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    platform="Win32",
    sec_ch_ua='"Google Chrome";v="131", "Chromium";v="131", "Not_A Brand";v="24"',
    sec_ch_ua_platform='"Windows"',
)

_MAC_CHROME = UAProfile(
    user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    platform="MacIntel",
    sec_ch_ua='"Google Chrome";v="131", "Chromium";v="131", "Not_A Brand";v="24"',
    sec_ch_ua_platform='"macOS"',
)


REGION_PROFILES: dict[str, RegionProfile] = {
    # Rome
    "it": RegionProfile(
        region="it",
        locale="it-IT",
        timezone_id="Europe/Rome",
        latitude=41.9028,
        longitude=12.4964,
        lang="en",
        languages=("it-IT", "it", "en-US", "en"),
        ua=_WINDOWS_CHROME,
    ),
    # New York
    "us": RegionProfile(
        region="us",
        locale="en-US",
        timezone_id="America/New_York",
        latitude=40.7128,
        longitude=-74.0060,
        lang="en",
        languages=("en-US", "en"),
        ua=_MAC_CHROME,
    ),
    # London
    "gb": RegionProfile(
        region="gb",
        locale="en-GB",
        timezone_id="Europe/London",
        latitude=51.5072,
        longitude=-0.1276,
        lang="en",
        languages=("en-GB", "en"),
        ua=_WINDOWS_CHROME,
    ),
}


def get_region_profile(region: str) -> RegionProfile:
    """Look up a region profile.

    Raises:
        KeyError: If no profile exists for the region.
    """
    return REGION_PROFILES[region.lower()]
