"""Stealth JavaScript injected before any page script runs.

Masks the browser properties that give away automation:
 1. navigator.webdriver
 2. window.chrome.runtime / chrome.app
 3. navigator.plugins + mimeTypes
 4. navigator.platform (must match the User-Agent)
 5. navigator.languages (must match the context locale)
 6. hardwareConcurrency / deviceMemory
 7. Permissions API (notifications)
 8. Automation globals (__playwright*, __pw_*, cdc_*)
 9. window.outerWidth/Height (headless has outer == 0)

Usage:
    js = build_stealth_js(get_region_profile("it"))
    await context.add_init_script(js)
"""

from __future__ import annotations

import json

from .profiles import RegionProfile

_STEALTH_JS_TEMPLATE = r"""
(function() {
    'use strict';

    const navProto = Object.getPrototypeOf(navigator);
    const define = (obj, prop, getter) => {
        try {
            Object.defineProperty(obj, prop, { get: getter, configurable: true });
        } catch (e) {}
    };

    // 1. webdriver: Playwright sets true, real browsers leave it undefined
    define(navigator, 'webdriver', () => undefined);
    if (navProto) { define(navProto, 'webdriver', () => undefined); }

    // 2. chrome.*: headless Chromium lacks chrome.app and chrome.runtime
    if (!window.chrome) { window.chrome = {}; }
    if (!window.chrome.runtime) {
        window.chrome.runtime = {
            connect: function() {},
            sendMessage: function() {}
        };
    }
    if (!window.chrome.app) {
        window.chrome.app = {
            isInstalled: false,
            getDetails: function() { return null; },
            getIsInstalled: function() { return false; }
        };
    }

    // 3. plugins + mimeTypes: headless reports empty arrays
    const fakePlugins = [
        { name: 'PDF Viewer', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
        { name: 'Chrome PDF Viewer', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
        { name: 'Chromium PDF Viewer', filename: 'internal-pdf-viewer', description: 'Portable Document Format' }
    ];
    define(navigator, 'plugins', () => {
        const list = fakePlugins.slice();
        list.item = (i) => list[i] || null;
        list.namedItem = (n) => list.find((p) => p.name === n) || null;
        list.refresh = () => {};
        return list;
    });
    define(navigator, 'mimeTypes', () => {
        const list = [{ type: 'application/pdf', suffixes: 'pdf', description: 'Portable Document Format' }];
        list.item = (i) => list[i] || null;
        list.namedItem = (n) => list.find((m) => m.type === n) || null;
        return list;
    });

    // 4. platform
    define(navigator, 'platform', () => __PLATFORM__);

    // 5. languages
    define(navigator, 'languages', () => __LANGUAGES__);

    // 6. hardware
    define(navigator, 'hardwareConcurrency', () => 8);
    define(navigator, 'deviceMemory', () => 8);

    // 7. permissions: headless answers "denied" for notifications
    if (window.navigator.permissions && window.navigator.permissions.query) {
        const originalQuery = window.navigator.permissions.query.bind(window.navigator.permissions);
        window.navigator.permissions.query = (parameters) => (
            parameters && parameters.name === 'notifications'
                ? Promise.resolve({ state: Notification.permission })
                : originalQuery(parameters)
        );
    }

    // 8. automation globals
    for (const key of Object.keys(window)) {
        if (key.startsWith('__playwright') || key.startsWith('__pw_') || key.startsWith('cdc_')) {
            try { delete window[key]; } catch (e) {}
        }
    }

    // 9. outer dimensions
    if (!window.outerWidth || !window.outerHeight) {
        define(window, 'outerWidth', () => window.innerWidth);
        define(window, 'outerHeight', () => window.innerHeight + 85);
    }
})();
"""


def build_stealth_js(profile: RegionProfile) -> str:
    """Build the stealth JS string with profile-specific values.

    Args:
        profile: The region profile; platform and languages must match
            the context's user agent and locale.

    Returns:
        JavaScript string ready for context.add_init_script().
    """
    return (
        _STEALTH_JS_TEMPLATE
        .replace("__PLATFORM__", json.dumps(profile.ua.platform))
        .replace("__LANGUAGES__", json.dumps(list(profile.languages)))
    )
