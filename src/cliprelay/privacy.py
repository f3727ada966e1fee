#!/usr/bin/env python3
"""Source-application privacy filter for local clipboard observations.

Copies made in password managers and keychain tools are never turned
into records. Everything else passes through.
"""

from __future__ import annotations

EXCLUDED_APPS: frozenset[str] = frozenset({
    "com.1password.1password7",
    "com.agilebits.onepassword7",
    "com.agilebits.onepassword-osx",
    "com.agilebits.onepassword4",
    "com.bitwarden.desktop",
    "com.lastpass.lastpass",
    "com.apple.keychainaccess",
    "com.apple.keychain-access",
    "com.dashlane.dashlane",
    "com.keeper.keeperdesktop",
    "com.enpass.enpass",
    "com.nordpass.macos",
    "com.roboform.roboform",
    "com.strongbox.mac.strongbox",
    "org.keepassxc.keepassxc",
})

SENSITIVE_MARKERS: tuple[str, ...] = (
    "password",
    "keychain",
    "vault",
    "1password",
    "bitwarden",
    "lastpass",
    "dashlane",
    "keepass",
)


def exclusion_reason(source_app: str | None) -> str | None:
    """Return why content from source_app must be dropped, or None.

    Args:
        source_app: Bundle or application identifier of the copy source.

    Returns:
        A human-readable reason, or None if the content may be synced.
    """
    if not source_app:
        return None
    app = source_app.lower()
    if app in EXCLUDED_APPS:
        return f"Content from password manager or keychain app ({source_app}) is blocked"
    if any(marker in app for marker in SENSITIVE_MARKERS):
        return f"Content from security-related app ({source_app}) is blocked"
    return None
