# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 TruAI Contributors
"""
URL Utilities

Small helpers shared across tools. These functions must be side-effect free.
"""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit


def normalize_host(host: str) -> str:
    host = (host or "").strip().lower()
    return host[4:] if host.startswith("www.") else host


def is_valid_public_http_url(url: str) -> bool:
    try:
        if not url:
            return False
        u = urlsplit(str(url).strip())
        if u.scheme not in ("http", "https"):
            return False
        host = normalize_host(u.hostname or "")
        if not host or host in ("127.0.0.1", "localhost"):
            return False
        return True
    except ValueError:
        return False


def normalize_url(url: str) -> str:
    """
    Content cache key for a URL: lower-cased, fragment stripped,
    one trailing slash stripped, query preserved.
    """
    raw = (url or "").strip()
    try:
        u = urlsplit(raw)
    except ValueError:
        return raw.lower()
    if not u.scheme or not u.netloc:
        normalized = raw.lower()
    else:
        normalized = urlunsplit((u.scheme, u.netloc, u.path, u.query, "")).lower()
    return normalized[:-1] if normalized.endswith("/") else normalized


def extract_domain(url: str) -> str:
    """Credibility cache key: lower-cased hostname without a leading 'www.'."""
    try:
        host = urlsplit((url or "").strip()).hostname
    except ValueError:
        host = None
    if not host:
        return url
    return normalize_host(host)


def host_matches(host: str, domain: str) -> bool:
    """True when `host` is `domain` or one of its subdomains."""
    host = normalize_host(host)
    domain = domain.lower().lstrip(".")
    return host == domain or host.endswith("." + domain)
