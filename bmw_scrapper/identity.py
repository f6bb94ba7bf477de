"""
Run-wide identity bookkeeping for Pass 1.

A :class:`DedupContext` is created once per run and handed to the traversal.
It holds two monotonically growing sets (line codes and canonical URL keys);
a candidate build is admitted only when it is new on both.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Set
from urllib.parse import urlsplit

from bmw_scrapper.items import BuildIdentity


def url_key(url: Optional[str]) -> str:
    """scheme://host/path with the trailing slash removed; query and fragment dropped."""
    if not url or not url.strip():
        return ""
    url = url.strip()
    try:
        parts = urlsplit(url)
    except ValueError:
        return url.rstrip("/")
    if not parts.scheme or not parts.hostname:
        return url.rstrip("/")
    return f"{parts.scheme}://{parts.hostname}{parts.path}".rstrip("/")


def best_url_key(configure_url: str, summary_url: str) -> str:
    return url_key(configure_url) or url_key(summary_url)


class Admission(NamedTuple):
    accepted: bool
    reason: str = ""


@dataclass
class DedupContext:
    # Both sets compare case-insensitively
    line_codes: Set[str] = field(default_factory=set)
    url_keys: Set[str] = field(default_factory=set)

    def admit(self, identity: BuildIdentity) -> Admission:
        line = identity.line_code.strip().casefold()
        key = best_url_key(identity.configure_url, identity.summary_url)
        folded_key = key.casefold()

        if line and line in self.line_codes:
            return Admission(False, f"duplicate line code {identity.line_code}")
        if folded_key and folded_key in self.url_keys:
            return Admission(False, f"duplicate URL {key}")

        if line:
            self.line_codes.add(line)
        if folded_key:
            self.url_keys.add(folded_key)
        return Admission(True)
