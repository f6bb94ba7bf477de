"""
Series/line/model codes and the two URL flavours of a build.

Configure URL: ``https://configure.bmw.co.uk/configure/{series}/{line}/...``
Summary URL:   the same path with ``/configure/`` swapped for ``/summary/``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urlsplit

from parsel import Selector

from bmw_scrapper.items import BuildIdentity

CONFIGURE_HOST = "configure.bmw.co.uk"
FALLBACK_HOST = "www.bmw.co.uk"
SUMMARY_TEMPLATE = "https://{host}/en/configurator/summary/en_GB/{code}/"

MODEL_CODE_RE = re.compile(r"^[A-Z]{2}\d{6}$")  # e.g. SE000001
CODE_TOKEN_RE = re.compile(r"^[A-Z0-9]{3,6}$")  # e.g. IX22 / IXSC
CONFIGURATOR_FRAGMENT_RE = re.compile(r"configurator/[^/]+/([^/]+)/")
SUMMARY_MODEL_RE = re.compile(r"/summary/en_GB/([^/]+)/")


def _segments(url: Optional[str]) -> List[str]:
    if not url or not url.strip():
        return []
    try:
        path = urlsplit(url.strip()).path
    except ValueError:
        return []
    return [s for s in path.split("/") if s]


def _marker_index(segments: List[str], marker: str) -> int:
    for i, seg in enumerate(segments):
        if seg.lower() == marker:
            return i
    return -1


def _codes_after(segments: List[str], marker: str) -> Tuple[str, str]:
    i = _marker_index(segments, marker)
    if i >= 0 and len(segments) >= i + 3:
        return segments[i + 1], segments[i + 2]
    return "", ""


def extract_configure_codes(url: Optional[str]) -> Tuple[str, str]:
    """Return ``(series, line)`` from a configure URL, or empty strings."""
    return _codes_after(_segments(url), "configure")


def extract_summary_codes(url: Optional[str]) -> Tuple[str, str, str]:
    """Return ``(series, line, model)`` from a summary URL.

    The model code is the last path segment, kept only when it looks like
    ``SE000001``.
    """
    segments = _segments(url)
    series, line = _codes_after(segments, "summary")
    last = segments[-1] if segments else ""
    model = last if MODEL_CODE_RE.match(last) else ""
    return series, line, model


def clean_url(url: str) -> str:
    """Drop query and fragment, keep scheme, host and path."""
    if not url or not url.strip():
        return url
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return url.split("?", 1)[0]
    if not parts.scheme or not parts.hostname:
        return url.split("?", 1)[0]
    return f"{parts.scheme}://{parts.hostname}{parts.path}"


def configure_form(url: str, host: str = CONFIGURE_HOST) -> str:
    """Rewrite a configure or summary URL onto the configure host in configure form."""
    if "/summary/" in url:
        url = url.replace("/summary/", "/configure/", 1)
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.path:
        return url
    query = f"?{parts.query}" if parts.query else ""
    return f"https://{host}{parts.path}{query}"


def summary_form(configure_url: str) -> str:
    return configure_url.replace("/configure/", "/summary/", 1)


def collect_candidate_links(html: str, base_url: str = "") -> List[str]:
    """Absolute URLs of configure/summary links, canonical link and og:url, in page order."""
    if not html:
        return []
    sel = Selector(text=html)
    picks: List[str] = []
    for href in sel.xpath("//a/@href").getall():
        full = urljoin(base_url, href.strip())
        if "/configure/" in full or "/summary/" in full:
            picks.append(full)
    canonical = sel.xpath('//link[@rel="canonical"]/@href').get()
    if canonical:
        picks.append(urljoin(base_url, canonical.strip()))
    og_url = sel.xpath('//meta[@property="og:url"]/@content').get()
    if og_url:
        picks.append(og_url.strip())
    return list(dict.fromkeys(picks))


def pick_candidate(candidates: Iterable[str]) -> str:
    """First configure URL, else first summary URL, else empty."""
    candidates = list(candidates)
    for url in candidates:
        if "/configure/" in url:
            return url
    for url in candidates:
        if "/summary/" in url:
            return url
    return ""


def guess_model_code(configure_url: str, summary_url: str = "") -> str:
    """Best-effort model code when the URLs do not carry one explicitly."""
    segments = _segments(configure_url)
    if segments:
        if MODEL_CODE_RE.match(segments[-1]):
            return segments[-1]
        i = _marker_index(segments, "configure")
        later = segments[i + 3 :] if i >= 0 else segments[1:]
        for seg in later:
            if CODE_TOKEN_RE.match(seg):
                return seg
    match = SUMMARY_MODEL_RE.search(summary_url or "")
    return match.group(1) if match else ""


@dataclass(frozen=True)
class ForgedUrls:
    configure_url: str = ""
    summary_url: str = ""
    model_code: str = ""

    def to_identity(self) -> BuildIdentity:
        series, line = extract_configure_codes(self.configure_url)
        return BuildIdentity(
            series_code=series,
            line_code=line,
            model_code=self.model_code,
            configure_url=self.configure_url,
            summary_url=self.summary_url,
        )


def forge_urls(
    candidates: Iterable[str],
    current_url: str,
    configure_host: str = CONFIGURE_HOST,
    fallback_host: str = FALLBACK_HOST,
) -> ForgedUrls:
    """Derive both URL flavours from links found on the page.

    Falls back to the page's own URL when it is a configure URL, then to a
    summary URL synthesized from a ``configurator/<x>/<code>/`` fragment.
    """
    found = pick_candidate(candidates)
    configure_url = ""
    if found:
        configure_url = configure_form(found, configure_host)
    elif current_url and "/configure/" in current_url:
        configure_url = configure_form(current_url, configure_host)

    summary_url = ""
    if configure_url:
        summary_url = summary_form(configure_url)
    else:
        match = CONFIGURATOR_FRAGMENT_RE.search(current_url or "")
        if match:
            summary_url = SUMMARY_TEMPLATE.format(host=fallback_host, code=match.group(1))

    return ForgedUrls(
        configure_url=configure_url,
        summary_url=summary_url,
        model_code=guess_model_code(configure_url, summary_url),
    )
