from __future__ import annotations

import re
from dataclasses import dataclass

_QUOTED_RE = re.compile(r'"([^"]+)"')
_SELECTOR_RE = re.compile(r"^([^\s]+?)\._domainkey", re.MULTILINE)
_KEY_RE = re.compile(r"p=([A-Za-z0-9+/=]+)")

_PARAM_PATTERNS = {
    "key_type": r"\bk=(rsa|ed25519)",
    "hash_algos": r"\bh=([a-z0-9:+\-]+)",
    "flags": r"\bt=([a-z]+)",
    "service_type": r"\bs=([a-z]+)",
}


@dataclass
class DkimMetadata:
    selector: str
    key: str
    subdomain: str = ""
    key_type: str | None = None
    hash_algos: str | None = None
    flags: str | None = None
    service_type: str | None = None

    @property
    def record_name(self) -> str:
        name = f"{self.selector}._domainkey"
        if self.subdomain:
            name += f".{self.subdomain}"
        return name


def join_quoted(content: str) -> str | None:
    """Concatenate the quoted chunks of a TXT value, None if nothing is quoted."""
    parts = _QUOTED_RE.findall(content)
    if not parts:
        return None
    return "".join(parts)


def looks_like_dkim(content: str) -> bool:
    joined = join_quoted(content) or ""
    return joined.startswith("v=DKIM1")


def extract_selector(text: str) -> str:
    m = _SELECTOR_RE.search(text)
    return m.group(1) if m else ""


def extract_public_key(text: str) -> str:
    joined = join_quoted(text)
    if joined is None:
        return ""
    m = _KEY_RE.search(joined)
    return m.group(1).strip() if m else ""


def extract_dkim_parameters(text: str) -> dict[str, str]:
    joined = join_quoted(text)
    if joined is None:
        return {}

    params: dict[str, str] = {}
    for field, pattern in _PARAM_PATTERNS.items():
        m = re.search(pattern, joined, re.IGNORECASE)
        if m:
            params[field] = m.group(1)
    if "key_type" in params:
        params["key_type"] = params["key_type"].lower()
    return params


def parse_dkim_text(text: str) -> DkimMetadata | None:
    """Parse a key file as written by opendkim-genkey (``sel._domainkey IN TXT (...)``)."""
    selector = extract_selector(text)
    key = extract_public_key(text)
    if not selector or not key:
        return None
    return DkimMetadata(selector=selector, key=key, **extract_dkim_parameters(text))
