"""Record type variants.

Each supported DNS type is a small class registered in ``RECORD_TYPES``. A
variant knows how to turn submitted form fields into a stored
``(type, name, content)`` triple, how to validate stored content and how to
render its zone-file line. SPF and DKIM are TXT on the wire and only exist as
variants for input handling and validation.
"""

from __future__ import annotations

import base64
import binascii
import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Mapping

from zonemgr.services.dkim import DkimMetadata, join_quoted, looks_like_dkim, parse_dkim_text
from zonemgr.services.validators import is_ipv4, is_ipv6, is_valid_fqdn

ERROR_MESSAGES = {
    "ERR_UNKNOWN_TYPE": "Unknown record type.",
    "ERR_INVALID_NAME": "The name contains invalid characters (whitespace or control characters).",
    "ERR_INVALID_CONTENT": "The content must not contain line breaks or control characters.",
    "ERR_NEGATIVE_TTL": "TTL must not be negative.",
    "ERR_INVALID_IPV4": "Invalid IPv4 address.",
    "ERR_INVALID_IPV6": "Invalid IPv6 address.",
    "ERR_INVALID_FQDN": "A fully qualified domain name is expected, not an IP address.",
    "ERR_MX_FORMAT": "MX record must consist of two parts: <priority> <target>.",
    "ERR_MX_PRIORITY": "MX priority must be a number between 0 and 65535.",
    "ERR_MX_TARGET": "MX target is not a valid FQDN.",
    "ERR_SPF_FORMAT": 'SPF content must start with "v=spf1 ...".',
    "ERR_DKIM_QUOTED": "DKIM content must be enclosed in quotes.",
    "ERR_DKIM_VERSION": "DKIM content must start with v=DKIM1.",
    "ERR_DKIM_KEY_TYPE": "DKIM content must contain k=rsa or k=ed25519.",
    "ERR_DKIM_KEY_MISSING": "DKIM content does not contain a valid public key (p=...).",
    "ERR_DKIM_KEY_BASE64": "DKIM public key (p=...) is not valid base64.",
    "ERR_DKIM_FIELDS": "DKIM selector and public key must not be empty.",
    "ERR_DKIM_FILE": "The DKIM key file could not be parsed.",
    "ERR_TXT_LENGTH": "TXT content must not exceed 512 characters.",
    "ERR_LOC_FORMAT": "Invalid LOC format. Example: 52 31 0.000 N 13 24 0.000 E 34.0m",
    "ERR_CAA_FORMAT": 'Invalid CAA record. Expected: 0 issue "letsencrypt.org"',
    "ERR_SRV_FORMAT": "SRV record must consist of four parts: <priority> <weight> <port> <target>.",
    "ERR_SRV_NUMBERS": "SRV priority, weight and port must be numbers between 0 and 65535.",
    "ERR_SRV_TARGET": "SRV target is not a valid FQDN.",
    "ERR_NAPTR_FORMAT": (
        'NAPTR record must consist of six parts: <order> <preference> "<flags>" '
        '"<service>" "<regexp>" <replacement>.'
    ),
    "ERR_NAPTR_NUMBERS": "NAPTR order and preference must be numbers between 0 and 65535.",
    "ERR_NAPTR_QUOTES": "NAPTR flags, service and regexp must be quoted.",
    "ERR_NAPTR_FIELDS": "NAPTR flags, service, regexp and replacement are required.",
    "ERR_NAPTR_REPLACEMENT": "NAPTR replacement must be a valid FQDN or a single dot.",
    "ERR_URI_FORMAT": 'URI record must consist of three parts: <priority> <weight> "<target>".',
    "ERR_URI_NUMBERS": "URI priority and weight must be numbers between 0 and 65535.",
    "ERR_URI_TARGET": 'URI target must be quoted (e.g. "https://example.com").',
}

_LOC_RE = re.compile(
    r"""^\s*
    \d{1,2}\s+                       # latitude degrees
    \d{1,2}\s+                       # latitude minutes
    (?:\d{1,2}(?:\.\d{1,3})?\s+)?    # latitude seconds
    [NS]\s+
    \d{1,3}\s+                       # longitude degrees
    \d{1,2}\s+                       # longitude minutes
    (?:\d{1,2}(?:\.\d{1,3})?\s+)?    # longitude seconds
    [EW]
    (?:\s+-?\d+(?:\.\d+)?m           # altitude
        (?:\s+\d+(?:\.\d+)?m         # size
            (?:\s+\d+(?:\.\d+)?m     # horizontal precision
                (?:\s+\d+(?:\.\d+)?m)?  # vertical precision
            )?
        )?
    )?
    \s*$""",
    re.VERBOSE,
)
_CAA_RE = re.compile(r'^(0|128) (issue|issuewild|iodef) ".+?"$')
_SPF_RE = re.compile(r'^"v=spf1\s.+"')


class RecordInputError(ValueError):
    def __init__(self, code: str, message: str | None = None):
        super().__init__(message or ERROR_MESSAGES.get(code, code))
        self.code = code


@dataclass
class BuiltRecord:
    type: str
    name: str
    content: str
    dkim: DkimMetadata | None = None


def error_message(code: str) -> str:
    return ERROR_MESSAGES.get(code, code)


def _is_uint16(value: str) -> bool:
    return value.isdigit() and 0 <= int(value) <= 65535


def _qualify(target: str, mode: str | None) -> str:
    fqdn = target.strip().rstrip(".")
    if not mode or mode == "dot":
        return fqdn + "."
    return f"{fqdn}.{mode.rstrip('.')}."


def _field(fields: Mapping[str, Any], key: str) -> str:
    value = fields.get(key)
    return "" if value is None else str(value).strip()


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _has_invalid_name_chars(name: str) -> bool:
    return any(ch.isspace() or unicodedata.category(ch).startswith("C") for ch in name)


def _has_control_chars(content: str) -> bool:
    return any(unicodedata.category(ch).startswith("C") for ch in content)


class RecordType:
    code = ""
    stored_as: str | None = None
    default_ttl = 300

    @property
    def wire_type(self) -> str:
        return self.stored_as or self.code

    def record_name(self, fields: Mapping[str, Any]) -> str:
        return _field(fields, "name") or "@"

    def build(self, fields: Mapping[str, Any]) -> BuiltRecord:
        return BuiltRecord(self.wire_type, self.record_name(fields), _field(fields, "content"))

    def validate(self, name: str, content: str, ttl: int | None = None) -> list[str]:
        errors = []
        if _has_invalid_name_chars(name):
            errors.append("ERR_INVALID_NAME")
        if ttl is not None and ttl < 0:
            errors.append("ERR_NEGATIVE_TTL")
        # Content is written into the zone file verbatim, one record per line.
        if _has_control_chars(content):
            errors.append("ERR_INVALID_CONTENT")
        errors.extend(self.check_content(content))
        return errors

    def check_content(self, content: str) -> list[str]:
        return []

    def render(self, name: str, ttl: int, content: str) -> str:
        return f"{name}\t{ttl}\tIN\t{self.wire_type}\t{content}"


RECORD_TYPES: dict[str, RecordType] = {}


def _register(cls: type[RecordType]) -> type[RecordType]:
    RECORD_TYPES[cls.code] = cls()
    return cls


@_register
class ARecord(RecordType):
    code = "A"

    def check_content(self, content):
        return [] if is_ipv4(content) else ["ERR_INVALID_IPV4"]


@_register
class AAAARecord(RecordType):
    code = "AAAA"

    def check_content(self, content):
        return [] if is_ipv6(content) else ["ERR_INVALID_IPV6"]


class _HostTargetRecord(RecordType):
    def check_content(self, content):
        return [] if is_valid_fqdn(content) else ["ERR_INVALID_FQDN"]


@_register
class CNAMERecord(_HostTargetRecord):
    code = "CNAME"


@_register
class NSRecord(_HostTargetRecord):
    code = "NS"
    default_ttl = 3600


@_register
class PTRRecord(_HostTargetRecord):
    code = "PTR"
    default_ttl = 86400


@_register
class MXRecord(RecordType):
    code = "MX"
    default_ttl = 600

    def build(self, fields):
        prio = _field(fields, "mx_priority")
        if not prio.isdigit():
            raise RecordInputError("ERR_MX_PRIORITY")
        target = _qualify(_field(fields, "content"), fields.get("fqdn_mode"))
        return BuiltRecord(self.wire_type, self.record_name(fields), f"{prio} {target}")

    def check_content(self, content):
        parts = content.split()
        if len(parts) != 2:
            return ["ERR_MX_FORMAT"]
        errors = []
        prio, target = parts
        if not _is_uint16(prio):
            errors.append("ERR_MX_PRIORITY")
        if not is_valid_fqdn(target):
            errors.append("ERR_MX_TARGET")
        return errors


@_register
class TXTRecord(RecordType):
    code = "TXT"

    def check_content(self, content):
        return ["ERR_TXT_LENGTH"] if len(content) > 512 else []


@_register
class SPFRecord(TXTRecord):
    code = "SPF"
    stored_as = "TXT"

    def check_content(self, content):
        return [] if _SPF_RE.match(content) else ["ERR_SPF_FORMAT"]


@_register
class DKIMRecord(TXTRecord):
    """TXT record carrying a DKIM public key."""

    code = "DKIM"
    stored_as = "TXT"
    default_ttl = 3600

    def build(self, fields):
        selector = _field(fields, "dkim_selector")
        key = _field(fields, "dkim_key")
        key_file = fields.get("dkim_file")
        if key_file:
            parsed = parse_dkim_text(str(key_file))
            if parsed is None:
                raise RecordInputError("ERR_DKIM_FILE")
            selector, key = parsed.selector, parsed.key
        if not selector or not key:
            raise RecordInputError("ERR_DKIM_FIELDS")

        meta = DkimMetadata(
            selector=selector,
            key=key,
            subdomain=_field(fields, "dkim_subdomain"),
            key_type="rsa",
            hash_algos="sha256",
            service_type="email",
        )
        content = f'"v=DKIM1; k=rsa; s=email; h=sha256; p={key}"'
        return BuiltRecord(self.wire_type, meta.record_name, content, dkim=meta)

    def check_content(self, content):
        joined = join_quoted(content)
        if joined is None:
            return ["ERR_DKIM_QUOTED"]

        errors = []
        if not joined.startswith("v=DKIM1"):
            errors.append("ERR_DKIM_VERSION")
        if not re.search(r"\bk=(rsa|ed25519)\b", joined, re.IGNORECASE):
            errors.append("ERR_DKIM_KEY_TYPE")

        m = re.search(r"\bp=([A-Za-z0-9+/=]{32,})", joined)
        if not m:
            errors.append("ERR_DKIM_KEY_MISSING")
            return errors

        key = m.group(1)
        try:
            decoded = base64.b64decode(key, validate=True)
        except (binascii.Error, ValueError):
            errors.append("ERR_DKIM_KEY_BASE64")
        else:
            if base64.b64encode(decoded).decode("ascii") != key:
                errors.append("ERR_DKIM_KEY_BASE64")
        return errors


@_register
class LOCRecord(RecordType):
    code = "LOC"
    default_ttl = 3600

    def check_content(self, content):
        return [] if _LOC_RE.match(content) else ["ERR_LOC_FORMAT"]


@_register
class CAARecord(RecordType):
    code = "CAA"
    default_ttl = 3600

    def check_content(self, content):
        return [] if _CAA_RE.match(content) else ["ERR_CAA_FORMAT"]


@_register
class SRVRecord(RecordType):
    code = "SRV"

    def build(self, fields):
        prio = _field(fields, "srv_priority")
        weight = _field(fields, "srv_weight")
        port = _field(fields, "srv_port")
        if not (prio.isdigit() and weight.isdigit() and port.isdigit()):
            raise RecordInputError("ERR_SRV_NUMBERS")

        target = _field(fields, "srv_target")
        if not target.rstrip("."):
            raise RecordInputError("ERR_SRV_TARGET")
        target = _qualify(target, fields.get("srv_target_mode"))
        return BuiltRecord(
            self.wire_type, self.record_name(fields), f"{prio} {weight} {port} {target}"
        )

    def check_content(self, content):
        parts = content.split()
        if len(parts) != 4:
            return ["ERR_SRV_FORMAT"]
        errors = []
        if not all(_is_uint16(p) for p in parts[:3]):
            errors.append("ERR_SRV_NUMBERS")
        if not is_valid_fqdn(parts[3]):
            errors.append("ERR_SRV_TARGET")
        return errors


@_register
class NAPTRRecord(RecordType):
    code = "NAPTR"

    def build(self, fields):
        order = _field(fields, "naptr_order")
        pref = _field(fields, "naptr_pref")
        if not (order.isdigit() and pref.isdigit()):
            raise RecordInputError("ERR_NAPTR_NUMBERS")

        flags = _field(fields, "naptr_flags")
        service = _field(fields, "naptr_service")
        regexp = _field(fields, "naptr_regexp")
        replacement = _field(fields, "naptr_replacement")
        if not (flags and service and regexp and replacement):
            raise RecordInputError("ERR_NAPTR_FIELDS")

        if replacement != ".":
            replacement = replacement.rstrip(".") + "."
        content = " ".join(
            [order, pref, _quote(flags), _quote(service), _quote(regexp), replacement]
        )
        return BuiltRecord(self.wire_type, self.record_name(fields), content)

    def check_content(self, content):
        parts = content.strip().split(None, 5)
        if len(parts) != 6:
            return ["ERR_NAPTR_FORMAT"]
        order, pref, flags, service, regexp, replacement = parts

        errors = []
        if not (_is_uint16(order) and _is_uint16(pref)):
            errors.append("ERR_NAPTR_NUMBERS")
        if not (
            re.match(r'^".*"$', flags)
            and re.match(r'^".+?"$', service)
            and re.match(r'^".*?"$', regexp)
        ):
            errors.append("ERR_NAPTR_QUOTES")
        if replacement != "." and not is_valid_fqdn(replacement):
            errors.append("ERR_NAPTR_REPLACEMENT")
        return errors


@_register
class URIRecord(RecordType):
    code = "URI"

    def check_content(self, content):
        parts = content.strip().split(None, 2)
        if len(parts) != 3:
            return ["ERR_URI_FORMAT"]
        priority, weight, target = parts
        errors = []
        if not (_is_uint16(priority) and _is_uint16(weight)):
            errors.append("ERR_URI_NUMBERS")
        if not re.match(r'^".+?"$', target):
            errors.append("ERR_URI_TARGET")
        return errors


def get_record_type(code: str) -> RecordType:
    variant = RECORD_TYPES.get((code or "").upper())
    if variant is None:
        raise RecordInputError("ERR_UNKNOWN_TYPE")
    return variant


def variant_for(record_type: str, content: str) -> RecordType:
    """Variant for a stored row; TXT rows holding a DKIM key validate as DKIM."""
    if record_type.upper() == "TXT" and looks_like_dkim(content):
        return RECORD_TYPES["DKIM"]
    return get_record_type(record_type)


def auto_ttl(code: str) -> int:
    variant = RECORD_TYPES.get((code or "").upper())
    return variant.default_ttl if variant else 300


def render_line(record_type: str, name: str, ttl: int, content: str) -> str:
    variant = RECORD_TYPES.get(record_type.upper())
    if variant is None:
        return f"{name}\t{ttl}\tIN\t{record_type.upper()}\t{content}"
    return variant.render(name, ttl, content)
