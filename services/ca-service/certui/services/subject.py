"""Subject DN and Subject Alternative Name building."""

import ipaddress
import re
from dataclasses import dataclass

from cryptography import x509
from cryptography.x509.oid import NameOID

from certui.errors import InvalidSubjectAltName, MissingCommonName

# (field, short name, OID) in canonical emission order
SUBJECT_FIELDS = [
    ("country", "C", NameOID.COUNTRY_NAME),
    ("state", "ST", NameOID.STATE_OR_PROVINCE_NAME),
    ("locality", "L", NameOID.LOCALITY_NAME),
    ("organization", "O", NameOID.ORGANIZATION_NAME),
    ("organizational_unit", "OU", NameOID.ORGANIZATIONAL_UNIT_NAME),
    ("common_name", "CN", NameOID.COMMON_NAME),
    ("email", "emailAddress", NameOID.EMAIL_ADDRESS),
]

SAN_DNS = "DNS"
SAN_IP = "IP"
SAN_EMAIL = "email"

# Explicit prefixes; the slice length is the prefix length.
SAN_PREFIXES = [
    (("dns:", "dns="), SAN_DNS),
    (("ip:", "ip="), SAN_IP),
    (("email:", "email="), SAN_EMAIL),
]

IPV4_PATTERN = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")
IPV6_PATTERN = re.compile(r"^[0-9a-fA-F:]+$")


@dataclass(frozen=True)
class Subject:
    attributes: tuple  # ((short, oid, value), ...)

    def __str__(self) -> str:
        return "".join(f"/{short}={value}" for short, _, value in self.attributes)

    def to_name(self) -> x509.Name:
        return x509.Name([x509.NameAttribute(oid, value) for _, oid, value in self.attributes])


@dataclass(frozen=True)
class SanEntry:
    kind: str  # DNS / IP / email
    index: int
    value: str

    @property
    def label(self) -> str:
        return f"{self.kind}.{self.index}"


def _field(fields, name: str) -> str:
    if isinstance(fields, dict):
        value = fields.get(name)
    else:
        value = getattr(fields, name, None)
    return (value or "").strip()


def build_subject(fields, include_email: bool = False) -> Subject:
    """Build the canonical subject from identity fields.

    ``fields`` may be a mapping or any object with the identity attributes.
    Blank fields are left out entirely. Email is only part of request
    subjects, never of the CA subject.
    """
    if not _field(fields, "common_name"):
        raise MissingCommonName()

    attributes = []
    for name, short, oid in SUBJECT_FIELDS:
        if name == "email" and not include_email:
            continue
        value = _field(fields, name)
        if value:
            attributes.append((short, oid, value))
    return Subject(attributes=tuple(attributes))


def _classify(entry: str) -> tuple[str | None, str]:
    lowered = entry.lower()
    for prefixes, kind in SAN_PREFIXES:
        if lowered.startswith(prefixes):
            return kind, entry[len(prefixes[0]):].strip()

    if IPV4_PATTERN.match(entry):
        return SAN_IP, entry
    if ":" in entry and IPV6_PATTERN.match(entry):
        return SAN_IP, entry
    if "@" in entry:
        return SAN_EMAIL, entry
    return SAN_DNS, entry


def parse_san(text: str | None) -> list[SanEntry]:
    """Parse a comma separated SAN list into typed, numbered entries.

    Counters are kept per type and start at 1, regardless of whether an
    entry carried an explicit prefix or was inferred.
    """
    if not text or not text.strip():
        return []

    counters = {SAN_DNS: 0, SAN_IP: 0, SAN_EMAIL: 0}
    entries = []
    for raw in text.split(","):
        entry = raw.strip()
        if not entry:
            continue
        kind, value = _classify(entry)
        if not value:
            continue
        counters[kind] += 1
        entries.append(SanEntry(kind=kind, index=counters[kind], value=value))
    return entries


def render_san_section(entries: list[SanEntry]) -> str:
    """Render entries as an ``[alt_names]`` request extension fragment."""
    return "".join(f"{e.label} = {e.value}\n" for e in entries)


def to_general_names(entries: list[SanEntry]) -> list[x509.GeneralName]:
    names = []
    for entry in entries:
        try:
            if entry.kind == SAN_IP:
                names.append(x509.IPAddress(ipaddress.ip_address(entry.value)))
            elif entry.kind == SAN_EMAIL:
                names.append(x509.RFC822Name(entry.value))
            else:
                names.append(x509.DNSName(entry.value))
        except ValueError:
            raise InvalidSubjectAltName(f"Invalid {entry.kind} entry in SAN: {entry.value}")
    return names


def build_san_extension(text: str | None) -> x509.SubjectAlternativeName | None:
    """SAN extension for ``text``, or None when it yields no entries."""
    entries = parse_san(text)
    if not entries:
        return None
    return x509.SubjectAlternativeName(to_general_names(entries))
