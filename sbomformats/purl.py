"""Package URL construction and parsing."""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import quote, unquote


class PurlError(ValueError):
    """Raised for malformed package URLs."""


@dataclass
class PackageURL:
    type: str
    namespace: str = ""
    name: str = ""
    version: str = ""
    qualifiers: list[tuple[str, str]] = field(default_factory=list)
    subpath: str = ""

    def to_string(self) -> str:
        out = f"pkg:{self.type}/"
        if self.namespace:
            out += "/".join(quote(seg, safe="") for seg in self.namespace.split("/")) + "/"
        out += quote(self.name, safe="")
        if self.version:
            out += "@" + quote(self.version, safe="")
        if self.qualifiers:
            pairs = sorted(self.qualifiers)
            out += "?" + "&".join(f"{k}={quote(v, safe='')}" for k, v in pairs)
        if self.subpath:
            out += "#" + "/".join(quote(s, safe="") for s in self.subpath.strip("/").split("/"))
        return out

    def __str__(self) -> str:
        return self.to_string()


def parse_purl(text: str) -> PackageURL:
    """Parse a ``pkg:`` URL into its parts."""
    if not text.startswith("pkg:"):
        raise PurlError(f"purl is missing the pkg scheme: {text!r}")
    rest = text[4:]
    rest, _, subpath = rest.partition("#")
    rest, _, query = rest.partition("?")
    rest = rest.lstrip("/")
    ptype, sep, remainder = rest.partition("/")
    if not ptype or not sep:
        raise PurlError(f"purl is missing type or name: {text!r}")
    version = ""
    if "@" in remainder:
        remainder, version = remainder.rsplit("@", 1)
        version = unquote(version)
    segments = [s for s in remainder.split("/") if s]
    if not segments:
        raise PurlError(f"purl is missing a name: {text!r}")
    qualifiers = []
    for pair in filter(None, query.split("&")):
        key, eq, value = pair.partition("=")
        if not eq or not key:
            raise PurlError(f"invalid qualifier {pair!r}")
        if value:
            qualifiers.append((key.lower(), unquote(value)))
    return PackageURL(
        type=ptype.lower(),
        namespace="/".join(unquote(s) for s in segments[:-1]),
        name=unquote(segments[-1]),
        version=version,
        qualifiers=qualifiers,
        subpath=unquote(subpath.strip("/")),
    )