"""Core SBOM data model: packages, locations, relationships and formats."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, TextIO


class FormatError(ValueError):
    """Raised when a document cannot be encoded, decoded or validated."""


class Scheme(str, Enum):
    IMAGE = "ImageScheme"
    DIRECTORY = "DirectoryScheme"
    FILE = "FileScheme"


class RelationshipType(str, Enum):
    CONTAINS = "contains"
    OWNERSHIP_BY_FILE_OVERLAP = "ownership-by-file-overlap"


def _digest_of(payload: Any) -> str:
    text = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class Coordinates:
    real_path: str = ""
    file_system_id: str = ""

    def id(self) -> str:
        """A stable identifier derived from the path and file system."""
        return _digest_of({"path": self.real_path, "layer": self.file_system_id})


@dataclass(frozen=True)
class Location:
    coordinates: Coordinates = field(default_factory=Coordinates)
    virtual_path: str = ""

    @property
    def real_path(self) -> str:
        return self.coordinates.real_path


@dataclass
class Package:
    name: str = ""
    version: str = ""
    found_by: str = ""
    locations: list[Location] = field(default_factory=list)
    licenses: Optional[list[str]] = None
    language: str = ""
    type: str = ""
    cpes: list[str] = field(default_factory=list)
    purl: str = ""
    metadata_type: str = ""
    metadata: Any = None
    _override: Optional[str] = field(default=None, repr=False, compare=False)

    def id(self) -> str:
        """The overridden identifier, or one derived from the package content."""
        if self._override is not None:
            return self._override
        return _digest_of(
            {
                "name": self.name,
                "version": self.version,
                "foundBy": self.found_by,
                "licenses": self.licenses,
                "language": self.language,
                "type": self.type,
                "cpes": self.cpes,
                "purl": self.purl,
                "metadataType": self.metadata_type,
                "metadata": self.metadata,
            }
        )

    def override_id(self, value: str) -> None:
        self._override = value


class Catalog:
    """A collection of packages keyed by identifier."""

    def __init__(self, *packages: Package) -> None:
        self._packages: dict[str, Package] = {}
        self.add(*packages)

    def add(self, *args: Package) -> None:
        for package in args:
            existing = self._packages.setdefault(package.id(), package)
            if existing is not package:
                existing.locations.extend(
                    loc for loc in package.locations if loc not in existing.locations
                )

    def package(self, package_id: str) -> Optional[Package]:
        return self._packages.get(package_id)

    def sorted(self) -> list[Package]:
        def key(p: Package) -> tuple:
            first = p.locations[0].real_path if p.locations else ""
            return (p.name, p.version, p.type, first)

        return sorted(self._packages.values(), key=key)

    def package_count(self) -> int:
        return len(self._packages)


@dataclass
class Relationship:
    from_: Any
    to: Any
    type: RelationshipType
    data: Any = None


@dataclass
class LinuxRelease:
    pretty_name: str = ""
    name: str = ""
    id: str = ""
    id_like: list[str] = field(default_factory=list)
    version: str = ""
    version_id: str = ""
    version_codename: str = ""
    build_id: str = ""
    image_id: str = ""
    image_version: str = ""
    variant: str = ""
    variant_id: str = ""
    home_url: str = ""
    support_url: str = ""
    bug_report_url: str = ""
    privacy_policy_url: str = ""
    cpe_name: str = ""


@dataclass
class LayerMetadata:
    media_type: str = ""
    digest: str = ""
    size: int = 0


@dataclass
class ImageMetadata:
    user_input: str = ""
    id: str = ""
    manifest_digest: str = ""
    media_type: str = ""
    tags: Optional[list[str]] = None
    size: int = 0
    layers: list[LayerMetadata] = field(default_factory=list)
    raw_manifest: Optional[bytes] = None
    raw_config: Optional[bytes] = None
    repo_digests: Optional[list[str]] = None
    architecture: str = ""


@dataclass
class SourceMetadata:
    scheme: Optional[Scheme] = None
    path: str = ""
    image_metadata: ImageMetadata = field(default_factory=ImageMetadata)


@dataclass
class FileMetadata:
    mode: int = 0
    type: str = ""
    link_destination: str = ""
    user_id: int = 0
    group_id: int = 0
    mime_type: str = ""


@dataclass(frozen=True)
class Digest:
    algorithm: str
    value: str


@dataclass
class Descriptor:
    name: str = ""
    version: str = ""
    configuration: Any = None


@dataclass
class Artifacts:
    package_catalog: Catalog = field(default_factory=Catalog)
    file_metadata: dict[Coordinates, FileMetadata] = field(default_factory=dict)
    file_digests: dict[Coordinates, list[Digest]] = field(default_factory=dict)
    file_classifications: dict[Coordinates, list[dict]] = field(default_factory=dict)
    file_contents: dict[Coordinates, str] = field(default_factory=dict)
    secrets: dict[Coordinates, list[dict]] = field(default_factory=dict)
    linux_distribution: Optional[LinuxRelease] = None


@dataclass
class SBOM:
    artifacts: Artifacts = field(default_factory=Artifacts)
    relationships: list[Relationship] = field(default_factory=list)
    source: SourceMetadata = field(default_factory=SourceMetadata)
    descriptor: Descriptor = field(default_factory=Descriptor)


def all_coordinates(sbom: SBOM) -> list[Coordinates]:
    """Every file coordinate referenced by file data or relationships, sorted."""
    art = sbom.artifacts
    found: set[Coordinates] = set()
    for mapping in (
        art.file_metadata,
        art.file_digests,
        art.file_classifications,
        art.file_contents,
        art.secrets,
    ):
        found.update(mapping)
    for rel in sbom.relationships:
        found.update(end for end in (rel.from_, rel.to) if isinstance(end, Coordinates))
    return sorted(found, key=lambda c: (c.real_path, c.file_system_id))


def _read_text(data: Any) -> str:
    if hasattr(data, "read"):
        data = data.read()
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("utf-8")
    return data


@dataclass
class Format:
    """A named document format with optional decode and validate support."""

    id: str
    encoder: Callable[[SBOM, TextIO], None]
    decoder: Optional[Callable[[str], SBOM]] = None
    validator: Optional[Callable[[str], None]] = None

    def encode(self, sbom: SBOM, output: TextIO) -> None:
        self.encoder(sbom, output)

    def decode(self, data: Any) -> SBOM:
        if self.decoder is None:
            raise FormatError(f"format {self.id} does not support decoding")
        return self.decoder(_read_text(data))

    def validate(self, data: Any) -> None:
        if self.validator is None:
            raise FormatError(f"format {self.id} does not support validation")
        self.validator(_read_text(data))