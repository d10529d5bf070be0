"""Dependency snapshot format for a source-hosting dependency submission API."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional, TextIO

from .purl import PackageURL, PurlError, parse_purl
from .sbom import SBOM, Format, Package, Scheme, SourceMetadata

log = logging.getLogger(__name__)

ID = "github-0-json"
APPLICATION_NAME = "syft"
DETECTOR_URL = "https://github.com/anchore/syft"
_DEV_VERSION = "0.0.0-dev"

# Suffixes recognised as archives, compressed tarballs before their single-extension forms.
_ARCHIVE_SUFFIXES = (
    ".tar.br",
    ".tbr",
    ".tar.bz2",
    ".tbz2",
    ".tar.gz",
    ".tgz",
    ".tar.lz4",
    ".tlz4",
    ".tar.sz",
    ".tsz",
    ".tar.xz",
    ".txz",
    ".tar.zst",
    ".rar",
    ".tar",
    ".zip",
    ".br",
    ".bz2",
    ".gz",
    ".lz4",
    ".sz",
    ".xz",
    ".zst",
)


class DependencyRelationship(str, Enum):
    """Whether a dependency is requested directly or through another dependency."""

    DIRECT = "direct"
    INDIRECT = "indirect"


class DependencyScope(str, Enum):
    """Whether a dependency is needed at runtime or only for development."""

    RUNTIME = "runtime"
    DEVELOPMENT = "development"


def _without_empty(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value}


@dataclass
class Job:
    correlator: str = ""
    id: str = ""
    html_url: str = ""

    def _to_dict(self) -> dict[str, Any]:
        return _without_empty(
            {"correlator": self.correlator, "id": self.id, "html_url": self.html_url}
        )


@dataclass
class DetectorMetadata:
    name: str = ""
    url: str = ""
    version: str = ""

    def _to_dict(self) -> dict[str, Any]:
        return _without_empty({"name": self.name, "url": self.url, "version": self.version})


@dataclass
class FileInfo:
    source_location: str = ""

    def _to_dict(self) -> dict[str, Any]:
        return _without_empty({"source_location": self.source_location})


@dataclass
class DependencyNode:
    package_url: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    relationship: Optional[DependencyRelationship] = None
    scope: Optional[DependencyScope] = None
    dependencies: list[str] = field(default_factory=list)

    def _to_dict(self) -> dict[str, Any]:
        return _without_empty(
            {
                "package_url": self.package_url,
                "metadata": dict(self.metadata),
                "relationship": self.relationship.value if self.relationship else "",
                "scope": self.scope.value if self.scope else "",
                "dependencies": list(self.dependencies),
            }
        )


@dataclass
class Manifest:
    """A collection of related dependencies found at one location."""

    name: str
    file: FileInfo = field(default_factory=FileInfo)
    metadata: dict[str, Any] = field(default_factory=dict)
    resolved: dict[str, DependencyNode] = field(default_factory=dict)

    def _to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name, "file": self.file._to_dict()}
        if self.metadata:
            out["metadata"] = dict(sorted(self.metadata.items()))
        if self.resolved:
            out["resolved"] = {
                key: self.resolved[key]._to_dict() for key in sorted(self.resolved)
            }
        return out


@dataclass
class DependencySnapshot:
    version: int = 0
    job: Job = field(default_factory=Job)
    sha: str = ""
    ref: str = ""
    detector: DetectorMetadata = field(default_factory=DetectorMetadata)
    metadata: dict[str, Any] = field(default_factory=dict)
    manifests: dict[str, Manifest] = field(default_factory=dict)
    scanned: str = ""

    def to_dict(self) -> dict[str, Any]:
        """The JSON-ready form, omitting empty optional fields."""
        out: dict[str, Any] = {"version": self.version, "job": self.job._to_dict()}
        if self.sha:
            out["sha"] = self.sha
        if self.ref:
            out["ref"] = self.ref
        out["detector"] = self.detector._to_dict()
        if self.metadata:
            out["metadata"] = dict(sorted(self.metadata.items()))
        if self.manifests:
            out["manifests"] = {
                key: self.manifests[key]._to_dict() for key in sorted(self.manifests)
            }
        if self.scanned:
            out["scanned"] = self.scanned
        return out


def _rfc3339(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.astimezone()
    if moment.utcoffset() == timedelta(0):
        return moment.strftime("%Y-%m-%dT%H:%M:%SZ")
    return moment.isoformat(timespec="seconds")


def _snapshot_metadata(sbom: SBOM) -> dict[str, Any]:
    out: dict[str, Any] = {}
    distro = sbom.artifacts.linux_distribution
    if distro is not None:
        qualifiers = []
        if distro.id_like:
            qualifiers.append(("like", ",".join(distro.id_like)))
        purl = PackageURL("generic", "", distro.id, distro.version_id, qualifiers, "")
        out["syft:distro"] = purl.to_string()
    return out


def _filesystem(package: Package) -> str:
    if package.locations:
        return package.locations[0].coordinates.file_system_id
    return ""


def is_archive(path: str) -> bool:
    """True if the path has an archive or compressed-file extension."""
    return path.endswith(_ARCHIVE_SUFFIXES)


def to_path(src: SourceMetadata, package: Package) -> str:
    """Describe where a package was found, relative to the scanned source."""
    input_path = src.path.removeprefix("./")
    if input_path == ".":
        input_path = ""
    user_input = src.image_metadata.user_input
    if package.locations:
        location = package.locations[0]
        package_path = location.virtual_path or location.coordinates.real_path
        package_path = package_path.removeprefix("/")
        if src.scheme == Scheme.IMAGE:
            image = user_input.replace(":/", "//")
            return f"{image}:/{package_path}"
        if src.scheme == Scheme.FILE:
            if is_archive(input_path):
                return f"{input_path}:/{package_path}"
            return input_path
        if src.scheme == Scheme.DIRECTORY:
            if input_path:
                return f"{input_path}/{package_path}"
            return package_path
    return f"{input_path}{user_input}"


def _dependency_name(package: Package) -> str:
    try:
        purl = parse_purl(package.purl)
    except PurlError as err:
        log.warning("Invalid PURL for package: %r PURL: %r (%s)", package.name, package.purl, err)
        return ""
    purl.qualifiers = []
    return purl.to_string()


def _dependencies(sbom: SBOM, package: Package) -> list[str]:
    package_id = package.id()
    return [
        _dependency_name(rel.to)
        for rel in sbom.relationships
        if rel.from_.id() == package_id and isinstance(rel.to, Package)
    ]


def _manifests(sbom: SBOM) -> dict[str, Manifest]:
    manifests: dict[str, Manifest] = {}
    for package in sbom.artifacts.package_catalog.sorted():
        path = to_path(sbom.source, package)
        manifest = manifests.get(path)
        if manifest is None:
            manifest = Manifest(name=path, file=FileInfo(source_location=path))
            fs = _filesystem(package)
            if fs:
                manifest.metadata = {"syft:filesystem": fs}
            manifests[path] = manifest
        manifest.resolved[_dependency_name(package)] = DependencyNode(
            package_url=package.purl,
            metadata={},
            relationship=DependencyRelationship.DIRECT,
            scope=DependencyScope.RUNTIME,
            dependencies=_dependencies(sbom, package),
        )
    return manifests


def to_github_model(sbom: SBOM, now: Optional[datetime] = None) -> DependencySnapshot:
    """Build a dependency snapshot from an SBOM, stamped with the given scan time."""
    scanned = _rfc3339(now if now is not None else datetime.now().astimezone())
    version = sbom.descriptor.version
    if version in ("", "[not provided]"):
        version = _DEV_VERSION
    return DependencySnapshot(
        version=0,
        detector=DetectorMetadata(name=APPLICATION_NAME, url=DETECTOR_URL, version=version),
        metadata=_snapshot_metadata(sbom),
        manifests=_manifests(sbom),
        scanned=scanned,
    )


_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def encode(sbom: SBOM, output: TextIO) -> None:
    """Write the dependency snapshot as indented JSON."""
    text = json.dumps(to_github_model(sbom).to_dict(), indent=2, ensure_ascii=False)
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    output.write(text)


def format() -> Format:  # noqa: A001 - the public name of the format factory
    """The dependency snapshot format; encode only."""
    return Format(id=ID, encoder=encode)