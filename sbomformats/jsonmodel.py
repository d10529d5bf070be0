"""JSON document model for the native SBOM format."""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from .sbom import Coordinates, Digest, FormatError, ImageMetadata, LayerMetadata

log = logging.getLogger(__name__)

GO_BINARY_METADATA_TYPE = "Go" "langBinMetadata"

KNOWN_METADATA_TYPES = frozenset(
    {
        "AlpmMetadata",
        "ApkMetadata",
        "RpmdbMetadata",
        "DpkgMetadata",
        "JavaMetadata",
        "RustCargoPackageMetadata",
        "GemMetadata",
        "KbPackageMetadata",
        "PythonPackageMetadata",
        "NpmPackageJsonMetadata",
        "PhpComposerJsonMetadata",
        GO_BINARY_METADATA_TYPE,
        "DartPubMetadata",
        "DotnetDepsMetadata",
    }
)


def _coords_to_dict(c: Coordinates) -> dict:
    out = {"path": c.real_path}
    if c.file_system_id:
        out["layerID"] = c.file_system_id
    return out


def _coords_from_dict(d: dict) -> Coordinates:
    return Coordinates(d.get("path", ""), d.get("layerID", ""))


def _b64(raw: Optional[bytes]) -> Optional[str]:
    return None if raw is None else base64.b64encode(raw).decode("ascii")


def _unb64(text: Optional[str]) -> Optional[bytes]:
    return None if text is None else base64.b64decode(text)


def _image_to_dict(m: ImageMetadata) -> dict:
    out = {
        "userInput": m.user_input,
        "imageID": m.id,
        "manifestDigest": m.manifest_digest,
        "mediaType": m.media_type,
        "tags": m.tags,
        "imageSize": m.size,
        "layers": [
            {"mediaType": l.media_type, "digest": l.digest, "size": l.size} for l in m.layers
        ],
        "manifest": _b64(m.raw_manifest),
        "config": _b64(m.raw_config),
        "repoDigests": m.repo_digests,
    }
    if m.architecture:
        out["architecture"] = m.architecture
    return out


def _image_from_dict(d: Any) -> ImageMetadata:
    if not isinstance(d, dict):
        raise FormatError("image source target must be an object")
    return ImageMetadata(
        user_input=d.get("userInput", ""),
        id=d.get("imageID", ""),
        manifest_digest=d.get("manifestDigest", ""),
        media_type=d.get("mediaType", ""),
        tags=d.get("tags"),
        size=d.get("imageSize", 0),
        layers=[
            LayerMetadata(l.get("mediaType", ""), l.get("digest", ""), l.get("size", 0))
            for l in d.get("layers") or []
        ],
        raw_manifest=_unb64(d.get("manifest")),
        raw_config=_unb64(d.get("config")),
        repo_digests=d.get("repoDigests"),
        architecture=d.get("architecture", ""),
    )


@dataclass
class Schema:
    version: str = ""
    url: str = ""


@dataclass
class JSONDescriptor:
    name: str = ""
    version: str = ""
    configuration: Any = None


@dataclass
class JSONRelationship:
    parent: str
    child: str
    type: str
    metadata: Any = None


@dataclass
class JSONPackage:
    id: str = ""
    name: str = ""
    version: str = ""
    type: str = ""
    found_by: str = ""
    locations: list[Coordinates] = field(default_factory=list)
    licenses: list[str] = field(default_factory=list)
    language: str = ""
    cpes: list[str] = field(default_factory=list)
    purl: str = ""
    metadata_type: str = ""
    metadata: Any = None

    @classmethod
    def from_dict(cls, data: dict) -> "JSONPackage":
        if not isinstance(data, dict):
            raise FormatError("package must be a JSON object")
        pkg = cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            version=data.get("version", ""),
            type=data.get("type", ""),
            found_by=data.get("foundBy", ""),
            locations=[_coords_from_dict(c) for c in data.get("locations") or []],
            licenses=list(data.get("licenses") or []),
            language=data.get("language", ""),
            cpes=list(data.get("cpes") or []),
            purl=data.get("purl", ""),
            metadata_type=data.get("metadataType", "") or "",
        )
        raw = data.get("metadata")
        if pkg.metadata_type in KNOWN_METADATA_TYPES:
            if raw is not None and not isinstance(raw, dict):
                raise FormatError(f"metadata for {pkg.metadata_type} must be an object")
            pkg.metadata = raw if raw is not None else {}
        else:
            log.warning(
                "unknown package metadata type=%r for packageID=%r", pkg.metadata_type, pkg.id
            )
        return pkg


@dataclass
class FileMetadataEntry:
    mode: int = 0
    type: str = ""
    link_destination: str = ""
    user_id: int = 0
    group_id: int = 0
    mime_type: str = ""


@dataclass
class JSONFile:
    id: str
    location: Coordinates
    metadata: Optional[FileMetadataEntry] = None
    contents: str = ""
    digests: list[Digest] = field(default_factory=list)
    classifications: list[dict] = field(default_factory=list)


@dataclass
class Secrets:
    location: Coordinates
    secrets: list[dict] = field(default_factory=list)


@dataclass
class JSONSource:
    type: str = ""
    target: Any = None

    @classmethod
    def from_dict(cls, data: dict) -> "JSONSource":
        kind = data.get("type", "")
        target = data.get("target")
        if kind in ("directory", "file"):
            if not isinstance(target, str):
                target = json.dumps(target)
            return cls(kind, target)
        if kind == "image":
            return cls(kind, _image_from_dict(target))
        raise FormatError(f"unsupported package metadata type: {kind}")


def parse_id_likes(value: Any) -> list[str]:
    """Accept a single string or a list of strings."""
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise FormatError(f"invalid idLike value: {value!r}")


_RELEASE_KEYS = [
    ("pretty_name", "prettyName"),
    ("name", "name"),
    ("id", "id"),
    ("id_like", "idLike"),
    ("version", "version"),
    ("version_id", "versionID"),
    ("version_codename", "versionCodename"),
    ("build_id", "buildID"),
    ("image_id", "imageID"),
    ("image_version", "imageVersion"),
    ("variant", "variant"),
    ("variant_id", "variantID"),
    ("home_url", "homeURL"),
    ("support_url", "supportURL"),
    ("bug_report_url", "bugReportURL"),
    ("privacy_policy_url", "privacyPolicyURL"),
    ("cpe_name", "cpeName"),
]


@dataclass
class JSONLinuxRelease:
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

    @classmethod
    def from_dict(cls, data: dict) -> "JSONLinuxRelease":
        kwargs = {}
        for attr, key in _RELEASE_KEYS:
            if data.get(key) is None:
                continue
            kwargs[attr] = parse_id_likes(data[key]) if attr == "id_like" else data[key]
        return cls(**kwargs)

    def _to_dict(self) -> dict:
        return {key: getattr(self, attr) for attr, key in _RELEASE_KEYS if getattr(self, attr)}


def _file_to_dict(f: JSONFile) -> dict:
    out: dict = {"id": f.id, "location": _coords_to_dict(f.location)}
    if f.metadata is not None:
        m = f.metadata
        md = {"mode": m.mode, "type": m.type}
        if m.link_destination:
            md["linkDestination"] = m.link_destination
        md.update({"userID": m.user_id, "groupID": m.group_id, "mimeType": m.mime_type})
        out["metadata"] = md
    if f.contents:
        out["contents"] = f.contents
    if f.digests:
        out["digests"] = [{"algorithm": d.algorithm, "value": d.value} for d in f.digests]
    if f.classifications:
        out["classifications"] = f.classifications
    return out


def _file_from_dict(d: dict) -> JSONFile:
    md = d.get("metadata")
    meta = None
    if md is not None:
        meta = FileMetadataEntry(
            mode=md.get("mode", 0),
            type=md.get("type", ""),
            link_destination=md.get("linkDestination", ""),
            user_id=md.get("userID", 0),
            group_id=md.get("groupID", 0),
            mime_type=md.get("mimeType", ""),
        )
    return JSONFile(
        id=d.get("id", ""),
        location=_coords_from_dict(d.get("location") or {}),
        metadata=meta,
        contents=d.get("contents", ""),
        digests=[Digest(x.get("algorithm", ""), x.get("value", "")) for x in d.get("digests") or []],
        classifications=list(d.get("classifications") or []),
    )


def _package_to_dict(p: JSONPackage) -> dict:
    out = {
        "id": p.id,
        "name": p.name,
        "version": p.version,
        "type": p.type,
        "foundBy": p.found_by,
        "locations": [_coords_to_dict(c) for c in p.locations],
        "licenses": p.licenses,
        "language": p.language,
        "cpes": p.cpes,
        "purl": p.purl,
    }
    if p.metadata_type:
        out["metadataType"] = p.metadata_type
    if p.metadata is not None:
        out["metadata"] = p.metadata
    return out


def _source_to_dict(s: JSONSource) -> dict:
    target = _image_to_dict(s.target) if isinstance(s.target, ImageMetadata) else s.target
    return {"type": s.type, "target": target}


@dataclass
class Document:
    artifacts: list[JSONPackage] = field(default_factory=list)
    artifact_relationships: list[JSONRelationship] = field(default_factory=list)
    files: list[JSONFile] = field(default_factory=list)
    secrets: list[Secrets] = field(default_factory=list)
    source: JSONSource = field(default_factory=JSONSource)
    distro: JSONLinuxRelease = field(default_factory=JSONLinuxRelease)
    descriptor: JSONDescriptor = field(default_factory=JSONDescriptor)
    schema: Schema = field(default_factory=Schema)

    @classmethod
    def from_dict(cls, data: dict) -> "Document":
        if not isinstance(data, dict):
            raise FormatError("document must be a JSON object")
        desc = data.get("descriptor") or {}
        schema = data.get("schema") or {}
        return cls(
            artifacts=[JSONPackage.from_dict(p) for p in data.get("artifacts") or []],
            artifact_relationships=[
                JSONRelationship(r.get("parent", ""), r.get("child", ""), r.get("type", ""), r.get("metadata"))
                for r in data.get("artifactRelationships") or []
            ],
            files=[_file_from_dict(f) for f in data.get("files") or []],
            secrets=[
                Secrets(_coords_from_dict(s.get("location") or {}), list(s.get("secrets") or []))
                for s in data.get("secrets") or []
            ],
            source=JSONSource.from_dict(data["source"]) if data.get("source") else JSONSource(),
            distro=JSONLinuxRelease.from_dict(data.get("distro") or {}),
            descriptor=JSONDescriptor(desc.get("name", ""), desc.get("version", ""), desc.get("configuration")),
            schema=Schema(schema.get("version", ""), schema.get("url", "")),
        )

    def to_dict(self) -> dict:
        out: dict = {
            "artifacts": [_package_to_dict(p) for p in self.artifacts],
            "artifactRelationships": [],
        }
        for r in self.artifact_relationships:
            rel = {"parent": r.parent, "child": r.child, "type": r.type}
            if r.metadata is not None:
                rel["metadata"] = r.metadata
            out["artifactRelationships"].append(rel)
        if self.files:
            out["files"] = [_file_to_dict(f) for f in self.files]
        if self.secrets:
            out["secrets"] = [
                {"location": _coords_to_dict(s.location), "secrets": s.secrets} for s in self.secrets
            ]
        out["source"] = _source_to_dict(self.source)
        out["distro"] = self.distro._to_dict()
        desc = {"name": self.descriptor.name, "version": self.descriptor.version}
        if self.descriptor.configuration is not None:
            desc["configuration"] = self.descriptor.configuration
        out["descriptor"] = desc
        out["schema"] = {"version": self.schema.version, "url": self.schema.url}
        return out