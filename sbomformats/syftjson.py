"""Encoder, decoder and validator for the native JSON SBOM format."""

from __future__ import annotations

import base64
import io
import json
import logging
import re
from dataclasses import asdict, fields, is_dataclass, replace
from enum import Enum
from typing import Any, Optional, TextIO

from .jsonmodel import (
    Document,
    FileMetadataEntry,
    JSONDescriptor,
    JSONFile,
    JSONLinuxRelease,
    JSONPackage,
    JSONRelationship,
    JSONSource,
    Schema,
    Secrets,
)
from .sbom import (
    SBOM,
    Artifacts,
    Catalog,
    Coordinates,
    Descriptor,
    FileMetadata,
    Format,
    FormatError,
    ImageMetadata,
    LinuxRelease,
    Location,
    Package,
    Relationship,
    RelationshipType,
    Scheme,
    SourceMetadata,
    all_coordinates,
)

log = logging.getLogger(__name__)

ID = "syft-3-json"
APPLICATION_NAME = "syft"
JSON_SCHEMA_VERSION = "3.3.0"
_SCHEMA_URL = "https://raw.githubusercontent.com/anchore/syft/main/schema/json/schema-{version}.json"
_SCHEMA_MARKER = "anchore/syft"

_CPE_FORMATTED = re.compile(r"^cpe:2\.3:[aho*\-](?::(?:\\.|[^:\\])+){10}$")
_CPE_URI = re.compile(r"^cpe:/[aho]?(?::[^:]*){0,6}$")


def _is_valid_cpe(value: str) -> bool:
    return bool(_CPE_FORMATTED.match(value) or _CPE_URI.match(value))


def _read_text(data: Any) -> str:
    if hasattr(data, "read"):
        data = data.read()
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("utf-8")
    if not isinstance(data, str):
        raise FormatError(f"cannot read document from {type(data).__name__}")
    return data


def _first_json_value(text: str) -> Any:
    """Decode the first JSON value in the text, ignoring anything after it."""
    value, _ = json.JSONDecoder().raw_decode(text.lstrip())
    return value


def _json_default(obj: Any) -> Any:
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, (bytes, bytearray)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"object of type {type(obj).__name__} is not JSON serializable")


# --- model construction -------------------------------------------------------


def to_source_model(src: SourceMetadata) -> JSONSource:
    """Describe the cataloged source for the JSON document."""
    if src.scheme == Scheme.IMAGE:
        metadata = replace(
            src.image_metadata,
            repo_digests=[] if src.image_metadata.repo_digests is None else src.image_metadata.repo_digests,
            tags=[] if src.image_metadata.tags is None else src.image_metadata.tags,
        )
        return JSONSource("image", metadata)
    if src.scheme == Scheme.DIRECTORY:
        return JSONSource("directory", src.path)
    if src.scheme == Scheme.FILE:
        return JSONSource("file", src.path)
    scheme = src.scheme.value if isinstance(src.scheme, Enum) else src.scheme
    raise FormatError(f"unsupported source: {scheme!r}")


def _to_linux_release_model(release: Optional[LinuxRelease]) -> JSONLinuxRelease:
    if release is None:
        return JSONLinuxRelease()
    values = {f.name: getattr(release, f.name) for f in fields(JSONLinuxRelease)}
    values["id_like"] = list(release.id_like or [])
    return JSONLinuxRelease(**values)


def _to_file_metadata_entry(
    coordinates: Coordinates, metadata: Optional[FileMetadata]
) -> Optional[FileMetadataEntry]:
    if metadata is None:
        return None
    try:
        # the mode is reported as its octal digits read as a decimal number
        mode = int(f"{metadata.mode:o}")
    except (TypeError, ValueError) as err:
        log.warning(
            "invalid mode found in file catalog @ location=%r mode=%r: %s",
            coordinates,
            metadata.mode,
            err,
        )
        mode = 0
    return FileMetadataEntry(
        mode=mode,
        type=metadata.type,
        link_destination=metadata.link_destination,
        user_id=metadata.user_id,
        group_id=metadata.group_id,
        mime_type=metadata.mime_type,
    )


def _to_files(sbom: SBOM) -> list[JSONFile]:
    art = sbom.artifacts
    results = [
        JSONFile(
            id=coordinates.id(),
            location=coordinates,
            metadata=_to_file_metadata_entry(coordinates, art.file_metadata.get(coordinates)),
            contents=art.file_contents.get(coordinates, ""),
            digests=list(art.file_digests.get(coordinates) or []),
            classifications=list(art.file_classifications.get(coordinates) or []),
        )
        for coordinates in all_coordinates(sbom)
    ]
    return sorted(results, key=lambda f: f.location.real_path)


def _to_secrets(data: dict[Coordinates, list[dict]]) -> list[Secrets]:
    results = [Secrets(location, list(found)) for location, found in data.items()]
    return sorted(results, key=lambda s: s.location.real_path)


def _to_package_model(p: Package) -> JSONPackage:
    return JSONPackage(
        id=p.id(),
        name=p.name,
        version=p.version,
        type=p.type,
        found_by=p.found_by,
        locations=[location.coordinates for location in p.locations],
        licenses=list(p.licenses) if p.licenses is not None else [],
        language=p.language,
        cpes=list(p.cpes),
        purl=p.purl,
        metadata_type=p.metadata_type,
        metadata=p.metadata,
    )


def _to_relationship_model(relationship: Relationship) -> JSONRelationship:
    kind = relationship.type
    return JSONRelationship(
        parent=relationship.from_.id(),
        child=relationship.to.id(),
        type=kind.value if isinstance(kind, Enum) else str(kind),
        metadata=relationship.data,
    )


def to_format_model(sbom: SBOM) -> Document:
    """Build the JSON document model for an SBOM."""
    try:
        source = to_source_model(sbom.source)
    except FormatError as err:
        log.warning("unable to create syft-json source object: %s", err)
        source = JSONSource()

    catalog = sbom.artifacts.package_catalog
    return Document(
        artifacts=[_to_package_model(p) for p in catalog.sorted()] if catalog is not None else [],
        artifact_relationships=[_to_relationship_model(r) for r in sbom.relationships],
        files=_to_files(sbom),
        secrets=_to_secrets(sbom.artifacts.secrets),
        source=source,
        distro=_to_linux_release_model(sbom.artifacts.linux_distribution),
        descriptor=JSONDescriptor(
            name=sbom.descriptor.name,
            version=sbom.descriptor.version,
            configuration=sbom.descriptor.configuration,
        ),
        schema=Schema(
            version=JSON_SCHEMA_VERSION,
            url=_SCHEMA_URL.format(version=JSON_SCHEMA_VERSION),
        ),
    )


# --- model interpretation -----------------------------------------------------


def to_syft_source_data(src: JSONSource) -> Optional[SourceMetadata]:
    """Turn a JSON source description back into source metadata, or None if unknown."""
    if src.type in ("directory", "file"):
        if not isinstance(src.target, str):
            raise FormatError(f"{src.type} source target must be a string")
        scheme = Scheme.DIRECTORY if src.type == "directory" else Scheme.FILE
        return SourceMetadata(scheme=scheme, path=src.target)
    if src.type == "image":
        if not isinstance(src.target, ImageMetadata):
            raise FormatError("image source target must be image metadata")
        return SourceMetadata(scheme=Scheme.IMAGE, image_metadata=src.target)
    return None


def _to_syft_linux_release(release: JSONLinuxRelease) -> Optional[LinuxRelease]:
    if release == JSONLinuxRelease():
        return None
    values = {f.name: getattr(release, f.name) for f in fields(LinuxRelease)}
    values["id_like"] = list(release.id_like)
    return LinuxRelease(**values)


def _to_syft_package(p: JSONPackage, id_aliases: dict[str, str]) -> Package:
    cpes = []
    for cpe in p.cpes:
        if not _is_valid_cpe(cpe):
            log.warning("excluding invalid CPE %r", cpe)
            continue
        cpes.append(cpe)

    out = Package(
        name=p.name,
        version=p.version,
        found_by=p.found_by,
        locations=list(dict.fromkeys(Location(coordinates=c) for c in p.locations)),
        licenses=list(p.licenses),
        language=p.language,
        type=p.type,
        cpes=cpes,
        purl=p.purl,
        metadata_type=p.metadata_type,
        metadata=p.metadata,
    )
    # Keep the document's identifier so that external references stay valid.
    out.override_id(p.id)

    if out.id() != p.id:
        id_aliases[p.id] = out.id()
    return out


def _to_syft_relationship(
    id_map: dict[str, Any], relationship: JSONRelationship, id_aliases: dict[str, str]
) -> Optional[Relationship]:
    def resolve(key: str) -> Any:
        return id_map.get(id_aliases.get(key, key))

    parent = resolve(relationship.parent)
    if parent is None:
        log.warning("relationship mapping from key %s is not a known artifact", relationship.parent)
        return None
    child = resolve(relationship.child)
    if child is None:
        log.warning("relationship mapping to key %s is not a known artifact", relationship.child)
        return None
    try:
        kind = RelationshipType(relationship.type)
    except ValueError:
        log.warning("unknown relationship type: %s", relationship.type)
        return None
    return Relationship(from_=parent, to=child, type=kind, data=relationship.metadata)


def _to_syft_relationships(
    document: Document, catalog: Catalog, id_aliases: dict[str, str]
) -> list[Relationship]:
    id_map: dict[str, Any] = {}
    for p in catalog.sorted():
        id_map[p.id()] = p
        for location in p.locations:
            id_map[location.coordinates.id()] = location.coordinates
    for f in document.files:
        id_map[f.id] = f.location

    resolved = (
        _to_syft_relationship(id_map, r, id_aliases) for r in document.artifact_relationships
    )
    return [r for r in resolved if r is not None]


def to_syft_model(document: Document) -> SBOM:
    """Build an SBOM from the JSON document model."""
    id_aliases: dict[str, str] = {}
    catalog = Catalog(*(_to_syft_package(p, id_aliases) for p in document.artifacts))

    source = to_syft_source_data(document.source)
    if source is None:
        raise FormatError(f"unsupported source type: {document.source.type!r}")

    return SBOM(
        artifacts=Artifacts(
            package_catalog=catalog,
            linux_distribution=_to_syft_linux_release(document.distro),
        ),
        relationships=_to_syft_relationships(document, catalog, id_aliases),
        source=source,
        descriptor=Descriptor(
            name=document.descriptor.name,
            version=document.descriptor.version,
            configuration=document.descriptor.configuration,
        ),
    )


# --- format entry points ------------------------------------------------------


def encode(sbom: SBOM, output: TextIO) -> None:
    """Write the SBOM as an indented JSON document followed by a newline."""
    document = to_format_model(sbom)
    try:
        text = json.dumps(document.to_dict(), indent=1, ensure_ascii=False, default=_json_default)
    except (TypeError, ValueError) as err:
        raise FormatError(f"unable to encode syft-json: {err}") from err
    output.write(text + "\n")


def decode(data: Any) -> SBOM:
    """Read an SBOM from JSON text, bytes or a readable stream."""
    try:
        raw = _first_json_value(_read_text(data))
        document = Document.from_dict(raw)
    except (ValueError, TypeError, AttributeError) as err:
        raise FormatError(f"unable to decode syft-json: {err}") from err
    return to_syft_model(document)


def validate(data: Any) -> None:
    """Raise FormatError unless the data looks like a document of this format."""
    try:
        raw = _first_json_value(_read_text(data))
    except ValueError as err:
        raise FormatError(f"unable to decode: {err}") from err
    if not isinstance(raw, dict):
        raise FormatError("unable to decode: document is not a JSON object")
    schema = raw.get("schema") or {}
    if not isinstance(schema, dict):
        raise FormatError("unable to decode: schema is not a JSON object")
    url = schema.get("url") or ""
    if not isinstance(url, str):
        raise FormatError("unable to decode: schema url is not a string")
    # all schema versions are accepted
    if _SCHEMA_MARKER in url:
        return
    raise FormatError("could not extract syft schema")


def format() -> Format:  # noqa: A001 - the public name of the format factory
    """The native JSON format with encode, decode and validate support."""
    return Format(id=ID, encoder=encode, decoder=decode, validator=validate)


def _encode_to_text(sbom: SBOM) -> str:
    buffer = io.StringIO()
    encode(sbom, buffer)
    return buffer.getvalue()