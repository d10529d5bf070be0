import base64
import io
import json

import pytest

from sbomformats import syftjson
from sbomformats.jsonmodel import (
    Document,
    JSONPackage,
    JSONRelationship,
    JSONSource,
)
from sbomformats.sbom import (
    SBOM,
    Artifacts,
    Catalog,
    Coordinates,
    Descriptor,
    Digest,
    FileMetadata,
    FormatError,
    ImageMetadata,
    LayerMetadata,
    LinuxRelease,
    Location,
    Package,
    Relationship,
    RelationshipType,
    Scheme,
    SourceMetadata,
)


def _encode(sbom):
    buffer = io.StringIO()
    syftjson.encode(sbom, buffer)
    return buffer.getvalue()


def _loc(path):
    return Location(coordinates=Coordinates(real_path=path))


def _full_sbom():
    p1 = Package(
        name="package-1",
        version="1.0.1",
        locations=[_loc("/a/place/a")],
        type="python",
        found_by="the-cataloger-1",
        language="python",
        metadata_type="PythonPackageMetadata",
        licenses=["MIT"],
        metadata={"name": "package-1", "version": "1.0.1", "files": []},
        purl="a-purl-1",
        cpes=["cpe:2.3:*:some:package:1:*:*:*:*:*:*:*"],
    )
    p2 = Package(
        name="package-2",
        version="2.0.1",
        locations=[_loc("/b/place/b")],
        type="deb",
        found_by="the-cataloger-2",
        metadata_type="DpkgMetadata",
        metadata={"package": "package-2", "version": "2.0.1", "files": []},
        purl="a-purl-2",
        cpes=["cpe:2.3:*:some:package:2:*:*:*:*:*:*:*"],
    )
    catalog = Catalog(p1, p2)
    raw_manifest = b"eyJzY2hlbWFWZXJzaW9uIjoyLCJtZWRpYVR5cGUiOiJh..."
    raw_config = b"eyJhcmNoaXRlY3R1cmUiOiJhbWQ2NCIsImNvbmZp..."
    return SBOM(
        artifacts=Artifacts(
            package_catalog=catalog,
            file_metadata={
                Coordinates("/a/place"): FileMetadata(mode=0o775, type="directory"),
                Coordinates("/a/place/a"): FileMetadata(mode=0o775, type="regularFile"),
                Coordinates("/b"): FileMetadata(
                    mode=0o775, type="symbolicLink", link_destination="/c"
                ),
                Coordinates("/b/place/b"): FileMetadata(
                    mode=0o644, type="regularFile", user_id=1, group_id=2
                ),
            },
            file_digests={
                Coordinates("/a/place/a"): [
                    Digest(
                        "sha256",
                        "366a3f5653e34673b875891b021647440d0127c2ef041e3b1a22da2a7d4f3703",
                    )
                ],
                Coordinates("/b/place/b"): [
                    Digest(
                        "sha256",
                        "1b3722da2a7d90d033b87581a2a3f12021647445653e34666ef041e3b4f3707c",
                    )
                ],
            },
            file_contents={Coordinates("/a/place/a"): "the-contents"},
            linux_distribution=LinuxRelease(
                id="redhat", version="7", version_id="7", id_like=["rhel"]
            ),
        ),
        relationships=[
            Relationship(
                from_=p1,
                to=p2,
                type=RelationshipType.OWNERSHIP_BY_FILE_OVERLAP,
                data={"file": "path"},
            )
        ],
        source=SourceMetadata(
            scheme=Scheme.IMAGE,
            image_metadata=ImageMetadata(
                user_input="user-image-input",
                id="sha256:c2b46b4eb06296933b7cf0722683964e9ecbd93265b9ef6ae9642e3952afbba0",
                manifest_digest="sha256:2731251dc34951c0e50fcc643b4c5f74922dad1a5d98f302b504cf46cd5d9368",
                media_type="application/vnd.docker.distribution.manifest.v2+json",
                tags=["stereoscope-fixture-image-simple:latest"],
                size=38,
                layers=[
                    LayerMetadata(
                        "application/vnd.docker.image.rootfs.diff.tar.gzip",
                        "sha256:3de16c5b8659a2e8d888b8ded8427be7a5686a3c8c4e4dd30de20f362827285b",
                        22,
                    ),
                    LayerMetadata(
                        "application/vnd.docker.image.rootfs.diff.tar.gzip",
                        "sha256:366a3f5653e34673b875891b021647440d0127c2ef041e3b1a22da2a7d4f3703",
                        16,
                    ),
                ],
                raw_manifest=raw_manifest,
                raw_config=raw_config,
                repo_digests=[],
            ),
        ),
        descriptor=Descriptor(
            name="syft",
            version="v0.42.0-bogus",
            configuration={"config-key": "config-value"},
        ),
    )


SOURCE_CASES = [
    (
        SourceMetadata(scheme=Scheme.DIRECTORY, path="some/path"),
        JSONSource("directory", "some/path"),
    ),
    (
        SourceMetadata(scheme=Scheme.FILE, path="some/path"),
        JSONSource("file", "some/path"),
    ),
    (
        SourceMetadata(
            scheme=Scheme.IMAGE,
            image_metadata=ImageMetadata(
                user_input="user-input",
                id="id...",
                manifest_digest="digest...",
                media_type="type...",
            ),
        ),
        JSONSource(
            "image",
            ImageMetadata(
                user_input="user-input",
                id="id...",
                manifest_digest="digest...",
                media_type="type...",
                repo_digests=[],
                tags=[],
            ),
        ),
    ),
]


@pytest.mark.parametrize("src,expected", SOURCE_CASES, ids=["directory", "file", "image"])
def test_to_source_model(src, expected):
    assert syftjson.to_source_model(src) == expected


def test_to_source_model_cases_cover_all_schemes():
    assert {src.scheme for src, _ in SOURCE_CASES} == set(Scheme)


def test_to_source_model_rejects_unknown_scheme():
    with pytest.raises(FormatError, match="unsupported source"):
        syftjson.to_source_model(SourceMetadata())


SYFT_SOURCE_CASES = [
    (
        JSONSource("directory", "some/path"),
        SourceMetadata(scheme=Scheme.DIRECTORY, path="some/path"),
    ),
    (
        JSONSource("file", "some/path"),
        SourceMetadata(scheme=Scheme.FILE, path="some/path"),
    ),
    (
        JSONSource(
            "image",
            ImageMetadata(
                user_input="user-input",
                id="id...",
                manifest_digest="digest...",
                media_type="type...",
            ),
        ),
        SourceMetadata(
            scheme=Scheme.IMAGE,
            image_metadata=ImageMetadata(
                user_input="user-input",
                id="id...",
                manifest_digest="digest...",
                media_type="type...",
            ),
        ),
    ),
]


@pytest.mark.parametrize("src,expected", SYFT_SOURCE_CASES, ids=["directory", "file", "image"])
def test_to_syft_source_data(src, expected):
    assert syftjson.to_syft_source_data(src) == expected


def test_to_syft_source_data_cases_cover_all_schemes():
    assert {expected.scheme for _, expected in SYFT_SOURCE_CASES} == set(Scheme)


def test_to_syft_source_data_unknown_type_is_none():
    assert syftjson.to_syft_source_data(JSONSource("unknown-thing", "x")) is None


def test_ids_have_changed():
    s = syftjson.to_syft_model(
        Document(
            source=JSONSource("file", "some/path"),
            artifacts=[JSONPackage(id="1", name="pkg-1"), JSONPackage(id="2", name="pkg-2")],
            artifact_relationships=[JSONRelationship("1", "2", "contains")],
        )
    )
    assert len(s.relationships) == 1
    r = s.relationships[0]
    assert r.type == RelationshipType.CONTAINS
    from_pkg = s.artifacts.package_catalog.package(r.from_.id())
    to_pkg = s.artifacts.package_catalog.package(r.to.id())
    assert from_pkg.name == "pkg-1"
    assert to_pkg.name == "pkg-2"


def test_to_syft_model_drops_unknown_relationships():
    s = syftjson.to_syft_model(
        Document(
            source=JSONSource("directory", "."),
            artifacts=[JSONPackage(id="1", name="pkg-1"), JSONPackage(id="2", name="pkg-2")],
            artifact_relationships=[
                JSONRelationship("1", "2", "made-up"),
                JSONRelationship("1", "missing", "contains"),
                JSONRelationship("missing", "2", "contains"),
                JSONRelationship("2", "1", "ownership-by-file-overlap"),
            ],
        )
    )
    assert len(s.relationships) == 1
    assert s.relationships[0].from_.name == "pkg-2"
    assert s.relationships[0].type == RelationshipType.OWNERSHIP_BY_FILE_OVERLAP


def test_to_syft_model_requires_known_source():
    with pytest.raises(FormatError):
        syftjson.to_syft_model(Document(artifacts=[JSONPackage(id="1", name="a")]))


def test_to_syft_model_empty_distro_is_none():
    s = syftjson.to_syft_model(Document(source=JSONSource("file", "f")))
    assert s.artifacts.linux_distribution is None
    assert s.source.path == "f"


def test_decode_excludes_invalid_cpes():
    s = syftjson.to_syft_model(
        Document(
            source=JSONSource("file", "f"),
            artifacts=[
                JSONPackage(
                    id="1",
                    name="a",
                    cpes=["not-a-cpe", "cpe:2.3:a:some:package:1:*:*:*:*:*:*:*"],
                )
            ],
        )
    )
    assert s.artifacts.package_catalog.package("1").cpes == [
        "cpe:2.3:a:some:package:1:*:*:*:*:*:*:*"
    ]


def test_encode_full_document():
    sbom = _full_sbom()
    text = _encode(sbom)
    assert text.startswith('{\n "artifacts"')
    assert text.endswith("}\n")
    doc = json.loads(text)

    p1, p2 = sbom.artifacts.package_catalog.sorted()
    assert [a["name"] for a in doc["artifacts"]] == ["package-1", "package-2"]
    assert doc["artifacts"][0]["licenses"] == ["MIT"]
    assert doc["artifacts"][1]["licenses"] == []
    assert doc["artifacts"][0]["cpes"] == ["cpe:2.3:*:some:package:1:*:*:*:*:*:*:*"]
    assert doc["artifacts"][0]["metadataType"] == "PythonPackageMetadata"
    assert doc["artifacts"][0]["locations"] == [{"path": "/a/place/a"}]

    assert doc["artifactRelationships"] == [
        {
            "parent": p1.id(),
            "child": p2.id(),
            "type": "ownership-by-file-overlap",
            "metadata": {"file": "path"},
        }
    ]

    files = doc["files"]
    assert [f["location"]["path"] for f in files] == ["/a/place", "/a/place/a", "/b", "/b/place/b"]
    assert [f["metadata"]["mode"] for f in files] == [775, 775, 775, 644]
    assert files[2]["metadata"]["linkDestination"] == "/c"
    assert files[3]["metadata"]["userID"] == 1
    assert files[3]["metadata"]["groupID"] == 2
    assert files[1]["contents"] == "the-contents"
    assert files[3]["digests"] == [
        {
            "algorithm": "sha256",
            "value": "1b3722da2a7d90d033b87581a2a3f12021647445653e34666ef041e3b4f3707c",
        }
    ]

    target = doc["source"]["target"]
    assert doc["source"]["type"] == "image"
    assert target["imageSize"] == 38
    assert target["repoDigests"] == []
    assert len(target["layers"]) == 2
    assert base64.b64decode(target["manifest"]) == sbom.source.image_metadata.raw_manifest

    assert doc["distro"] == {"id": "redhat", "idLike": ["rhel"], "version": "7", "versionID": "7"}
    assert doc["descriptor"] == {
        "name": "syft",
        "version": "v0.42.0-bogus",
        "configuration": {"config-key": "config-value"},
    }
    assert doc["schema"]["version"] == syftjson.JSON_SCHEMA_VERSION
    assert "anchore/syft" in doc["schema"]["url"]


def test_encode_decode_cycle():
    original = _full_sbom()
    actual = syftjson.decode(_encode(original))

    assert actual.source == original.source
    assert actual.descriptor == original.descriptor
    assert actual.artifacts.linux_distribution == original.artifacts.linux_distribution

    originals = original.artifacts.package_catalog.sorted()
    decoded = actual.artifacts.package_catalog.sorted()
    assert len(decoded) == len(originals)
    for want, got in zip(originals, decoded):
        assert got.id() == want.id()
        assert (got.name, got.version, got.type, got.found_by) == (
            want.name,
            want.version,
            want.type,
            want.found_by,
        )
        assert got.licenses == (want.licenses or [])
        assert got.cpes == want.cpes
        assert got.purl == want.purl
        assert got.metadata_type == want.metadata_type
        assert got.metadata == want.metadata
        assert [l.coordinates for l in got.locations] == [l.coordinates for l in want.locations]

    assert len(actual.relationships) == 1
    assert actual.relationships[0].from_.name == "package-1"
    assert actual.relationships[0].data == {"file": "path"}


def test_format_round_trip_through_bytes():
    fmt = syftjson.format()
    buffer = io.StringIO()
    fmt.encode(_full_sbom(), buffer)
    decoded = fmt.decode(io.BytesIO(buffer.getvalue().encode("utf-8")))
    assert fmt.id == "syft-3-json"
    assert decoded.artifacts.package_catalog.package_count() == 2


def test_to_format_model_unsupported_source_gives_empty_source():
    doc = syftjson.to_format_model(SBOM())
    assert doc.source == JSONSource()
    assert doc.artifacts == []


def test_to_format_model_sorts_secrets():
    sbom = SBOM(
        artifacts=Artifacts(
            secrets={
                Coordinates("/z"): [{"classification": "key"}],
                Coordinates("/a"): [{"classification": "key"}],
            }
        ),
        source=SourceMetadata(scheme=Scheme.DIRECTORY, path="."),
    )
    doc = syftjson.to_format_model(sbom)
    assert [s.location.real_path for s in doc.secrets] == ["/a", "/z"]


def test_validate_accepts_encoded_document():
    text = _encode(_full_sbom())
    assert syftjson.validate(text) is None
    assert syftjson.format().decode(text).descriptor.name == "syft"


def test_validate_rejects_other_schema():
    with pytest.raises(FormatError, match="could not extract syft schema"):
        syftjson.validate('{"schema": {"url": "https://example.com/schema.json"}}')


def test_validate_rejects_non_json():
    with pytest.raises(FormatError, match="unable to decode"):
        syftjson.format().validate("FROM scratch\nADD file-1.txt /somefile-1.txt\n")


def test_decode_rejects_invalid_json():
    with pytest.raises(FormatError, match="unable to decode syft-json"):
        syftjson.decode("{not json")


def test_decode_rejects_unknown_source_type():
    with pytest.raises(FormatError, match="unable to decode syft-json"):
        syftjson.decode('{"source": {"type": "unknown-thing", "target": "/var/lib/foo"}}')