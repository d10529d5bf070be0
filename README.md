# sbomformats

Read and write software bill of materials (SBOM) documents in three formats:
the syft JSON document, GitHub dependency snapshots and a plain text table.

An SBOM is held in memory as an `sbomformats.sbom.SBOM`. It is made up of:

- `artifacts`: an `Artifacts` holding the package `Catalog`, per-file data
  (`file_metadata`, `file_digests`, `file_classifications`, `file_contents`,
  `secrets`, each keyed by `Coordinates`) and the detected `LinuxRelease`;
- `relationships`: a list of `Relationship` between packages and files, of
  type `RelationshipType.CONTAINS` or `RelationshipType.OWNERSHIP_BY_FILE_OVERLAP`;
- `source`: a `SourceMetadata` for what was scanned, with a `Scheme` of
  `IMAGE`, `DIRECTORY` or `FILE`;
- `descriptor`: a `Descriptor` naming the tool that made the document.

A `Package` has an identifier from `Package.id()`, derived from its content
unless it was set with `Package.override_id()`. A `Catalog` keys packages by
that identifier; adding a package whose identifier is already present merges
its locations into the one already held. `Catalog.sorted()` orders packages by
name, version, type and first location.

## Formats

| Module                  | Format ID          | Encode | Decode | Validate |
|-------------------------|--------------------|--------|--------|----------|
| `sbomformats.syftjson`  | `syft-3-json`      | yes    | yes    | yes      |
| `sbomformats.github`    | `github-0-json`    | yes    | no     | no       |
| `sbomformats.table`     | `syft-table`       | yes    | no     | no       |

Each module provides `format()`, which returns a `sbomformats.sbom.Format`:

- `encode(sbom, output)` writes the document to a text stream.
- `decode(data)` reads a document from a string, bytes or a readable stream
  and returns an `SBOM`.
- `validate(data)` returns nothing if the data is in this format.

`decode` and `validate` raise `FormatError` (a `ValueError`) when the data
cannot be read, and also when the format does not support the operation.

### syft JSON

`sbomformats.syftjson` writes an indented JSON document with schema version
3.3.0. `to_format_model(sbom)` builds the `jsonmodel.Document` that is
written, and `to_syft_model(document)` turns one back into an `SBOM`.
Package identifiers from the document are kept as they are, so relationships
that refer to them still resolve after decoding. Relationships that point at
unknown identifiers or have an unknown type are dropped with a logged
warning, as are invalid CPE strings. `validate` only checks that the
document's schema URL names the syft schema; every schema version is accepted.

`sbomformats.jsonmodel` holds the document classes (`Document`,
`JSONPackage`, `JSONSource`, `JSONLinuxRelease` and others) with
`from_dict` and `to_dict` conversions. `parse_id_likes` accepts either a single
string or a list of strings for a distribution's `idLike` field.

### GitHub dependency snapshots

`sbomformats.github.to_github_model(sbom, now=None)` builds a
`DependencySnapshot` with one `Manifest` for each place packages were found;
`now` sets the scan time and defaults to the current time.
`DependencySnapshot.to_dict()` gives the JSON-ready form, leaving out empty
optional fields. `to_path(src, package)` gives a manifest's location and
`is_archive(path)` tells whether a path has an archive extension.

### Table

`sbomformats.table` writes a NAME / VERSION / TYPE table, sorted and with
duplicate rows removed (`remove_duplicate_rows`). When there are no packages
it writes `No packages discovered`.

## Package URLs

```python
from sbomformats.purl import parse_purl

purl = parse_purl("pkg:generic/ubuntu@18.04?like=debian")
print(purl.name, purl.version, purl.to_string())
```

`parse_purl` raises `PurlError` when the text is not a valid package URL.
`PackageURL.to_string()` writes qualifiers in sorted order.

## Installing

```
pip install .
```

To run the tests as well:

```
pip install .[test]
pytest
```

## Example

```python
import io

from sbomformats import syftjson, table
from sbomformats.sbom import (
    SBOM, Artifacts, Catalog, Coordinates, Descriptor, Location, Package,
    Scheme, SourceMetadata,
)

catalog = Catalog()
catalog.add(Package(
    name="zlib",
    version="1.2.13",
    type="apk",
    locations=[Location(Coordinates(real_path="/lib/apk/db/installed"))],
    purl="pkg:apk/alpine/zlib@1.2.13",
))

sbom = SBOM(
    artifacts=Artifacts(package_catalog=catalog),
    source=SourceMetadata(scheme=Scheme.DIRECTORY, path="./rootfs"),
    descriptor=Descriptor(name="syft", version="1.0.0"),
)

out = io.StringIO()
table.format().encode(sbom, out)
print(out.getvalue())

buf = io.StringIO()
syftjson.format().encode(sbom, buf)
restored = syftjson.format().decode(buf.getvalue())
print([p.name for p in restored.artifacts.package_catalog.sorted()])
```

## What this package does not do

- It does not scan images, directories or files for packages. An `SBOM` has
  to be built in code or decoded from a syft JSON document.
- It has no command-line program; it is a library only.
- It supports only the three formats above. GitHub snapshots and tables can be
  written but not read back.