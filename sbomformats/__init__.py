"""Read and write software bill of materials documents as syft JSON, GitHub dependency snapshots and plain tables."""

__version__ = "0.1.0"
__all__ = ["sbom", "purl", "jsonmodel", "syftjson", "github", "table"]