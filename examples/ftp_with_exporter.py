"""Packaging over FTP with a database exporter.

This example demonstrates the complete pattern for a remote build:
- Connecting to an installation over FTPS
- Plugging in a database exporter for the extension's tables
- Nesting sub-extensions of a package

The exporter below returns canned statements. A real one would query
the installation's database (credentials are usually kept in
``Installation.config``).
"""

import sys

from cms_extension_packager import BackendRegistry, Installation, PackageOptions, PackagePipeline


# Step 1: Implement the exporter interface
class StaticExporter:
    """Exporter satisfying the DbExporter protocol."""

    def export(self, installation: Installation, table_names: list[str]) -> dict[str, list[str]]:
        return {
            "drop": [f"DROP TABLE IF EXISTS `{t}`;" for t in table_names],
            "create": [f"CREATE TABLE IF NOT EXISTS `{t}` (`id` INT NOT NULL);" for t in table_names],
            "insert": [],
        }


def main():
    # Step 2: Connect the backend
    backend = BackendRegistry.create_backend(
        "ftp",
        host="ftp.example.com",
        login="deploy",
        password="secret",
        use_tls=True,
    )

    # Step 3: Package
    installation = Installation(name="live", web_root="/public_html", config={"db_prefix": "jos_"})
    options = PackageOptions(import_database=True, destination="dist", rename_existing=True)
    with backend:
        pipeline = PackagePipeline(installation, backend, options, db_exporter=StaticExporter())
        result = pipeline.package_extension("pkg_bundle")

    for child in result.children:
        print(f"  {child.extension_name}: {child.state.value}", file=sys.stderr)
    if not result.success:
        for error in result.errors:
            print(f"Error: {error}", file=sys.stderr)
        sys.exit(1)
    print(f"Archive: {result.archive_path}", file=sys.stderr)


if __name__ == "__main__":
    main()
