"""Basic local packaging example.

This example demonstrates how to:
- Package an extension from a local installation
- Display a summary of the archive
- Save the packaging report to a JSON file
"""

import json
import sys
from pathlib import Path

from cms_extension_packager import BackendRegistry, Installation, PackageOptions


def main():
    # Web root of the installation (change this to your site)
    web_root = Path("/var/www/joomla")
    element = "com_content"

    if not web_root.exists():
        print(f"Directory not found: {web_root}", file=sys.stderr)
        print("Please update the web_root variable in this script", file=sys.stderr)
        return

    print(f"Packaging {element} from {web_root}", file=sys.stderr)

    # Create pipeline
    pipeline = BackendRegistry.create_pipeline(
        "local",
        installation=Installation(name="local site", web_root=str(web_root)),
        options=PackageOptions(destination=str(Path.cwd()), rename_existing=True),
    )

    # Build the archive
    result = pipeline.package_extension(element)
    if not result.success:
        for error in result.errors:
            print(f"Error: {error}", file=sys.stderr)
        return

    # Display summary
    print("\nArchive built successfully", file=sys.stderr)
    print(f"  Archive: {result.archive_path}", file=sys.stderr)
    print(f"  Entries: {len(result.entries)}", file=sys.stderr)
    if result.backup_path:
        print(f"  Previous archive kept as: {result.backup_path}", file=sys.stderr)
    for warning in result.warnings:
        print(f"  Warning: {warning}", file=sys.stderr)

    # Save report
    output_file = Path(f"{element}.report.json")
    with open(output_file, "w") as f:
        json.dump(result.to_report(), f, indent=2)

    print(f"\nReport saved to {output_file}", file=sys.stderr)


if __name__ == "__main__":
    main()
