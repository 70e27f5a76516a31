# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Compiled package artifacts.

After `aptos move build --save-metadata` a package directory looks like::

    my_package/
    ├── Move.toml
    └── build/
        └── MyPackage/
            ├── bytecode_modules/
            │   ├── module1.mv
            │   └── module2.mv
            └── package-metadata.bcs

The staging contract reassembles modules by index, so the module order must
be the order the compiler reports, not the directory listing order. The CLI
prints that order as JSON::

    {"Result": ["0xcafe::module1", "0xcafe::module2"]}
"""

import json
import os
import re
import tempfile
import unittest
from dataclasses import dataclass, field
from typing import List

import tomli


class ArtifactError(ValueError):
    """Compiled artifacts are missing or cannot be interpreted"""


@dataclass(frozen=True)
class ArtifactBundle:
    """Metadata blob plus the ordered module bytecode of one package."""

    metadata: bytes
    modules: List[bytes]
    package_name: str = ""
    module_names: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.module_names and len(self.module_names) != len(self.modules):
            raise ArtifactError(
                f"Expected {len(self.modules)} module names, found {len(self.module_names)}"
            )

    def size(self) -> int:
        return len(self.metadata) + sum(len(module) for module in self.modules)


def read_package_name(package_dir: str) -> str:
    """Read `[package] name` from the package's Move.toml."""
    manifest_path = os.path.join(package_dir, "Move.toml")
    if not os.path.isfile(manifest_path):
        raise ArtifactError(f"Move.toml not found in {package_dir}")
    with open(manifest_path, "rb") as f:
        try:
            data = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ArtifactError(f"Invalid Move.toml in {package_dir}: {e}") from e
    try:
        return data["package"]["name"]
    except (KeyError, TypeError):
        raise ArtifactError(f"Package name not found in {manifest_path}")


def parse_module_names(build_output: str) -> List[str]:
    """Extract module names, in compiler order, from the CLI build output.

    Raises:
        ArtifactError: If no JSON result can be found in the output.
    """
    match = re.search(r"\{.*\}", build_output, re.DOTALL)
    if match is None:
        raise ArtifactError(f"No JSON result in build output: {build_output!r}")
    try:
        result = json.loads(match.group(0))
    except ValueError as e:
        raise ArtifactError(f"Failed to parse build output JSON: {e}") from e

    qualified_names = result.get("Result") if isinstance(result, dict) else None
    if not isinstance(qualified_names, list):
        raise ArtifactError(f"Unexpected build result: {result}")

    module_names = []
    for qualified_name in qualified_names:
        name_match = re.search(r"::(\w+)$", str(qualified_name))
        if name_match is None:
            raise ArtifactError(f"Unexpected module id in build result: {qualified_name}")
        module_names.append(name_match.group(1))
    return module_names


def read_build_artifacts(
    package_dir: str, package_name: str, module_names: List[str]
) -> ArtifactBundle:
    """Load the metadata blob and the named modules from the build directory."""
    package_build_dir = os.path.join(package_dir, "build", package_name)

    metadata_path = os.path.join(package_build_dir, "package-metadata.bcs")
    if not os.path.isfile(metadata_path):
        raise ArtifactError(f"package-metadata.bcs not found: {metadata_path}")
    with open(metadata_path, "rb") as f:
        metadata = f.read()

    module_directory = os.path.join(package_build_dir, "bytecode_modules")
    modules = []
    for module_name in module_names:
        module_path = os.path.join(module_directory, f"{module_name}.mv")
        if not os.path.isfile(module_path):
            raise ArtifactError(f"Module file not found: {module_path}")
        with open(module_path, "rb") as f:
            modules.append(f.read())

    return ArtifactBundle(metadata, modules, package_name, list(module_names))


class Test(unittest.TestCase):
    BUILD_OUTPUT = (
        "Compiling, may take a little while to download git dependencies...\n"
        "BUILDING large_package_example\n"
        '{\n  "Result": [\n    "0xcafe::zeta",\n    "0xcafe::alpha"\n  ]\n}\n'
    )

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.package_dir = self.tmp.name
        with open(os.path.join(self.package_dir, "Move.toml"), "w") as f:
            f.write('[package]\nname = "LargePackage"\nversion = "1.0.0"\n')

    def tearDown(self):
        self.tmp.cleanup()

    def _write_build(self, modules):
        module_dir = os.path.join(
            self.package_dir, "build", "LargePackage", "bytecode_modules"
        )
        os.makedirs(module_dir)
        with open(
            os.path.join(self.package_dir, "build", "LargePackage", "package-metadata.bcs"),
            "wb",
        ) as f:
            f.write(b"meta")
        for name, code in modules.items():
            with open(os.path.join(module_dir, f"{name}.mv"), "wb") as f:
                f.write(code)

    def test_read_package_name(self):
        self.assertEqual(read_package_name(self.package_dir), "LargePackage")

    def test_read_package_name_missing(self):
        with tempfile.TemporaryDirectory() as empty:
            with self.assertRaises(ArtifactError):
                read_package_name(empty)

    def test_read_package_name_without_name(self):
        with open(os.path.join(self.package_dir, "Move.toml"), "w") as f:
            f.write('[package]\nversion = "1.0.0"\n')
        with self.assertRaises(ArtifactError):
            read_package_name(self.package_dir)

    def test_parse_module_names_keeps_compiler_order(self):
        self.assertEqual(parse_module_names(self.BUILD_OUTPUT), ["zeta", "alpha"])

    def test_parse_module_names_invalid(self):
        with self.assertRaises(ArtifactError):
            parse_module_names("error: could not compile")
        with self.assertRaises(ArtifactError):
            parse_module_names('{"Error": "boom"}')

    def test_read_build_artifacts(self):
        self._write_build({"zeta": b"\x01" * 3, "alpha": b"\x02" * 5})
        bundle = read_build_artifacts(self.package_dir, "LargePackage", ["zeta", "alpha"])
        self.assertEqual(bundle.metadata, b"meta")
        self.assertEqual(bundle.modules, [b"\x01" * 3, b"\x02" * 5])
        self.assertEqual(bundle.module_names, ["zeta", "alpha"])
        self.assertEqual(bundle.size(), 12)

    def test_read_build_artifacts_missing_module(self):
        self._write_build({"zeta": b"\x01"})
        with self.assertRaises(ArtifactError):
            read_build_artifacts(self.package_dir, "LargePackage", ["zeta", "alpha"])

    def test_bundle_names_must_match_modules(self):
        with self.assertRaises(ArtifactError):
            ArtifactBundle(b"", [b"\x01"], "P", ["a", "b"])


if __name__ == "__main__":
    unittest.main()
