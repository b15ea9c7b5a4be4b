# src/engine/framework_detector.py
"""
Test framework detection over an extracted repository tree.

Each ecosystem has one probe in ECOSYSTEM_PROBES. A probe looks for its
manifest(s), parses them in the ecosystem's own format and returns the
frameworks it recognises. Probes share no state, and a probe that fails to
read or parse its manifest contributes nothing instead of aborting detection.
"""

import json
import logging
import os
import re
from dataclasses import asdict, dataclass
from typing import Callable, Dict, List

import yaml

from engine.errors import ManifestParseError
from utils.file_utils import file_exists, get_files_by_extension, read_file
from utils.version_patterns import (
    detect_version_in_dependencies,
    detect_version_in_gemfile,
    detect_version_in_gradle,
    detect_version_in_requirement,
    detect_version_in_sbt,
    detect_version_in_xml,
)


@dataclass(frozen=True)
class DetectedFramework:
    type: str
    version: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


Probe = Callable[[str], List[DetectedFramework]]


def _load_json(path: str) -> dict:
    try:
        data = json.loads(read_file(path))
    except json.JSONDecodeError as e:
        raise ManifestParseError(f"{os.path.basename(path)} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ManifestParseError(f"{os.path.basename(path)} does not hold a JSON object")
    return data


def _merged_sections(manifest: dict, *sections: str) -> dict:
    merged = {}
    for section in sections:
        value = manifest.get(section) or {}
        if not isinstance(value, dict):
            raise ManifestParseError(f"'{section}' is not a mapping")
        merged.update(value)
    return merged


def probe_javascript(repo_path: str) -> List[DetectedFramework]:
    package_json = os.path.join(repo_path, "package.json")
    if not file_exists(package_json):
        return []
    dependencies = _merged_sections(_load_json(package_json), "dependencies", "devDependencies")
    return [
        DetectedFramework(name, detect_version_in_dependencies(dependencies, name))
        for name in ("jest", "mocha", "jasmine", "vitest")
        if dependencies.get(name)
    ]


_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


def probe_python(repo_path: str) -> List[DetectedFramework]:
    frameworks = []
    requirements_txt = os.path.join(repo_path, "requirements.txt")
    if file_exists(requirements_txt):
        for line in read_file(requirements_txt).splitlines():
            match = _REQUIREMENT_NAME.match(line)
            if not match:
                continue
            name = match.group(1).lower()
            if name == "pytest":
                frameworks.append(DetectedFramework("pytest", detect_version_in_requirement(line)))
            elif name.startswith("unittest"):
                frameworks.append(DetectedFramework("unittest", ""))

    pyproject = os.path.join(repo_path, "pyproject.toml")
    if file_exists(pyproject) and "pytest" in read_file(pyproject):
        frameworks.append(DetectedFramework("pytest", ""))
    return frameworks


def probe_maven(repo_path: str) -> List[DetectedFramework]:
    pom_xml = os.path.join(repo_path, "pom.xml")
    if not file_exists(pom_xml):
        return []
    content = read_file(pom_xml)
    if "<project" not in content:
        raise ManifestParseError("pom.xml has no <project> element")
    frameworks = []
    if "junit" in content:
        frameworks.append(DetectedFramework("JUnit", detect_version_in_xml(content, "junit")))
    if "testng" in content:
        frameworks.append(DetectedFramework("TestNG", detect_version_in_xml(content, "testng")))
    return frameworks


_GRADLE_MARKERS = (("junit", "JUnit"), ("testng", "TestNG"), ("spek", "Spek"))


def probe_gradle(repo_path: str) -> List[DetectedFramework]:
    frameworks = []
    for build_file in ("build.gradle", "build.gradle.kts"):
        path = os.path.join(repo_path, build_file)
        if not file_exists(path):
            continue
        content = read_file(path)
        for marker, framework in _GRADLE_MARKERS:
            if marker in content:
                frameworks.append(DetectedFramework(framework, detect_version_in_gradle(content, marker)))
    return frameworks


def probe_php(repo_path: str) -> List[DetectedFramework]:
    composer_json = os.path.join(repo_path, "composer.json")
    if not file_exists(composer_json):
        return []
    required = _merged_sections(_load_json(composer_json), "require", "require-dev")
    frameworks = []
    if required.get("phpunit/phpunit"):
        frameworks.append(DetectedFramework("PHPUnit", detect_version_in_dependencies(required, "phpunit/phpunit")))
    if required.get("codeception/codeception"):
        frameworks.append(DetectedFramework(
            "Codeception", detect_version_in_dependencies(required, "codeception/codeception")
        ))
    return frameworks


_CSHARP_MARKERS = (("NUnit", ("NUnit",)), ("xUnit", ("xUnit", "xunit")), ("MSTest", ("MSTest",)))


def probe_csharp(repo_path: str) -> List[DetectedFramework]:
    frameworks = []
    for csproj in get_files_by_extension(repo_path, ".csproj"):
        content = read_file(csproj)
        for framework, markers in _CSHARP_MARKERS:
            marker = next((m for m in markers if m in content), None)
            if marker:
                frameworks.append(DetectedFramework(framework, detect_version_in_xml(content, marker)))
    return frameworks


def probe_go(repo_path: str) -> List[DetectedFramework]:
    # go test ships with the toolchain, there is nothing to version
    if file_exists(os.path.join(repo_path, "go.mod")):
        return [DetectedFramework("Go Testing", "")]
    return []


def probe_swift(repo_path: str) -> List[DetectedFramework]:
    if file_exists(os.path.join(repo_path, "Package.swift")):
        return [DetectedFramework("XCTest", "")]
    return []


def probe_ruby(repo_path: str) -> List[DetectedFramework]:
    gemfile = os.path.join(repo_path, "Gemfile")
    if not file_exists(gemfile):
        return []
    content = read_file(gemfile)
    frameworks = []
    if "rspec" in content:
        frameworks.append(DetectedFramework("RSpec", detect_version_in_gemfile(content, "rspec")))
    if "minitest" in content:
        frameworks.append(DetectedFramework("Minitest", detect_version_in_gemfile(content, "minitest")))
    return frameworks


def probe_scala(repo_path: str) -> List[DetectedFramework]:
    build_sbt = os.path.join(repo_path, "build.sbt")
    if not file_exists(build_sbt):
        return []
    content = read_file(build_sbt)
    if "scalatest" in content:
        return [DetectedFramework("ScalaTest", detect_version_in_sbt(content, "scalatest"))]
    return []


def probe_rust(repo_path: str) -> List[DetectedFramework]:
    if file_exists(os.path.join(repo_path, "Cargo.toml")):
        return [DetectedFramework("Rust Test", "")]
    return []


def probe_dart(repo_path: str) -> List[DetectedFramework]:
    pubspec = os.path.join(repo_path, "pubspec.yaml")
    if not file_exists(pubspec):
        return []
    try:
        manifest = yaml.safe_load(read_file(pubspec)) or {}
    except yaml.YAMLError as e:
        raise ManifestParseError(f"pubspec.yaml is not valid YAML: {e}") from e
    if not isinstance(manifest, dict):
        raise ManifestParseError("pubspec.yaml does not hold a mapping")
    dependencies = _merged_sections(manifest, "dependencies", "dev_dependencies")
    frameworks = []
    if "flutter_test" in dependencies:
        frameworks.append(DetectedFramework("Flutter Test", ""))
    if "test" in dependencies:
        version = dependencies["test"]
        frameworks.append(DetectedFramework("Dart Test", version if isinstance(version, str) else ""))
    return frameworks


# Ecosystem name -> probe. Order is the order results are reported in.
ECOSYSTEM_PROBES: Dict[str, Probe] = {
    "javascript": probe_javascript,
    "python": probe_python,
    "maven": probe_maven,
    "gradle": probe_gradle,
    "php": probe_php,
    "csharp": probe_csharp,
    "go": probe_go,
    "swift": probe_swift,
    "ruby": probe_ruby,
    "scala": probe_scala,
    "rust": probe_rust,
    "dart": probe_dart,
}


def run_probe(ecosystem: str, probe: Probe, repo_path: str) -> List[DetectedFramework]:
    try:
        return list(probe(repo_path))
    except (ManifestParseError, OSError, UnicodeDecodeError, ValueError) as e:
        logging.warning(f"[probe={ecosystem}] Skipping unreadable manifest in {repo_path}: {e}")
        return []


def detect_frameworks(repo_path: str, probes: Dict[str, Probe] = None) -> List[DetectedFramework]:
    """
    Run every ecosystem probe against repo_path and return the detected
    frameworks, one entry per framework type (first detection wins).
    """
    probes = ECOSYSTEM_PROBES if probes is None else probes
    detected = []
    seen = set()
    for ecosystem, probe in probes.items():
        for framework in run_probe(ecosystem, probe, repo_path):
            if framework.type in seen:
                continue
            seen.add(framework.type)
            detected.append(framework)
    logging.info(f"Detected frameworks in {repo_path}: {[f.type for f in detected]}")
    return detected
