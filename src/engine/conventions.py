# src/engine/conventions.py
"""
Convention inference: turns detected frameworks into test folder patterns,
file naming conventions, coverage location and test-type folder handling.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from engine.framework_detector import DetectedFramework


@dataclass(frozen=True)
class FrameworkConventions:
    folders: List[str]
    language: str
    naming: List[str]
    type_handling: Dict[str, str]


FRAMEWORK_CONVENTIONS: Dict[str, FrameworkConventions] = {
    # JavaScript / TypeScript
    "jest": FrameworkConventions(
        ["__tests__/", "src/components/"], "javascript", ["*.test.js", "*.test.tsx", "*.spec.js"],
        {"unit": "same-folder-as-component", "integration": "__tests__/"},
    ),
    "mocha": FrameworkConventions(
        ["test/"], "javascript", ["*.test.js", "*.spec.js"],
        {"unit": "test/", "integration": "test/integration/"},
    ),
    "jasmine": FrameworkConventions(["spec/"], "javascript", ["*.spec.js"], {"unit": "spec/"}),
    "vitest": FrameworkConventions(
        ["src/", "tests/"], "javascript", ["*.test.ts", "*.spec.ts", "*.test.js"],
        {"unit": "same-folder-as-component", "integration": "tests/"},
    ),
    # Python
    "pytest": FrameworkConventions(
        ["tests/"], "python", ["test_*.py", "*_test.py"],
        {"unit": "tests/unit/", "integration": "tests/integration/"},
    ),
    "unittest": FrameworkConventions(
        ["tests/"], "python", ["test_*.py", "*_test.py"],
        {"unit": "tests/unit/", "integration": "tests/integration/"},
    ),
    # Java / Kotlin
    "JUnit": FrameworkConventions(
        ["src/test/java/"], "java", ["*Test.java", "*Tests.java"],
        {"unit": "src/test/java/", "integration": "src/test/integration/"},
    ),
    "TestNG": FrameworkConventions(
        ["src/test/java/"], "java", ["*Test.java", "*Tests.java"],
        {"unit": "src/test/java/", "integration": "src/test/integration/"},
    ),
    "Spek": FrameworkConventions(
        ["src/test/kotlin/"], "kotlin", ["*Test.kt", "*Tests.kt"],
        {"unit": "src/test/kotlin/", "integration": "src/integration/kotlin/"},
    ),
    # PHP
    "PHPUnit": FrameworkConventions(
        ["tests/"], "php", ["*Test.php"],
        {"unit": "tests/unit/", "integration": "tests/integration/"},
    ),
    "Codeception": FrameworkConventions(
        ["tests/"], "php", ["*Test.php"],
        {"unit": "tests/unit/", "integration": "tests/functional/"},
    ),
    # C#
    "NUnit": FrameworkConventions(
        ["Tests/"], "csharp", ["*Tests.cs"],
        {"unit": "Tests/UnitTests/", "integration": "Tests/IntegrationTests/"},
    ),
    "xUnit": FrameworkConventions(
        ["Tests/"], "csharp", ["*Tests.cs"],
        {"unit": "Tests/UnitTests/", "integration": "Tests/IntegrationTests/"},
    ),
    "MSTest": FrameworkConventions(
        ["Tests/"], "csharp", ["*Tests.cs"],
        {"unit": "Tests/UnitTests/", "integration": "Tests/IntegrationTests/"},
    ),
    # Go
    "Go Testing": FrameworkConventions(
        ["tests/"], "go", ["*_test.go"],
        {"unit": "tests/", "integration": "integration_tests/"},
    ),
    # Swift
    "XCTest": FrameworkConventions(
        ["Tests/"], "swift", ["*Tests.swift"],
        {"unit": "Tests/UnitTests/", "integration": "Tests/IntegrationTests/"},
    ),
    # Ruby
    "RSpec": FrameworkConventions(
        ["spec/"], "ruby", ["*_spec.rb"],
        {"unit": "spec/models/", "integration": "spec/integration/", "system": "spec/system/"},
    ),
    "Minitest": FrameworkConventions(
        ["test/"], "ruby", ["*_test.rb"],
        {"unit": "test/models/", "integration": "test/integration/", "system": "test/system/"},
    ),
    # Scala
    "ScalaTest": FrameworkConventions(
        ["test/"], "scala", ["*Spec.scala"],
        {"unit": "src/test/scala/", "integration": "src/integration/scala/"},
    ),
    # Rust
    "Rust Test": FrameworkConventions(
        ["tests/"], "rust", ["*_test.rs"],
        {"unit": "tests/unit/", "integration": "tests/integration/"},
    ),
    # Dart / Flutter
    "Flutter Test": FrameworkConventions(
        ["test/"], "dart", ["*_test.dart"],
        {"unit": "test/", "integration": "integration_test/"},
    ),
    "Dart Test": FrameworkConventions(
        ["test/"], "dart", ["*_test.dart"],
        {"unit": "test/", "integration": "test/integration/"},
    ),
}

UNKNOWN_CONVENTIONS = FrameworkConventions(["tests/"], "unknown", ["*.test.*", "*.spec.*"], {"unit": "tests/"})

# First match wins, so every JS runner (vitest and mocha included) shadows the
# Python ones, which shadow JVM ones.
COVERAGE_PRECEDENCE = (
    ("jest", "coverage/"),
    ("vitest", "coverage/"),
    ("mocha", "coverage/"),
    ("pytest", "htmlcov/"),
    ("unittest", "htmlcov/"),
    ("JUnit", "target/site/jacoco/"),
    ("TestNG", "target/site/jacoco/"),
    ("Spek", "build/reports/jacoco/"),
    ("RSpec", "coverage/"),
    ("Minitest", "coverage/"),
    ("PHPUnit", "build/coverage/"),
    ("ScalaTest", "target/scoverage-report/"),
)
DEFAULT_COVERAGE_FOLDER = "coverage/"

FEATURE_DOMAIN_MARKERS = (os.path.join("src", "features"), os.path.join("src", "domains"))
EXTERNAL_TEST_REPO_MARKER = "tests-repo"


@dataclass(frozen=True)
class ConventionReport:
    test_folder_patterns: Dict[str, List[str]] = field(default_factory=dict)
    test_file_naming_convention: Dict[str, List[str]] = field(default_factory=dict)
    coverage_folder_path: str = DEFAULT_COVERAGE_FOLDER
    test_type_handling: Dict[str, str] = field(default_factory=dict)
    feature_domain_based_test: bool = False
    external_test_repo: Optional[str] = None


def conventions_for(framework_type: str) -> FrameworkConventions:
    return FRAMEWORK_CONVENTIONS.get(framework_type, UNKNOWN_CONVENTIONS)


def get_test_folder_patterns(frameworks: Sequence[DetectedFramework]) -> Dict[str, List[str]]:
    return {fw.type: list(conventions_for(fw.type).folders) for fw in frameworks}


def get_test_file_naming_convention(frameworks: Sequence[DetectedFramework]) -> Dict[str, List[str]]:
    """Keyed by language; a later framework of the same language replaces an earlier one."""
    naming = {}
    for fw in frameworks:
        conventions = conventions_for(fw.type)
        naming[conventions.language] = list(conventions.naming)
    return naming


def get_default_coverage_folder(frameworks: Sequence[DetectedFramework]) -> str:
    types = {fw.type for fw in frameworks}
    for framework_type, folder in COVERAGE_PRECEDENCE:
        if framework_type in types:
            return folder
    return DEFAULT_COVERAGE_FOLDER


def get_test_type_handling(frameworks: Sequence[DetectedFramework]) -> Dict[str, str]:
    handling = {}
    for fw in frameworks:
        handling.update(conventions_for(fw.type).type_handling)
    return handling


def detect_feature_domain_based_test(repo_path: str) -> bool:
    return any(os.path.exists(os.path.join(repo_path, marker)) for marker in FEATURE_DOMAIN_MARKERS)


def detect_external_test_repo(repo_path: str) -> Optional[str]:
    if os.path.exists(os.path.join(repo_path, EXTERNAL_TEST_REPO_MARKER)):
        return f"{EXTERNAL_TEST_REPO_MARKER}/"
    return None


def infer_conventions(frameworks: Sequence[DetectedFramework], repo_path: str) -> ConventionReport:
    return ConventionReport(
        test_folder_patterns=get_test_folder_patterns(frameworks),
        test_file_naming_convention=get_test_file_naming_convention(frameworks),
        coverage_folder_path=get_default_coverage_folder(frameworks),
        test_type_handling=get_test_type_handling(frameworks),
        feature_domain_based_test=detect_feature_domain_based_test(repo_path),
        external_test_repo=detect_external_test_repo(repo_path),
    )
