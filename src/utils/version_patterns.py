"""
Permissive version lookups over raw manifest text.

These are heuristics, not manifest parsers: the first run of digits and dots
after the framework marker is taken as its version, and an empty string is
returned when nothing matches.
"""
import re


def _first_version_after(content: str, framework: str) -> str:
    match = re.search(rf"{re.escape(framework)}[^\d]*(\d[\d.]*)", content)
    return match.group(1) if match else ""


def detect_version_in_xml(xml_content: str, framework: str) -> str:
    return _first_version_after(xml_content, framework)


def detect_version_in_gradle(gradle_content: str, framework: str) -> str:
    return _first_version_after(gradle_content, framework)


def detect_version_in_sbt(sbt_content: str, framework: str) -> str:
    return _first_version_after(sbt_content, framework)


def detect_version_in_gemfile(gemfile_content: str, framework: str) -> str:
    marker = re.escape(framework)
    match = re.search(rf"{marker}.*?version:\s*[\"'](\d+\.\d+\.\d+)[\"']", gemfile_content)
    if match:
        return match.group(1)
    # gem "rspec", "~> 3.12"
    match = re.search(rf"[\"']{marker}[\"']\s*,\s*[\"'][~><=!\s]*(\d[\d.]*)[\"']", gemfile_content)
    return match.group(1) if match else ""


def detect_version_in_requirement(line: str) -> str:
    _, _, pinned = line.partition("==")
    return pinned.split(";")[0].split("#")[0].strip()


def detect_version_in_dependencies(dependencies: dict, framework: str) -> str:
    version = dependencies.get(framework) or ""
    return version if isinstance(version, str) else ""
