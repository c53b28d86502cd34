from __future__ import annotations

import json
from dataclasses import dataclass
from importlib import resources
from typing import Any

from gridnum.contracts import ResourceManifest, ValidationError, ValidationIssue

EXPECTED_SCHEMA_VERSION = "1.0"
RESOURCE_PACKAGE = "gridnum.resources.football"


@dataclass(slots=True)
class ResourceBundle:
    manifest: ResourceManifest
    resources_by_id: dict[str, dict[str, Any]]

    def entries(self) -> list[dict[str, Any]]:
        return list(self.resources_by_id.values())


def load_bundle(
    filename: str,
    expected_type: str,
    bundle_overrides: dict[str, dict[str, Any]] | None = None,
) -> ResourceBundle:
    overrides = bundle_overrides or {}
    if filename in overrides:
        payload = overrides[filename]
    else:
        package = resources.files(RESOURCE_PACKAGE)
        payload = json.loads((package / filename).read_text(encoding="utf-8"))
    manifest_data = payload.get("manifest")
    resources_list = payload.get("resources")
    if not isinstance(manifest_data, dict) or not isinstance(resources_list, list):
        raise ValidationError([_issue("INVALID_RESOURCE_BUNDLE", filename, expected_type, "resource bundle must provide manifest and resources list")])

    required_manifest_fields = {"resource_type", "schema_version", "resource_version", "generated_at"}
    missing_manifest = sorted(required_manifest_fields - set(manifest_data.keys()))
    if missing_manifest:
        raise ValidationError(
            [_issue("MISSING_REQUIRED_RUNTIME_CONFIG", f"{filename}.manifest", expected_type, f"manifest missing required fields {missing_manifest}")]
        )

    manifest = ResourceManifest(
        resource_type=str(manifest_data["resource_type"]),
        schema_version=str(manifest_data["schema_version"]),
        resource_version=str(manifest_data["resource_version"]),
        generated_at=str(manifest_data["generated_at"]),
    )
    issues = _validate_manifest(manifest, expected_type)
    if issues:
        raise ValidationError(issues)

    by_id: dict[str, dict[str, Any]] = {}
    for entry in resources_list:
        if not isinstance(entry, dict):
            continue
        rid = str(entry.get("id", ""))
        if not rid:
            continue
        if rid in by_id:
            raise ValidationError([_issue("DUPLICATE_RESOURCE_ID", filename, rid, "resource ids must be unique")])
        by_id[rid] = dict(entry)
    if not by_id:
        raise ValidationError([_issue("EMPTY_RESOURCE_SET", filename, expected_type, "resource bundle contains no usable resource ids")])
    return ResourceBundle(manifest=manifest, resources_by_id=by_id)


def _validate_manifest(manifest: ResourceManifest, expected_type: str) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if manifest.resource_type != expected_type:
        issues.append(
            _issue("RESOURCE_TYPE_MISMATCH", "manifest.resource_type", expected_type, f"expected '{expected_type}', got '{manifest.resource_type}'")
        )
    if manifest.schema_version != EXPECTED_SCHEMA_VERSION:
        issues.append(
            _issue(
                "SCHEMA_VERSION_MISMATCH",
                "manifest.schema_version",
                expected_type,
                f"expected schema '{EXPECTED_SCHEMA_VERSION}', got '{manifest.schema_version}'",
            )
        )
    return issues


def _issue(code: str, field_path: str, entity_id: str, message: str) -> ValidationIssue:
    return ValidationIssue(code=code, severity="blocking", field_path=field_path, entity_id=entity_id, message=message)
