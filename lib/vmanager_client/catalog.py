from __future__ import annotations

from typing import Any

from .errors import ApiError

SOFTWARE_PROJECTS = {
    "papermc": "paper",
    "velocity": "velocity",
}


def project_for(software_type: str) -> str:
    key = str(software_type or "").strip().lower()
    project = SOFTWARE_PROJECTS.get(key)
    if not project:
        raise ValueError(f"Unknown software type: {software_type}")
    return project


def extract_versions(payload: dict[str, Any]) -> list[str]:
    versions = payload.get("versions") if isinstance(payload, dict) else None
    if not isinstance(versions, list):
        raise ApiError(502, "Catalog response is missing 'versions'.", None)
    return [str(v) for v in versions if isinstance(v, (str, int, float))]


def extract_builds(payload: dict[str, Any]) -> list[int]:
    builds = payload.get("builds") if isinstance(payload, dict) else None
    if not isinstance(builds, list):
        raise ApiError(502, "Catalog response is missing 'builds'.", None)
    numbers: list[int] = []
    for item in builds:
        value = item.get("build") if isinstance(item, dict) else item
        if isinstance(value, bool):
            continue
        try:
            numbers.append(int(value))
        except (TypeError, ValueError):
            continue
    return numbers


async def list_versions(client, software_type: str) -> list[str]:
    """Versions for a software type, oldest first as the catalog returns them."""
    data = await client.papermc_project(project_for(software_type))
    return extract_versions(data)


async def list_builds(client, software_type: str, version: str) -> list[int]:
    value = str(version or "").strip()
    if not value:
        raise ValueError("Version is required.")
    data = await client.papermc_builds(project_for(software_type), value)
    return extract_builds(data)
