"""Plugin manifest model and validation.

``validate_manifest`` is a pure function over the raw manifest mapping and
reports every problem it finds. ``PluginManifest.from_dict`` runs it first and
only builds the immutable model for manifests without errors.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from host.exceptions import ManifestValidationError
from host.versioning import in_range, is_version_token

PluginType = Literal["dashboard-widget", "page", "cli-tool", "service", "hybrid"]

PLUGIN_TYPES: frozenset[str] = frozenset(
    {"dashboard-widget", "page", "cli-tool", "service", "hybrid"}
)

CANONICAL_PERMISSIONS: frozenset[str] = frozenset(
    {
        "network-access",
        "storage-read",
        "storage-write",
        "filesystem-access",
        "notifications",
        "clipboard-read",
        "clipboard-write",
        "geolocation",
        "camera",
        "microphone",
        "calendar",
        "contacts",
    }
)

ENTRY_POINTS = ("main", "web", "background")
IDENTITY_FIELDS = ("name", "version", "description", "type")
OPTIONAL_STRINGS = ("category", *ENTRY_POINTS)


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of :func:`validate_manifest`. Errors block loading; warnings do not."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _missing(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _check_optional_strings(
    block: Mapping[str, Any], keys: tuple[str, ...], label: str, errors: list[str]
) -> None:
    for key in keys:
        value = block.get(key)
        if value is not None and not isinstance(value, str):
            errors.append(f"{label}{key} must be a string")


def validate_manifest(manifest: Mapping[str, Any]) -> ValidationResult:
    """Check a raw manifest mapping.

    Every manifest this accepts is also accepted by :class:`PluginManifest`.

    Args:
        manifest: Manifest as loaded from JSON/TOML.

    Returns:
        The validation result with all errors and warnings found.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(manifest, Mapping):
        return ValidationResult(False, ["Manifest must be a mapping"], [])

    _check_identity(manifest, errors, warnings)
    _check_permissions(manifest.get("permissions"), errors, warnings)
    _check_type_requirements(manifest, errors, warnings)
    _check_external_services(manifest.get("external_services"), errors, warnings)
    _check_pages(manifest.get("pages"), errors)
    _check_commands(manifest.get("commands"), errors)
    _check_config(manifest, errors)

    if not any(manifest.get(entry) for entry in ENTRY_POINTS):
        errors.append("At least one entry point (main, web, or background) is required")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def _check_identity(manifest: Mapping[str, Any], errors: list[str], warnings: list[str]) -> None:
    for name in IDENTITY_FIELDS:
        value = manifest.get(name)
        if _missing(value):
            errors.append(f"Missing plugin {name}")
        elif not isinstance(value, str):
            errors.append(f"Plugin {name} must be a string")

    version = manifest.get("version")
    if isinstance(version, str) and version and not is_version_token(version):
        errors.append(f"Invalid plugin version: {version!r}")

    plugin_type = manifest.get("type")
    if isinstance(plugin_type, str) and plugin_type and plugin_type not in PLUGIN_TYPES:
        errors.append(f"Unknown plugin type: {plugin_type!r}")

    if "manifest_version" in manifest:
        manifest_version = manifest["manifest_version"]
        if (
            isinstance(manifest_version, bool)
            or not isinstance(manifest_version, int)
            or manifest_version < 1
        ):
            errors.append("manifest_version must be a positive integer")

    _check_optional_strings(manifest, OPTIONAL_STRINGS, "", errors)

    author = manifest.get("author")
    if isinstance(author, Mapping):
        if _missing(author.get("name")):
            errors.append("Author object must include name field")
        elif not isinstance(author["name"], str):
            errors.append("Author name must be a string")
        elif _missing(author.get("email")):
            warnings.append("Author object should include email for better contact")
        _check_optional_strings(author, ("email", "website"), "Author ", errors)
    elif author is not None and not isinstance(author, str):
        errors.append("Author must be a string or a mapping")

    for bound in ("min_host_version", "max_host_version", "sdk_version"):
        value = manifest.get(bound)
        if value is not None and not is_version_token(value):
            errors.append(f"Invalid {bound}: {value!r}")


def _check_permissions(permissions: Any, errors: list[str], warnings: list[str]) -> None:
    if not isinstance(permissions, list):
        errors.append("Permissions must be a list")
        return

    for index, permission in enumerate(permissions):
        if isinstance(permission, str):
            token = permission
        elif isinstance(permission, Mapping):
            kind = permission.get("type")
            description = permission.get("description")
            if _missing(kind) or _missing(description):
                errors.append(f"Permission at index {index} missing required fields")
                continue
            if not isinstance(kind, str) or not isinstance(description, str):
                errors.append(f"Permission at index {index} type and description must be strings")
                continue
            if "required" in permission and not isinstance(permission["required"], bool):
                errors.append(f"Permission at index {index} required must be a boolean")
            token = kind
        else:
            errors.append(f"Permission at index {index} must be a string or mapping")
            continue

        if "." in token:
            errors.append(
                f"Legacy permission token {token!r} is not accepted; "
                "use the kebab-case form"
            )
        elif token not in CANONICAL_PERMISSIONS:
            label = "permission" if isinstance(permission, str) else "permission type"
            warnings.append(f"Unknown {label}: {token}")


def _check_type_requirements(
    manifest: Mapping[str, Any], errors: list[str], warnings: list[str]
) -> None:
    plugin_type = manifest.get("type")
    widget = manifest.get("dashboard_widget")

    if plugin_type == "dashboard-widget" and _missing(widget):
        errors.append("dashboard-widget type requires dashboard_widget configuration")
    if isinstance(widget, Mapping):
        _check_widget(widget, errors)
    elif widget is not None:
        errors.append("dashboard_widget must be a mapping")

    if plugin_type == "page" and _missing(manifest.get("pages")):
        warnings.append("page type should include pages configuration")

    if plugin_type == "cli-tool" and _missing(manifest.get("commands")):
        warnings.append("cli-tool type should include commands configuration")


def _check_widget(widget: Mapping[str, Any], errors: list[str]) -> None:
    for key in ("name", "component"):
        if _missing(widget.get(key)):
            errors.append(f"dashboard_widget missing {key}")
        elif not isinstance(widget[key], str):
            errors.append(f"dashboard_widget {key} must be a string")
    if "description" in widget and not isinstance(widget["description"], str):
        errors.append("dashboard_widget description must be a string")
    _check_optional_strings(widget, ("size", "position"), "dashboard_widget ", errors)

    for key in ("defaultSize", "default_size"):
        size = widget.get(key)
        if size is None:
            continue
        if not isinstance(size, Mapping) or not all(
            isinstance(k, str) and isinstance(v, int) and not isinstance(v, bool)
            for k, v in size.items()
        ):
            errors.append(f"dashboard_widget {key} must map names to integers")
    for key in ("configSchema", "config_schema"):
        schema = widget.get(key)
        if schema is not None and not isinstance(schema, Mapping):
            errors.append(f"dashboard_widget {key} must be a mapping")


def _items(
    key: str, label: str, items: Any, errors: list[str]
) -> list[tuple[int, Mapping[str, Any]]]:
    """Return the mapping items of a nested list, reporting the rest."""
    if items is None:
        return []
    if not isinstance(items, list):
        errors.append(f"{key} must be a list")
        return []
    found: list[tuple[int, Mapping[str, Any]]] = []
    for index, item in enumerate(items):
        if isinstance(item, Mapping):
            found.append((index, item))
        else:
            errors.append(f"{label} {index} must be a mapping")
    return found


def _check_external_services(items: Any, errors: list[str], warnings: list[str]) -> None:
    for index, service in _items("external_services", "External service", items, errors):
        for key in ("name", "base_url"):
            if _missing(service.get(key)):
                errors.append(f"External service {index} missing {key}")
            elif not isinstance(service[key], str):
                errors.append(f"External service {index} {key} must be a string")
        _check_optional_strings(service, ("description",), f"External service {index} ", errors)
        if not isinstance(service.get("api_key_required"), bool):
            warnings.append(
                f"External service {index} should specify api_key_required as boolean"
            )


def _check_pages(items: Any, errors: list[str]) -> None:
    for index, page in _items("pages", "Page", items, errors):
        for key in ("name", "path", "component", "title"):
            if _missing(page.get(key)):
                errors.append(f"Page {index} missing {key}")
            elif not isinstance(page[key], str):
                errors.append(f"Page {index} {key} must be a string")
        _check_optional_strings(page, ("description", "icon"), f"Page {index} ", errors)


def _check_commands(items: Any, errors: list[str]) -> None:
    for index, command in _items("commands", "Command", items, errors):
        required = [command.get(key) for key in ("name", "description", "usage")]
        if any(_missing(value) for value in required):
            errors.append(f"Command at index {index} missing required fields")
        elif not all(isinstance(value, str) for value in required):
            errors.append(f"Command at index {index} fields must be strings")

        aliases = command.get("aliases")
        if "aliases" in command and not (
            isinstance(aliases, list) and all(isinstance(alias, str) for alias in aliases)
        ):
            errors.append(f"Command at index {index} aliases must be a list of strings")


def _check_config(manifest: Mapping[str, Any], errors: list[str]) -> None:
    schema = manifest.get("config_schema")
    if schema is not None and not isinstance(schema, Mapping):
        errors.append("config_schema must be a mapping")
    if "default_config" in manifest and not isinstance(manifest["default_config"], Mapping):
        errors.append("default_config must be a mapping")


class _Block(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)


class AuthorInfo(_Block):
    name: str
    email: str | None = None
    website: str | None = None


class PermissionSpec(_Block):
    type: str
    description: str
    required: bool = True


class DashboardWidget(_Block):
    name: str
    component: str
    description: str = ""
    default_size: dict[str, int] | None = Field(default=None, alias="defaultSize")
    size: str | None = None
    position: str | None = None
    config_schema: dict[str, Any] | None = Field(default=None, alias="configSchema")


class PageSpec(_Block):
    name: str
    path: str
    component: str
    title: str
    description: str | None = None
    icon: str | None = None


class CommandSpec(_Block):
    name: str
    description: str
    usage: str
    aliases: list[str] = Field(default_factory=list)


class ExternalService(_Block):
    name: str
    base_url: str
    api_key_required: Any = None
    description: str | None = None


class PluginManifest(BaseModel):
    """Immutable, validated plugin manifest."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    name: str
    version: str
    description: str
    type: PluginType
    manifest_version: int | None = None
    author: AuthorInfo | str | None = None
    category: str | None = None
    permissions: list[PermissionSpec | str] = Field(default_factory=list)
    main: str | None = None
    web: str | None = None
    background: str | None = None
    dashboard_widget: DashboardWidget | None = None
    pages: list[PageSpec] | None = None
    commands: list[CommandSpec] | None = None
    external_services: list[ExternalService] | None = None
    config_schema: dict[str, Any] | None = None
    default_config: dict[str, Any] = Field(default_factory=dict)
    sdk_version: str | None = None
    min_host_version: str | None = None
    max_host_version: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PluginManifest:
        """Validate ``data`` and build the model.

        Raises:
            ManifestValidationError: If validation reports any error.
        """
        result = validate_manifest(data)
        if not result.valid:
            name = data.get("name") if isinstance(data, Mapping) else None
            raise ManifestValidationError(
                f"Manifest for {name or '<unnamed>'} is invalid",
                errors=result.errors,
                warnings=result.warnings,
            )
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            errors = [
                f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
                for err in exc.errors()
            ]
            raise ManifestValidationError(
                f"Manifest for {data.get('name')} is invalid",
                errors=errors,
                warnings=result.warnings,
                cause=exc,
            ) from exc

    @property
    def permission_tokens(self) -> frozenset[str]:
        return frozenset(
            perm if isinstance(perm, str) else perm.type for perm in self.permissions
        )

    @property
    def entry_points(self) -> dict[str, str]:
        return {
            entry: getattr(self, entry) for entry in ENTRY_POINTS if getattr(self, entry)
        }


def is_plugin_compatible(manifest: PluginManifest, host_version: str) -> bool:
    """Return whether ``host_version`` lies within the manifest's host range."""
    return in_range(host_version, manifest.min_host_version, manifest.max_host_version)
