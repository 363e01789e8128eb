"""Command line interface for the plugin host core."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from host import __version__
from host.exceptions import ManifestValidationError
from host.versioning import is_version_token
from plugins.adapters import create_default_registry
from plugins.manifest import PluginManifest, is_plugin_compatible, validate_manifest


def _read_manifest(path: str) -> dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise click.ClickException(f"{path} must contain a JSON object")
    return data


@click.group()
@click.version_option(version=__version__, prog_name="plughost")
def cli() -> None:
    """Plugin Host CLI"""


@cli.command()
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False))
def validate(manifest: str) -> None:
    """Validate a plugin manifest file"""
    result = validate_manifest(_read_manifest(manifest))
    for error in result.errors:
        click.echo(f"error: {error}")
    for warning in result.warnings:
        click.echo(f"warning: {warning}")

    if not result.valid:
        click.echo(f"{manifest}: invalid ({len(result.errors)} error(s))")
        raise SystemExit(1)
    click.echo(f"{manifest}: valid")


@cli.command()
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False))
@click.option("--host-version", required=True, help="Host version to check against")
def compat(manifest: str, host_version: str) -> None:
    """Check a plugin manifest against a host version"""
    if not is_version_token(host_version):
        raise click.BadParameter(f"not a version: {host_version}", param_hint="--host-version")

    raw = _read_manifest(manifest)
    registry = create_default_registry()
    sdk_version = raw.get("sdk_version")

    if is_version_token(sdk_version) and registry.needs_adaptation(sdk_version):
        adapter = registry.get_adapter(sdk_version)
        if adapter is None:
            click.echo(f"sdk_version={sdk_version}: no adapter available")
            raise SystemExit(1)
        raw, _ = adapter.translate_manifest(raw)
        click.echo(f"sdk_version={sdk_version}: adapter {adapter.version_pattern}")
    elif sdk_version is not None:
        click.echo(f"sdk_version={sdk_version}: native")

    try:
        parsed = PluginManifest.from_dict(raw)
    except ManifestValidationError as exc:
        for error in exc.errors:
            click.echo(f"error: {error}")
        raise SystemExit(1) from exc

    compatible = is_plugin_compatible(parsed, host_version)
    click.echo(
        f"host range: [{parsed.min_host_version or '*'}, {parsed.max_host_version or '*'}]"
    )
    click.echo(f"compatible={str(compatible).lower()}")
    if not compatible:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
