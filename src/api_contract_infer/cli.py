"""CLI entry point for api-contract-infer."""

import logging
from pathlib import Path

import click

from api_contract_infer.config import GeneratorConfig, load_config
from api_contract_infer.errors import ContractInferenceError
from api_contract_infer.generator.document import Document
from api_contract_infer.generator.validator import validate_document
from api_contract_infer.pipeline import run_pipeline


def _build_config(config_path: Path | None, **overrides) -> GeneratorConfig:
    """Options file (if any) overlaid with the options given on the command line."""
    if config_path is not None:
        return load_config(config_path, **overrides)
    return GeneratorConfig.model_validate({k: v for k, v in overrides.items() if v is not None})


def _render(document: Document, output: Path) -> str:
    suffix = output.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return document.to_yaml()
    if suffix in (".ts", ".js"):
        return document.to_module(typescript=suffix == ".ts")
    return document.to_json()


def _common_options(func):
    options = [
        click.option("--config", "config_path", type=click.Path(exists=True, path_type=Path), help="YAML/JSON options file."),
        click.option("--project-root", type=click.Path(path_type=Path), default=None, help="Directory relative paths resolve against."),
        click.option("--routes-dir", type=click.Path(path_type=Path), default=None, help="Routing files directory."),
        click.option("--controllers-dir", type=click.Path(path_type=Path), default=None, help="Handler files directory."),
        click.option("--validators-dir", type=click.Path(path_type=Path), default=None, help="Joi validator modules directory."),
        click.option("--schemas-dir", type=click.Path(path_type=Path), default=None, help="Declared TypeScript types directory."),
        click.option("--base-path", default=None, help="Base path prefix, e.g. /api/v1."),
        click.option("--smart-defaults/--no-smart-defaults", default=None, help="Guess request fields from route names."),
        click.option("--type-inference/--no-type-inference", "field_type_inference", default=None, help="Infer field kinds from names and usage."),
        click.option("--runtime-loading/--no-runtime-loading", default=None, help="Fall back to loading validators with Node.js."),
        click.option("--workers", type=click.IntRange(min=1), default=None, help="Route files analysed concurrently."),
        click.option("-v", "--verbose", is_flag=True, help="Debug logging."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@click.group()
def main():
    """API Contract Infer: derive OpenAPI documents from Express route sources."""
    pass


@main.command()
@_common_options
@click.option("-o", "--output", type=click.Path(path_type=Path), default=None, help="Output file (.json, .yaml, .ts or .js).")
@click.option("--title", default=None, help="Document title.")
@click.option("--api-version", "version", default=None, help="Document version.")
@click.option("--description", default=None, help="Document description.")
def generate(config_path: Path | None, verbose: bool, output: Path | None, **options):
    """Generate an OpenAPI document from the project's routes."""
    _configure_logging(verbose)
    try:
        config = _build_config(config_path, output_file=output, **options)
    except (ContractInferenceError, ValueError) as e:
        raise click.ClickException(str(e))

    click.echo(f"Analysing routes in {config.resolve(config.routes_dir)}...")
    document = run_pipeline(config)
    click.echo(f"Found {len(document.endpoints)} endpoints.")

    target = config.output_file if config.output_file.is_absolute() else config.project_root / config.output_file
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(_render(document, target), encoding="utf-8")

    for warning in document.warnings:
        click.echo(f"  Warning: {warning}", err=True)
    click.echo(f"Document saved to {target}")


@main.command()
@_common_options
def validate(config_path: Path | None, verbose: bool, **options):
    """List inferred endpoints and check the generated document for problems."""
    _configure_logging(verbose)
    try:
        config = _build_config(config_path, **options)
    except (ContractInferenceError, ValueError) as e:
        raise click.ClickException(str(e))

    document = run_pipeline(config)
    for endpoint in document.endpoints:
        lock = "auth" if endpoint.requires_auth else "public"
        click.echo(f"{endpoint.method:<7} {endpoint.path}  [{lock}] {endpoint.summary}")
    for warning in document.warnings:
        click.echo(f"  Warning: {warning}", err=True)

    problems = validate_document(document.to_openapi())
    if problems:
        for location, message in problems.items():
            click.echo(f"  {location}: {message}", err=True)
        raise click.ClickException(f"{len(problems)} problem(s) found")
    click.echo(f"{len(document.endpoints)} endpoints, no problems found.")
