"""
Command Line Interface for redpack.
"""
import os
import click
from pydantic import ValidationError
from ..errors import RedpackError
from ..MODELS.image_recipe import ImageRecipe, Topology
from ..PARSERS.config_parser import ProjectConfigParser
from ..CONVERTERS.to_dockerfile import DockerfileConverter
from ..BUILDERS.context_builder import BuildContextBuilder
from ..BUILDERS.dockerfile_analyzer import DockerfileAnalyzer
from ..BUILDERS.image_builder import ImageBuilder
from ..MANAGERS.dockerfile_linter import DockerfileLinter
from ..MANAGERS.image_verifier import ImageVerifier
from ..RUNNERS.command_runner import CommandRunner

TOPOLOGIES = [t.value for t in Topology]
DEFAULT_CONFIG = 'redpack.yml'


@click.group()
@click.option('--config', '-c', default=None, type=click.Path(), help='Project file (default: redpack.yml if present)')
@click.option('--source-dir', default=None, type=click.Path(), help='Directory holding the config files and entrypoint scripts')
@click.option('--base-image', default=None, help='Base image for both topologies')
@click.option('--verbose', '-v', is_flag=True, help='Print every docker command')
@click.pass_context
def cli(ctx, config, source_dir, base_image, verbose):
    """
    redpack - build the Redis sentinel and cluster images.

    Renders each topology's Dockerfile, stages a reproducible build
    context and drives docker to build and verify the images.
    """
    ctx.ensure_object(dict)
    if config is None and os.path.exists(DEFAULT_CONFIG):
        config = DEFAULT_CONFIG
    try:
        project = ProjectConfigParser().load(config)
        if base_image:
            project.images = {
                topology: ImageRecipe(**{**recipe.model_dump(), 'base_image': base_image})
                for topology, recipe in project.images.items()
            }
        if source_dir:
            # The command line wins over per-image source directories
            project.images = {
                topology: recipe.model_copy(update={'source_dir': None})
                for topology, recipe in project.images.items()
            }
    except (RedpackError, ValidationError) as e:
        raise click.ClickException(str(e))

    ctx.obj['project'] = project
    ctx.obj['source_dir'] = source_dir or project.source_dir
    ctx.obj['runner'] = CommandRunner(verbose=verbose)


def _recipe(ctx, topology):
    return ctx.obj['project'].recipe(topology)


def _context_builder(ctx):
    return BuildContextBuilder(source_dir=ctx.obj['source_dir'])


@cli.command('list')
@click.pass_context
def list_images(ctx):
    """List the images this project builds"""
    project = ctx.obj['project']
    click.echo(f"{'TOPOLOGY':10} {'PORT':6} {'CONFIG':16} {'ENTRYPOINT':24} TAG")
    for topology in Topology:
        recipe = project.recipe(topology)
        click.echo(f"{topology.value:10} {recipe.port:<6} {recipe.config_file:16} "
                   f"{recipe.entrypoint_script:24} {recipe.tag}")


@cli.command()
@click.argument('topology', type=click.Choice(TOPOLOGIES))
@click.option('--out', '-o', default=None, help='Write <out>/<topology>/Dockerfile instead of printing')
@click.pass_context
def render(ctx, topology, out):
    """Render a topology's Dockerfile"""
    recipe = _recipe(ctx, topology)
    converter = DockerfileConverter()
    if out:
        converter.convert(recipe, out)
    else:
        click.echo(converter.render(recipe), nl=False)


@cli.command()
@click.argument('topology', type=click.Choice(TOPOLOGIES))
@click.option('--out', '-o', required=True, help='Output directory, or a .tar file')
@click.pass_context
def context(ctx, topology, out):
    """Stage a topology's build context"""
    builder = _context_builder(ctx)
    try:
        staged = builder.stage(_recipe(ctx, topology))
    except RedpackError as e:
        raise click.ClickException(str(e))
    try:
        builder.write(staged, out)
    except OSError as e:
        raise click.ClickException(f"Cannot write build context to {out}: {e}")
    click.echo(staged.digest)


@cli.command()
@click.argument('topology', type=click.Choice(TOPOLOGIES + ['all']))
@click.option('--tag', '-t', default=None, help='Image tag (single topology only)')
@click.option('--pull', is_flag=True, help='Always pull a newer base image')
@click.option('--no-cache', is_flag=True, help='Do not use the layer cache')
@click.option('--dry-run', is_flag=True, help='Stage and validate without running docker')
@click.pass_context
def build(ctx, topology, tag, pull, no_cache, dry_run):
    """Build one image, or both with 'all'"""
    if topology == 'all' and tag:
        raise click.UsageError("--tag cannot be used with 'all'")

    builder = ImageBuilder(context_builder=_context_builder(ctx), runner=ctx.obj['runner'])
    topologies = TOPOLOGIES if topology == 'all' else [topology]
    failed = []
    for name in topologies:
        try:
            result = builder.build(_recipe(ctx, name), tag=tag, pull=pull,
                                   no_cache=no_cache, dry_run=dry_run)
        except RedpackError as e:
            click.echo(f"Error: {e}", err=True)
            failed.append(name)
            continue
        click.echo(f"{name}: {result.tag} {result.image_id or result.context_digest}")

    if failed:
        raise click.ClickException(f"Build failed for: {', '.join(failed)}")


@cli.command()
@click.argument('dockerfile', type=click.Path(exists=True, dir_okay=False))
@click.option('--topology', '-t', required=True, type=click.Choice(TOPOLOGIES))
@click.pass_context
def lint(ctx, dockerfile, topology):
    """Check a Dockerfile against a topology's recipe"""
    image = DockerfileAnalyzer().analyze_file(dockerfile)
    linter = DockerfileLinter()
    findings = linter.lint(image, _recipe(ctx, topology))
    for finding in findings:
        click.echo(f"{dockerfile}: {finding}")
    if linter.has_errors(findings):
        raise click.ClickException(f"{dockerfile} does not implement the {topology} image")
    if not findings:
        click.echo(f"{dockerfile}: ok")


@cli.command()
@click.argument('topology', type=click.Choice(TOPOLOGIES))
@click.option('--tag', '-t', default=None, help='Image to verify (default: the recipe tag)')
@click.pass_context
def verify(ctx, topology, tag):
    """Verify a built image"""
    verifier = ImageVerifier(runner=ctx.obj['runner'])
    try:
        report = verifier.verify(_recipe(ctx, topology), tag=tag)
    except RedpackError as e:
        raise click.ClickException(str(e))
    if not report.passed:
        names = ", ".join(check.name for check in report.failures)
        raise click.ClickException(f"{report.tag} failed: {names}")
    click.echo(f"{report.tag}: all {len(report.checks)} checks passed")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})

if __name__ == '__main__':
    main()
