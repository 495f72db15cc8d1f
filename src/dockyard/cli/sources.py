import click

from dockyard.api.dependencies import get_catalog
from dockyard.appstore.models import SourceStatus, SourceVariant
from dockyard.errors import DockyardError


@click.group()
@click.pass_context
def sources(ctx):
    """Manage catalog sources."""
    ctx.obj['catalog'] = get_catalog()


@sources.command(name='list')
@click.pass_context
def list_sources(ctx):
    """List registered sources."""
    for source in ctx.obj['catalog'].registry.list_sources():
        variant = source.variant.value if source.variant else source.kind.value
        click.echo(f"{source.id} - {source.url} - {variant} - {source.status.value}")


@sources.command(name='add')
@click.argument('url')
@click.option(
    '--variant',
    type=click.Choice([variant.value for variant in SourceVariant]),
    help='How bundles in the source are annotated.',
)
@click.option('--name', help='Display name for the source.')
@click.pass_context
def add_source(ctx, url, variant, name):
    """Register a source and fetch it."""
    try:
        source = ctx.obj['catalog'].add_source(
            url, variant=SourceVariant(variant) if variant else None, name=name
        )
    except DockyardError as e:
        raise click.ClickException(str(e))

    if source.status == SourceStatus.ERROR:
        raise click.ClickException(f"Source {source.id} added but failed to process: {source.error}")
    click.echo(f"Source {source.id} added.")


@sources.command(name='remove')
@click.argument('source_id')
@click.pass_context
def remove_source(ctx, source_id):
    """Remove a source and its cached bundles."""
    try:
        ctx.obj['catalog'].remove_source(source_id)
    except DockyardError as e:
        raise click.ClickException(str(e))
    click.echo(f"Source {source_id} removed.")


@sources.command(name='refresh')
@click.argument('source_id')
@click.pass_context
def refresh_source(ctx, source_id):
    """Fetch a source again."""
    try:
        ctx.obj['catalog'].refresh_source(source_id)
    except DockyardError as e:
        raise click.ClickException(str(e))
    click.echo(f"Source {source_id} refreshed.")
