import asyncio

import click

from dockyard.api.dependencies import get_catalog, get_installer
from dockyard.errors import DockyardError


@click.group()
@click.pass_context
def apps(ctx):
    """Browse and install catalog apps."""
    ctx.obj['catalog'] = get_catalog()


@apps.command(name='list')
@click.option('--query', '-q', help='Only apps whose name or description matches.')
@click.option('--source', 'source_id', help='Only apps from this source.')
@click.pass_context
def list_apps(ctx, query, source_id):
    """List apps from every processed source."""
    for app in ctx.obj['catalog'].list_apps(q=query, source_id=source_id):
        click.echo(f"{app.id} - {app.name}")


@apps.command(name='install')
@click.argument('app_id')
@click.option('--name', help='Deployment name, defaults to the app name.')
@click.pass_context
def install_app(ctx, app_id, name):
    """Store an app's compose file as a new deployment version."""
    app = ctx.obj['catalog'].get_app(app_id)
    if app is None:
        raise click.ClickException(f"App '{app_id}' not found")
    try:
        deployment = asyncio.run(get_installer().install(app, name=name))
    except DockyardError as e:
        raise click.ClickException(str(e))
    click.echo(f"Installed {deployment.name} at {deployment.directory}")
