import asyncio

import click

from dockyard.api.dependencies import get_controller
from dockyard.deployments.models import LifecycleAction
from dockyard.errors import DockyardError


def _echo_output(line, is_error):
    click.echo(line, err=is_error)


@click.group()
@click.pass_context
def deployments(ctx):
    """Manage installed deployments."""
    ctx.obj['controller'] = get_controller()


@deployments.command(name='list')
@click.pass_context
def list_deployments(ctx):
    """List installed apps."""
    for app in ctx.obj['controller'].store.list_deployments():
        latest = app.versions[0] if app.versions else "legacy"
        state = latest if app.valid else "invalid"
        click.echo(f"{app.name} - {state}")


@deployments.command(name='action')
@click.argument('name')
@click.argument('action', type=click.Choice([action.value for action in LifecycleAction]))
@click.pass_context
def run_action(ctx, name, action):
    """Run a compose lifecycle action for an app."""
    try:
        asyncio.run(ctx.obj['controller'].apply(name, action, on_output=_echo_output))
    except DockyardError as e:
        raise click.ClickException(str(e))
    click.echo(f"{action} completed for {name}.")


@deployments.command(name='remove')
@click.argument('name')
@click.option('--delete-images', is_flag=True, help='Also remove the images used by the app.')
@click.option('--delete-volumes', is_flag=True, help='Also remove the volumes of the app.')
@click.pass_context
def remove_deployment(ctx, name, delete_images, delete_volumes):
    """Take an app down and delete all of its versions."""
    try:
        asyncio.run(
            ctx.obj['controller'].remove(
                name,
                delete_images=delete_images,
                delete_volumes=delete_volumes,
                on_output=_echo_output,
            )
        )
    except DockyardError as e:
        raise click.ClickException(str(e))
    click.echo(f"App {name} deleted.")
