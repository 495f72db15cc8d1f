import logging

import click

from dockyard.cli.apps import apps
from dockyard.cli.deployments import deployments
from dockyard.cli.sources import sources


@click.group()
@click.pass_context
def main(ctx):
    """Dockyard CLI"""
    ctx.ensure_object(dict)


main.add_command(sources)
main.add_command(apps)
main.add_command(deployments)


@main.command()
@click.option('--host', default='127.0.0.1', help='The host to bind to.')
@click.option('--port', default=8000, help='The port to bind to.')
def server(host, port):
    """Run the FastAPI server."""
    import uvicorn

    from dockyard.api.server import app

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host=host, port=port)


if __name__ == '__main__':
    main()
