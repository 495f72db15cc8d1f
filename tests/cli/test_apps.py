from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from dockyard.appstore.models import Application
from dockyard.cli import main
from dockyard.deployments.models import Deployment
from dockyard.errors import InstallDisabled

APP = Application(
    id="src-whoami",
    source_id="src",
    name="whoami",
    compose_content="services: {}\n",
)


def test_apps_help():
    runner = CliRunner()
    result = runner.invoke(main, ['apps', '--help'])
    assert result.exit_code == 0
    assert "Browse and install catalog apps." in result.output


@patch('dockyard.cli.apps.get_catalog')
def test_apps_list(mock_get_catalog):
    mock_get_catalog.return_value.list_apps.return_value = [APP]

    runner = CliRunner()
    result = runner.invoke(main, ['apps', 'list', '-q', 'who'])

    assert result.exit_code == 0
    assert "src-whoami - whoami" in result.output
    mock_get_catalog.return_value.list_apps.assert_called_once_with(q='who', source_id=None)


@patch('dockyard.cli.apps.get_installer')
@patch('dockyard.cli.apps.get_catalog')
def test_apps_install(mock_get_catalog, mock_get_installer):
    mock_get_catalog.return_value.get_app.return_value = APP
    mock_get_installer.return_value.install = AsyncMock(
        return_value=Deployment(
            name="whoami",
            timestamp="2024-06-01T00-00-00-000Z",
            directory="/srv/apps/whoami/2024-06-01T00-00-00-000Z",
            compose_file="/srv/apps/whoami/2024-06-01T00-00-00-000Z/docker-compose.yml",
        )
    )

    runner = CliRunner()
    result = runner.invoke(main, ['apps', 'install', 'src-whoami'])

    assert result.exit_code == 0
    assert "Installed whoami at /srv/apps/whoami/2024-06-01T00-00-00-000Z" in result.output


@patch('dockyard.cli.apps.get_installer')
@patch('dockyard.cli.apps.get_catalog')
def test_apps_install_refused(mock_get_catalog, mock_get_installer):
    mock_get_catalog.return_value.get_app.return_value = APP
    mock_get_installer.return_value.install = AsyncMock(
        side_effect=InstallDisabled("Saving deployments to the server is disabled")
    )

    runner = CliRunner()
    result = runner.invoke(main, ['apps', 'install', 'src-whoami'])

    assert result.exit_code == 1
    assert "disabled" in result.output


@patch('dockyard.cli.apps.get_catalog')
def test_apps_install_unknown(mock_get_catalog):
    mock_get_catalog.return_value.get_app.return_value = None

    runner = CliRunner()
    result = runner.invoke(main, ['apps', 'install', 'missing'])

    assert result.exit_code == 1
    assert "not found" in result.output
