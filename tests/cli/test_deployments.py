from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from dockyard.cli import main
from dockyard.deployments.models import InstalledApp
from dockyard.errors import DeploymentNotFound


def test_deployments_help():
    runner = CliRunner()
    result = runner.invoke(main, ['deployments', '--help'])
    assert result.exit_code == 0
    assert "Manage installed deployments." in result.output


@patch('dockyard.cli.deployments.get_controller')
def test_deployments_list(mock_get_controller):
    mock_get_controller.return_value.store.list_deployments.return_value = [
        InstalledApp(name="whoami", path="/srv/apps/whoami", valid=True, versions=["2024-06-01T00-00-00-000Z"]),
        InstalledApp(name="broken", path="/srv/apps/broken", valid=False),
    ]

    runner = CliRunner()
    result = runner.invoke(main, ['deployments', 'list'])

    assert result.exit_code == 0
    assert "whoami - 2024-06-01T00-00-00-000Z" in result.output
    assert "broken - invalid" in result.output


@patch('dockyard.cli.deployments.get_controller')
def test_deployments_action(mock_get_controller):
    controller = mock_get_controller.return_value
    controller.apply = AsyncMock()

    runner = CliRunner()
    result = runner.invoke(main, ['deployments', 'action', 'whoami', 'restart'])

    assert result.exit_code == 0
    assert "restart completed for whoami." in result.output
    assert controller.apply.call_args[0][:2] == ('whoami', 'restart')


def test_deployments_action_rejects_unknown_action():
    runner = CliRunner()
    with patch('dockyard.cli.deployments.get_controller'):
        result = runner.invoke(main, ['deployments', 'action', 'whoami', 'explode'])
    assert result.exit_code == 2


@patch('dockyard.cli.deployments.get_controller')
def test_deployments_action_missing_app(mock_get_controller):
    mock_get_controller.return_value.apply = AsyncMock(side_effect=DeploymentNotFound("ghost"))

    runner = CliRunner()
    result = runner.invoke(main, ['deployments', 'action', 'ghost', 'up'])

    assert result.exit_code == 1
    assert "App deployment not found: ghost" in result.output


@patch('dockyard.cli.deployments.get_controller')
def test_deployments_remove(mock_get_controller):
    controller = mock_get_controller.return_value
    controller.remove = AsyncMock()

    runner = CliRunner()
    result = runner.invoke(main, ['deployments', 'remove', 'whoami', '--delete-images', '--delete-volumes'])

    assert result.exit_code == 0
    kwargs = controller.remove.call_args[1]
    assert kwargs['delete_images'] is True
    assert kwargs['delete_volumes'] is True
