import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from dockyard.deployments.controller import DeploymentController, project_name
from dockyard.deployments.models import CommandResult
from dockyard.deployments.store import DeploymentStore
from dockyard.errors import CommandFailed, CommandTimeout, DeploymentNotFound, InvalidAction


class FakeStream:
    def __init__(self, lines):
        self._lines = [line.encode() for line in lines]

    async def readline(self):
        if not self._lines:
            return b""
        return self._lines.pop(0)


class FakeProcess:
    def __init__(self, stdout=(), stderr=(), returncode=0, hang=False):
        self.stdout = FakeStream(stdout)
        self.stderr = FakeStream(stderr)
        self.returncode = None
        self._exit_code = returncode
        self._hang = hang
        self.killed = False

    async def wait(self):
        if self._hang and not self.killed:
            await asyncio.sleep(3600)
        self.returncode = -9 if self.killed else self._exit_code
        return self.returncode

    def kill(self):
        self.killed = True


def fake_exec(process, calls):
    async def create(*command, **kwargs):
        calls.append(list(command))
        return process

    return create


@pytest.fixture
def store(tmp_path):
    store = DeploymentStore(str(tmp_path))
    store.install({"name": "My App!"}, "services: {}\n")
    return store


def test_project_name_is_shared_by_all_versions():
    assert project_name("My App!") == "my_app_"
    assert project_name("my app?") == "my_app_"


def test_build_command(store):
    controller = DeploymentController(store, compose_command="docker compose")
    deployment = store.get("My App!")

    command = controller.build_command(deployment, "up", "-d")

    assert command == [
        "docker",
        "compose",
        "-p",
        "my_app_",
        "-f",
        deployment.compose_file,
        "up",
        "-d",
    ]


@pytest.mark.asyncio
async def test_apply_up_runs_detached(store):
    controller = DeploymentController(store, compose_command="docker compose")
    controller.run = AsyncMock(return_value=CommandResult(command=[], exit_code=0))

    await controller.apply("My App!", "up")

    command = controller.run.call_args[0][0]
    assert command[-2:] == ["up", "-d"]
    assert command[command.index("-p") + 1] == "my_app_"


@pytest.mark.asyncio
async def test_apply_rejects_unknown_action(store):
    controller = DeploymentController(store)
    controller.run = AsyncMock()

    with pytest.raises(InvalidAction):
        await controller.apply("My App!", "explode")
    controller.run.assert_not_called()


@pytest.mark.asyncio
async def test_apply_requires_deployment(tmp_path):
    controller = DeploymentController(DeploymentStore(str(tmp_path)))
    with pytest.raises(DeploymentNotFound):
        await controller.apply("ghost", "restart")


@pytest.mark.asyncio
async def test_remove_tears_down_and_deletes(store, tmp_path):
    controller = DeploymentController(store, compose_command="docker compose")
    controller.run = AsyncMock(return_value=CommandResult(command=[], exit_code=0))

    await controller.remove("My App!", delete_images=True, delete_volumes=True)

    command = controller.run.call_args[0][0]
    assert command[-5:] == ["down", "--remove-orphans", "--rmi", "all", "--volumes"]
    assert not (tmp_path / "My_App_").exists()


@pytest.mark.asyncio
async def test_remove_deletes_files_even_when_down_fails(store, tmp_path):
    controller = DeploymentController(store)
    controller.run = AsyncMock(side_effect=CommandFailed(["docker"], 1, "no such project"))

    await controller.remove("My App!")

    command = controller.run.call_args[0][0]
    assert "--rmi" not in command and "--volumes" not in command
    assert not (tmp_path / "My_App_").exists()


@pytest.mark.asyncio
async def test_run_streams_output(store):
    controller = DeploymentController(store)
    process = FakeProcess(stdout=["pulling\n", "started\n"], stderr=["warning\n"])
    calls = []
    seen = []

    with patch("asyncio.create_subprocess_exec", fake_exec(process, calls)):
        result = await controller.run(["docker", "compose", "ps"], on_output=lambda line, err: seen.append((line, err)))

    assert calls == [["docker", "compose", "ps"]]
    assert result.exit_code == 0
    assert result.stdout == "pulling\nstarted\n"
    assert result.stderr == "warning\n"
    assert sorted(seen) == [("pulling", False), ("started", False), ("warning", True)]


@pytest.mark.asyncio
async def test_run_accepts_async_callback(store):
    controller = DeploymentController(store)
    process = FakeProcess(stdout=["done\n"])
    seen = []

    async def on_output(line, is_error):
        seen.append(line)

    with patch("asyncio.create_subprocess_exec", fake_exec(process, [])):
        await controller.run(["docker", "compose", "ps"], on_output=on_output)

    assert seen == ["done"]


@pytest.mark.asyncio
async def test_run_raises_on_non_zero_exit(store):
    controller = DeploymentController(store)
    process = FakeProcess(stderr=["no configuration file provided\n"], returncode=1)

    with patch("asyncio.create_subprocess_exec", fake_exec(process, [])):
        with pytest.raises(CommandFailed) as exc_info:
            await controller.run(["docker", "compose", "up"])

    assert exc_info.value.exit_code == 1
    assert "no configuration file provided" in exc_info.value.stderr


@pytest.mark.asyncio
async def test_run_kills_process_on_timeout(store):
    controller = DeploymentController(store, timeout_seconds=0.05)
    process = FakeProcess(hang=True)

    with patch("asyncio.create_subprocess_exec", fake_exec(process, [])):
        with pytest.raises(CommandTimeout):
            await controller.run(["docker", "compose", "up"])

    assert process.killed


@pytest.mark.asyncio
async def test_run_reports_missing_binary(store):
    controller = DeploymentController(store)

    with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError("docker"))):
        with pytest.raises(CommandFailed):
            await controller.run(["docker", "compose", "up"])


@pytest.mark.asyncio
async def test_remove_with_empty_name_keeps_other_apps(tmp_path):
    store = DeploymentStore(str(tmp_path))
    store.install({"name": "other"}, "services: {}\n")
    controller = DeploymentController(store)
    controller.run = AsyncMock()

    with pytest.raises(DeploymentNotFound):
        await controller.remove("")

    controller.run.assert_not_called()
    assert (tmp_path / "other").is_dir()


@pytest.mark.asyncio
async def test_apply_with_empty_name_does_not_run_compose(tmp_path):
    store = DeploymentStore(str(tmp_path))
    (tmp_path / "docker-compose.yml").write_text("services: {}\n")
    controller = DeploymentController(store)
    controller.run = AsyncMock()

    with pytest.raises(DeploymentNotFound):
        await controller.apply("", "up")

    controller.run.assert_not_called()
