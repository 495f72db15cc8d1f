import asyncio
import inspect
import logging
import shlex
from collections import deque
from typing import Awaitable, Callable, List, Optional, Union

from dockyard.config import config
from dockyard.deployments.locks import AppLocks
from dockyard.deployments.models import CommandResult, Deployment, LifecycleAction
from dockyard.deployments.store import DeploymentStore, sanitize_name
from dockyard.errors import CommandFailed, CommandTimeout, DeploymentNotFound, InvalidAction

logger = logging.getLogger(__name__)

# Only the tail of each stream is kept; callers wanting everything pass on_output.
MAX_CAPTURED_LINES = 1000

OutputCallback = Callable[[str, bool], Union[None, Awaitable[None]]]


def project_name(name: str) -> str:
    """Compose project for an app; shared by every version of that app."""
    return sanitize_name(name).lower()


class DeploymentController:
    """Runs ``docker compose`` lifecycle commands for installed apps.

    Nothing about container state is cached: each call resolves the current
    deployment from disk and leaves the orchestrator as the source of truth.
    """

    def __init__(
        self,
        store: DeploymentStore,
        locks: Optional[AppLocks] = None,
        compose_command: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.store = store
        self.locks = locks or AppLocks()
        self.compose_command = shlex.split(compose_command or config.compose_command)
        self.timeout_seconds = timeout_seconds or config.compose_timeout_seconds

    def build_command(self, deployment: Deployment, *args: str) -> List[str]:
        return [
            *self.compose_command,
            "-p",
            project_name(deployment.name),
            "-f",
            deployment.compose_file,
            *args,
        ]

    async def apply(
        self,
        name: str,
        action: Union[str, LifecycleAction],
        on_output: Optional[OutputCallback] = None,
    ) -> CommandResult:
        try:
            action = LifecycleAction(action)
        except ValueError:
            raise InvalidAction(f"Invalid action: {action}")

        deployment = self.store.get(name)
        args = [action.value]
        if action == LifecycleAction.UP:
            args.append("-d")
        return await self.run(self.build_command(deployment, *args), on_output=on_output)

    async def remove(
        self,
        name: str,
        delete_images: bool = False,
        delete_volumes: bool = False,
        on_output: Optional[OutputCallback] = None,
    ) -> None:
        """Tear down the stack and delete every stored version of the app.

        A failing ``down`` is logged and ignored (the containers may already be
        gone); deleting the files is what counts.
        """
        async with self.locks.hold(name):
            try:
                deployment = self.store.get(name)
            except DeploymentNotFound:
                deployment = None

            if deployment is not None:
                args = ["down", "--remove-orphans"]
                if delete_images:
                    args.extend(["--rmi", "all"])
                if delete_volumes:
                    args.append("--volumes")
                command = self.build_command(deployment, *args)
                logger.info("Executing: %s", shlex.join(command))
                try:
                    await self.run(command, on_output=on_output)
                except CommandFailed as exc:
                    logger.error("Docker down failed for %s: %s", name, exc)

            self.store.delete(name)

    async def run(self, command: List[str], on_output: Optional[OutputCallback] = None) -> CommandResult:
        logger.info("Running %s", shlex.join(command))
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise CommandFailed(command, None, str(exc)) from exc
        stdout_lines: deque = deque(maxlen=MAX_CAPTURED_LINES)
        stderr_lines: deque = deque(maxlen=MAX_CAPTURED_LINES)

        async def read_stream(stream, sink: deque, is_error: bool):
            while True:
                line = await stream.readline()
                if not line:
                    break
                decoded = line.decode("utf-8", errors="replace")
                sink.append(decoded)
                if on_output is not None:
                    result = on_output(decoded.rstrip("\n"), is_error)
                    if inspect.isawaitable(result):
                        await result

        try:
            await asyncio.wait_for(
                asyncio.gather(
                    read_stream(process.stdout, stdout_lines, False),
                    read_stream(process.stderr, stderr_lines, True),
                    process.wait(),
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise CommandTimeout(
                command, self.timeout_seconds, "".join(stderr_lines), "".join(stdout_lines)
            )

        stdout = "".join(stdout_lines)
        stderr = "".join(stderr_lines)
        if process.returncode != 0:
            raise CommandFailed(command, process.returncode, stderr, stdout)
        return CommandResult(
            command=command, exit_code=process.returncode, stdout=stdout, stderr=stderr
        )
