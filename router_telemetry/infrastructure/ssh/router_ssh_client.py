import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import asyncssh

from router_telemetry.domain.errors import (
    CommandError,
    CommandTimeoutError,
    NotConnectedError,
    SSHConnectionError,
)

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10
DEFAULT_COMMAND_TIMEOUT = 30.0

# Errors that mean the transport itself is gone, not that one command failed
_TRANSPORT_ERRORS = (
    asyncssh.DisconnectError,
    asyncssh.ChannelOpenError,
    ConnectionError,
    BrokenPipeError,
)


@dataclass
class ConnectionDescriptor:
    host: str
    port: int = 22
    username: str = "admin"
    password: Optional[str] = field(default=None, repr=False)


class _SessionWatcher(asyncssh.SSHClient):
    """Reports transport loss back to the owning channel."""

    def __init__(self, owner: "RouterSSHClient"):
        self._owner = owner
        self._conn: Optional[asyncssh.SSHClientConnection] = None

    def connection_made(self, conn: asyncssh.SSHClientConnection) -> None:
        self._conn = conn

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._owner._handle_connection_lost(self._conn, exc)


class RouterSSHClient:
    """SSH command channel to the router, shared by every collector."""

    def __init__(self,
                 connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
                 command_timeout: float = DEFAULT_COMMAND_TIMEOUT):
        """
        Initialize the channel without connecting.

        Args:
            connect_timeout: Seconds allowed for session establishment
            command_timeout: Default seconds allowed for a single command
        """
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self.descriptor: Optional[ConnectionDescriptor] = None
        self._conn: Optional[asyncssh.SSHClientConnection] = None
        self._active = False

    async def connect(self, descriptor: ConnectionDescriptor) -> None:
        """
        Establish a session, replacing any previous one.

        Args:
            descriptor: Host, port and credentials of the router

        Raises:
            SSHConnectionError: authentication or network failure
        """
        await self.disconnect()

        logger.info(f"Connecting via SSH to {descriptor.host}:{descriptor.port} as {descriptor.username}")
        try:
            conn = await asyncssh.connect(
                descriptor.host,
                port=descriptor.port,
                username=descriptor.username,
                password=descriptor.password,
                known_hosts=None,  # consumer routers regenerate host keys on reset
                client_factory=lambda: _SessionWatcher(self),
                connect_timeout=self.connect_timeout,
            )
        except asyncssh.PermissionDenied as e:
            logger.error(f"❌ Permission denied for {descriptor.username}@{descriptor.host}: {str(e)}")
            raise SSHConnectionError(
                f"Authentication failed for {descriptor.username}@{descriptor.host}",
                host=descriptor.host,
                port=descriptor.port,
            ) from e
        except (OSError, asyncssh.Error, asyncio.TimeoutError) as e:
            error_msg = f"{type(e).__name__}: {str(e)}" if str(e) else f"{type(e).__name__}"
            logger.error(f"❌ Error connecting to {descriptor.host}:{descriptor.port}: {error_msg}")
            raise SSHConnectionError(
                f"Could not connect to {descriptor.host}:{descriptor.port}: {error_msg}",
                host=descriptor.host,
                port=descriptor.port,
            ) from e

        self._conn = conn
        self.descriptor = descriptor
        self._active = True
        logger.info(f"✅ SSH session established with {descriptor.host}")

    async def execute(self, command: str, timeout: Optional[float] = None) -> str:
        """
        Run one command and return its standard output.

        Args:
            command: Shell command or script
            timeout: Override of the default per-command timeout

        Returns:
            Captured stdout

        Raises:
            NotConnectedError: no active session
            CommandError: non-zero exit with error output
            CommandTimeoutError: command exceeded its timeout
            SSHConnectionError: transport lost while running
        """
        if not self.is_active():
            raise NotConnectedError()

        limit = timeout if timeout is not None else self.command_timeout
        logger.debug(f"Executing SSH command: {command[:120]}")
        try:
            result = await asyncio.wait_for(self._conn.run(command, check=False), timeout=limit)
        except asyncio.TimeoutError as e:
            logger.error(f"Timeout after {limit}s executing command '{command[:80]}'")
            raise CommandTimeoutError(command, limit) from e
        except _TRANSPORT_ERRORS as e:
            self._active = False
            logger.error(f"SSH transport lost while executing command: {type(e).__name__}: {str(e)}")
            raise SSHConnectionError(
                f"Connection lost: {str(e) or type(e).__name__}",
                host=self.descriptor.host if self.descriptor else None,
                port=self.descriptor.port if self.descriptor else None,
            ) from e
        except asyncssh.Error as e:
            raise CommandError(command, -1, str(e)) from e

        stdout = _as_text(result.stdout)
        stderr = _as_text(result.stderr)
        exit_status = result.exit_status

        if exit_status not in (0, None) or result.exit_signal:
            # busybox tools exit 1 with no stderr when nothing matched
            if stderr.strip():
                raise CommandError(command, exit_status, stderr)
            logger.debug(f"Command exited {exit_status} without error output, keeping stdout")

        return stdout

    def is_active(self) -> bool:
        return self._active and self._conn is not None

    async def disconnect(self) -> None:
        conn = self._conn
        self._conn = None
        self._active = False
        if conn is None:
            return
        conn.close()
        try:
            await conn.wait_closed()
        except (OSError, asyncssh.Error) as e:
            logger.debug(f"Ignoring error while closing SSH session: {str(e)}")
        logger.info("SSH session closed")

    def _handle_connection_lost(self, conn: Optional[asyncssh.SSHClientConnection], exc: Optional[Exception]) -> None:
        if conn is not None and conn is not self._conn:
            return
        if self._active:
            reason = str(exc) if exc else "closed by peer"
            logger.warning(f"SSH connection lost: {reason}")
        self._active = False


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
