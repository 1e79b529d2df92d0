"""High-level Transmission client."""
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Optional, Union

from transrpc.core.config import Settings, settings
from transrpc.models.schemas import RpcEnvelope, TorrentStatus
from transrpc.services import commands
from transrpc.services.commands import TorrentIds
from transrpc.services.session import SessionClient
from transrpc.services.sources import base64_source, file_source, url_source
from transrpc.tasks.poller import Clock, PollEngine, Snapshot

logger = logging.getLogger(__name__)

# Marks a wait timeout left to the poll settings.
DEFAULT_TIMEOUT: Any = object()


class Transmission:
    """
    Client for a Transmission daemon.

    Every operation is a coroutine. Connection options not given here fall
    back to ``settings.daemon``.

    Example:
        async with Transmission(host="nas", username="u", password="p") as bt:
            torrent = await bt.add_url(magnet)
            await bt.wait_for_state(torrent["id"], TorrentStatus.SEED)
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        ssl: Optional[bool] = None,
        path: Optional[str] = None,
        *,
        config: Optional[Settings] = None,
        poll_interval: Optional[float] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        """Initialize client."""
        self.config = config or settings
        overrides = {
            "host": host,
            "port": port,
            "username": username,
            "password": password,
            "ssl": ssl,
            "path": path,
        }
        daemon = self.config.daemon.model_copy(
            update={k: v for k, v in overrides.items() if v is not None}
        )
        self.daemon = daemon.model_validate(daemon.model_dump())
        self.url = self.daemon.url

        self.rpc = SessionClient(
            self.url,
            username=self.daemon.username,
            password=self.daemon.password,
            http=self.config.http,
            proxy=self.config.proxy,
        )
        self.poller = PollEngine(
            self._poll_fetch,
            interval=poll_interval if poll_interval is not None else self.config.poll.interval,
            clock=clock,
        )

    async def __aenter__(self) -> "Transmission":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop polling and close the HTTP session."""
        await self.poller.close()
        await self.rpc.close()

    @property
    def polling(self) -> bool:
        """Whether the poll loop is running."""
        return self.poller.polling

    async def call(self, envelope: RpcEnvelope) -> dict[str, Any]:
        """Send a prepared envelope and return the reply arguments."""
        return await self.rpc.send(envelope)

    async def set(self, ids: TorrentIds, options: Mapping[str, Any]) -> dict[str, Any]:
        """
        Set torrent properties.

        Args:
            ids: A single id or a list of ids
            options: Properties to set; keys must be in ``TORRENT_SET_KEYS``

        Raises:
            ValidationError: On a non-mapping or an unknown key, before any request
        """
        return await self.call(commands.torrent_set(ids, options))

    async def add(self, path: str, options: Optional[Mapping[str, Any]] = None) -> Optional[Snapshot]:
        """An alias for ``add_url()``."""
        return await self.add_url(path, options)

    async def add_url(self, url: str, options: Optional[Mapping[str, Any]] = None) -> Optional[Snapshot]:
        """Add a torrent from a magnet link or .torrent URL."""
        return await self.add_torrent_data_src(url_source(url), options)

    async def add_base64(self, data: str, options: Optional[Mapping[str, Any]] = None) -> Optional[Snapshot]:
        """Add a torrent from base64-encoded .torrent content."""
        return await self.add_torrent_data_src(base64_source(data), options)

    async def add_file(
        self, file_path: Union[str, Path], options: Optional[Mapping[str, Any]] = None
    ) -> Optional[Snapshot]:
        """Add a torrent from a local .torrent file."""
        # Validate options before touching the filesystem.
        commands.validate_options(commands.TORRENT_ADD, options, commands.TORRENT_ADD_KEYS)
        return await self.add_torrent_data_src(await file_source(file_path), options)

    async def add_torrent_data_src(
        self, source: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> Optional[Snapshot]:
        """
        Add a torrent from a resolved data source.

        Returns:
            The daemon's duplicate record if it already had the torrent,
            otherwise the added record
        """
        arguments = await self.call(commands.torrent_add(source, options))
        torrent = commands.added_torrent(arguments)
        if torrent:
            logger.info(f"Added torrent {torrent.get('id')} ({torrent.get('name')})")
        return torrent

    async def remove(self, ids: TorrentIds, delete_local_data: bool = False) -> dict[str, Any]:
        """Remove torrents, optionally deleting their local data."""
        return await self.call(
            commands.build_envelope(
                commands.TORRENT_REMOVE,
                {"ids": commands.normalize_ids(ids), "delete-local-data": delete_local_data},
            )
        )

    async def move(self, ids: TorrentIds, location: str, move: bool = False) -> dict[str, Any]:
        """Set a new location for torrents; ``move`` relocates existing data."""
        return await self.call(
            commands.build_envelope(
                commands.TORRENT_LOCATION,
                {"ids": commands.normalize_ids(ids), "location": location, "move": move},
            )
        )

    async def rename(self, ids: TorrentIds, path: str, name: str) -> dict[str, Any]:
        """Rename a file or folder inside a torrent."""
        return await self.call(
            commands.build_envelope(
                commands.TORRENT_RENAME,
                {"ids": commands.normalize_ids(ids), "path": path, "name": name},
            )
        )

    async def get(
        self, ids: Optional[TorrentIds] = None, fields: Optional[Iterable[str]] = None
    ) -> dict[str, Any]:
        """
        Get information on torrents.

        Args:
            ids: A single id, a list of ids, or None for every torrent
            fields: Fields to return; empty means ``DEFAULT_FIELDS``

        Returns:
            Reply arguments with a ``torrents`` list
        """
        return await self.call(commands.torrent_get(ids, fields))

    async def _poll_fetch(self, ids: list[int]) -> list[Snapshot]:
        arguments = await self.get(ids)
        return arguments.get("torrents", [])

    async def wait_for_state(
        self,
        torrent_id: int,
        desired_state: TorrentStatus | int,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ) -> Snapshot:
        """
        Poll until the torrent reaches ``desired_state``.

        An omitted timeout falls back to ``poll.timeout``; ``timeout=None``
        waits forever, including for torrents that were removed. Cancelling the
        awaiting task abandons the wait.

        Raises:
            WaitTimeoutError: If ``timeout`` seconds pass first
        """
        if timeout is DEFAULT_TIMEOUT:
            timeout = self.config.poll.timeout
        return await self.poller.wait(torrent_id, desired_state, timeout)

    async def peers(self, ids: Optional[TorrentIds] = None) -> dict[str, Any]:
        """Retrieve peer information for torrents."""
        return await self.get(ids, list(commands.PEER_FIELDS))

    async def files(self, ids: Optional[TorrentIds] = None) -> dict[str, Any]:
        """Retrieve file information for torrents."""
        return await self.get(ids, list(commands.FILE_FIELDS))

    async def fast(self, ids: Optional[TorrentIds] = None) -> dict[str, Any]:
        """Retrieve the reduced field set suited to frequent polling."""
        return await self.get(ids, list(commands.FAST_FIELDS))

    async def stop(self, ids: Optional[TorrentIds] = None) -> dict[str, Any]:
        """Stop torrents; no ids stops every torrent."""
        return await self.call(commands.torrent_action(commands.TORRENT_STOP, ids))

    async def stop_all(self) -> dict[str, Any]:
        return await self.stop()

    async def start(self, ids: Optional[TorrentIds] = None) -> dict[str, Any]:
        """Start torrents; no ids starts every torrent."""
        return await self.call(commands.torrent_action(commands.TORRENT_START, ids))

    async def start_all(self) -> dict[str, Any]:
        return await self.start()

    async def start_now(self, ids: TorrentIds) -> dict[str, Any]:
        """Start torrents, bypassing the download queue."""
        return await self.call(commands.torrent_action(commands.TORRENT_START_NOW, ids))

    async def verify(self, ids: TorrentIds) -> dict[str, Any]:
        """Verify downloaded pieces."""
        return await self.call(commands.torrent_action(commands.TORRENT_VERIFY, ids))

    async def reannounce(self, ids: TorrentIds) -> dict[str, Any]:
        """Reannounce to trackers."""
        return await self.call(commands.torrent_action(commands.TORRENT_REANNOUNCE, ids))

    async def all(self) -> dict[str, Any]:
        """All fields for all torrents."""
        return await self.get()

    async def active(self) -> dict[str, Any]:
        """All fields for recently active torrents."""
        return await self.get(commands.RECENTLY_ACTIVE)

    async def session(self, settings: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        """
        Get or set session settings.

        With no argument the current session is returned; otherwise every
        key must be in ``SESSION_SET_KEYS``.
        """
        if settings is None:
            return await self.call(commands.build_envelope(commands.SESSION_GET))
        return await self.call(commands.session_set(settings))

    async def session_stats(self) -> dict[str, Any]:
        return await self.call(commands.build_envelope(commands.SESSION_STATS))

    async def free_space(self, path: str) -> dict[str, Any]:
        """How much free space is available in a folder on the daemon host."""
        return await self.call(commands.build_envelope(commands.FREE_SPACE, {"path": path}))

    async def blocklist_update(self) -> dict[str, Any]:
        return await self.call(commands.build_envelope(commands.BLOCKLIST_UPDATE))

    async def port_test(self) -> dict[str, Any]:
        """Ask the daemon whether its peer port is reachable."""
        return await self.call(commands.build_envelope(commands.PORT_TEST))
