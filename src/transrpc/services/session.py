"""HTTP session client with the daemon's session-id handshake."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp
import pydantic
from aiohttp_socks import ProxyConnector

from transrpc.core.config import HttpSettings, ProxySettings, settings
from transrpc.core.exceptions import RpcError, TransportError
from transrpc.models.schemas import RpcEnvelope, RpcResponse

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Transmission-Session-Id"
STALE_SESSION_STATUS = 409


@dataclass
class Reply:
    """Status, session header and decoded body of one HTTP exchange."""

    status: int
    reason: str
    session_id: Optional[str] = None
    body: Any = None


class SessionClient:
    """Posts RPC envelopes and keeps the daemon's session id current."""

    def __init__(
        self,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        http: Optional[HttpSettings] = None,
        proxy: Optional[ProxySettings] = None,
    ) -> None:
        """Initialize session client."""
        self.url = url
        self.http = http or settings.http
        self.proxy = proxy or settings.proxy
        self._auth = aiohttp.BasicAuth(username, password or "") if username else None
        self._session: Optional[aiohttp.ClientSession] = None
        self.session_id: Optional[str] = None
        self.request_count = 0

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            connector = None

            # Configure proxy if enabled
            if self.proxy.proxy_enabled and self.proxy.proxy_url:
                logger.info(
                    f"Using proxy: {self.proxy.proxy_type}://{self.proxy.proxy_host}:{self.proxy.proxy_port}"
                )
                connector = ProxyConnector.from_url(self.proxy.proxy_url)

            timeout = aiohttp.ClientTimeout(
                total=self.http.connect_timeout + self.http.read_timeout,
                connect=self.http.connect_timeout,
                sock_read=self.http.read_timeout,
            )

            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                auth=self._auth,
                headers={"User-Agent": self.http.user_agent},
            )

        return self._session

    async def close(self) -> None:
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _post(self, payload: dict[str, Any]) -> Reply:
        """Post one payload, reading the body only for successful replies."""
        session = await self._get_session()

        headers = {}
        if self.session_id:
            headers[SESSION_HEADER] = self.session_id

        self.request_count += 1
        try:
            async with session.post(
                self.url,
                json=payload,
                headers=headers,
                ssl=self.http.verify_ssl,
            ) as response:
                reply = Reply(
                    status=response.status,
                    reason=response.reason or "",
                    session_id=response.headers.get(SESSION_HEADER),
                )
                if 200 <= response.status < 300:
                    reply.body = await response.json(content_type=None)
                return reply

        except aiohttp.ClientError as e:
            logger.error(f"RPC transport error for {self.url}: {e}")
            raise TransportError(f"Failed to reach {self.url}: {e}") from e
        except asyncio.TimeoutError as e:
            logger.error(f"Timeout calling {self.url}")
            raise TransportError(f"Timeout calling {self.url}") from e
        except ValueError as e:
            logger.error(f"Undecodable reply from {self.url}: {e}")
            raise TransportError(f"Undecodable reply from {self.url}: {e}") from e

    def _refresh_session_id(self, reply: Reply) -> None:
        """Adopt the session id carried by a stale-session reply."""
        if not reply.session_id:
            raise TransportError(
                f"Daemon answered {STALE_SESSION_STATUS} without a {SESSION_HEADER} header"
            )
        logger.debug(f"Session id refreshed ({self.session_id} -> {reply.session_id})")
        self.session_id = reply.session_id

    async def send(self, envelope: RpcEnvelope) -> dict[str, Any]:
        """
        Send an envelope to the daemon.

        A stale-session reply updates the session id and the identical
        envelope is re-sent once; a second stale reply is not retried.

        Args:
            envelope: Request to send

        Returns:
            The ``arguments`` mapping of the reply

        Raises:
            TransportError: On network failure or a failed session-id retry
            RpcError: On any other non-success reply
        """
        payload = envelope.to_payload()
        logger.debug(f"POST {envelope.method} (tag={envelope.tag}) to {self.url}")

        reply = await self._post(payload)
        if reply.status == STALE_SESSION_STATUS:
            self._refresh_session_id(reply)
            reply = await self._post(payload)
            if reply.status == STALE_SESSION_STATUS:
                # Keep the newest id for the next call, but do not loop.
                if reply.session_id:
                    self.session_id = reply.session_id
                raise TransportError(
                    f"Session id rejected again after refresh for {envelope.method}"
                )

        if not 200 <= reply.status < 300:
            logger.error(f"{envelope.method} failed: {reply.status} {reply.reason}")
            raise RpcError(f"{reply.status} {reply.reason}".strip(), status=reply.status)

        return self._unwrap(envelope, reply)

    def _unwrap(self, envelope: RpcEnvelope, reply: Reply) -> dict[str, Any]:
        """Validate a successful reply body and return its arguments."""
        try:
            response = RpcResponse.model_validate(reply.body)
        except pydantic.ValidationError as e:
            raise TransportError(f"Malformed reply to {envelope.method}: {e}") from e

        if response.tag is not None and envelope.tag is not None and response.tag != envelope.tag:
            raise TransportError(
                f"Reply tag {response.tag} does not match request tag {envelope.tag}"
            )

        if not response.succeeded:
            logger.error(f"{envelope.method} rejected by daemon: {response.result}")
            raise RpcError(str(response.result), status=reply.status)

        return response.arguments
