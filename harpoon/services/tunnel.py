import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TUNNEL_HOST = "https://localtunnel.me"
RECONNECT_DELAY = 1.0
RELAY_CHUNK = 64 * 1024


class TunnelError(Exception):
    pass


class LocalTunnel:
    """Exposes the local server through a localtunnel.me style relay."""

    def __init__(self, name: str = "", host: str = DEFAULT_TUNNEL_HOST, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.name = name
        self.host = host.rstrip("/")
        self.url: Optional[str] = None
        self.remote_port: Optional[int] = None
        self.max_conn = 1
        self._transport = transport

    async def open(self) -> str:
        """Ask the tunnel server for a public URL and return it."""
        path = f"/{self.name}" if self.name else "/?new"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
                response = await client.get(f"{self.host}{path}")
                response.raise_for_status()
                info = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TunnelError(f"Could not get tunnel URL from {self.host}: {e}") from e

        if "url" not in info or "port" not in info:
            raise TunnelError(f"Unexpected tunnel response: {info}")

        self.url = info["url"]
        self.remote_port = int(info["port"])
        self.max_conn = max(1, int(info.get("max_conn_count") or 1))
        logger.debug(f"[tunnel] Assigned {self.url} (remote port {self.remote_port}, {self.max_conn} connection(s))")
        return self.url

    async def serve(self, local_port: int) -> None:
        """Keep max_conn relay connections open until cancelled."""
        if self.remote_port is None:
            raise TunnelError("Tunnel is not open, call open() first")
        await asyncio.gather(*(self._keep_connected(local_port, i) for i in range(self.max_conn)))

    async def _keep_connected(self, local_port: int, slot: int) -> None:
        remote_host = urlparse(self.host).hostname
        while True:
            try:
                await self._relay_once(remote_host, local_port)
            except OSError as e:
                logger.warning(f"[tunnel] Connection {slot} dropped: {e}")
            await asyncio.sleep(RECONNECT_DELAY)

    async def _relay_once(self, remote_host: str, local_port: int) -> None:
        remote_reader, remote_writer = await asyncio.open_connection(remote_host, self.remote_port)
        try:
            # a request arrives on the remote side before we dial the local server
            first = await remote_reader.read(RELAY_CHUNK)
            if not first:
                return
            local_reader, local_writer = await asyncio.open_connection("127.0.0.1", local_port)
            try:
                local_writer.write(first)
                await asyncio.gather(
                    _pipe(remote_reader, local_writer),
                    _pipe(local_reader, remote_writer),
                )
            finally:
                local_writer.close()
        finally:
            remote_writer.close()


async def _pipe(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    try:
        while True:
            data = await reader.read(RELAY_CHUNK)
            if not data:
                break
            writer.write(data)
            await writer.drain()
    finally:
        # the other direction may already have closed this writer
        if not writer.is_closing() and writer.can_write_eof():
            writer.write_eof()
