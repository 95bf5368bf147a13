"""
FrameBase — shared plumbing for services embedded in a host frame runtime.

Subclass contract:

    class MyFrame(FrameBase):
        id   = "demo"        # frame ID reported to the host
        name = "Demo"        # display name
        port = 8790          # HTTP port
        commands = ("refresh",)

        async def handle_command(self, cmd, data) -> dict:
            '''Your action logic.  Return a dict merged into the response.'''

Optional overrides:
    on_setup()              — called before the HTTP server starts listening
    on_start()              — called after HTTP server is up
    on_stop()               — called during shutdown
    handle_status()         — return dict for GET /status
    add_routes(app)         — add extra aiohttp routes
"""

import asyncio
import logging
import signal

from aiohttp import web, ClientSession, ClientTimeout

from framelib.config import cfg
from framelib.http_utils import CORS_HEADERS

log = logging.getLogger()

POST_TIMEOUT = ClientTimeout(total=5)


class UnknownCommand(Exception):
    """Raised by handle_command() for a command the frame does not know."""


class FrameBase:
    # ── Subclass must set these ──
    id: str = ""
    name: str = ""
    port: int = 0
    commands: tuple = ()

    def __init__(self):
        self._http_session: ClientSession | None = None
        self._runner: web.AppRunner | None = None
        self._ready_sent = False
        self.ready_url = cfg("frame", "ready_url")
        self.broadcast_url = cfg("frame", "broadcast_url")

    # ── Host frame runtime ──

    @property
    def is_ready(self):
        return self._ready_sent

    async def signal_ready(self):
        """Tell the host frame runtime the embedded view may be displayed.

        Sent at most once per service lifetime.
        """
        if self._ready_sent:
            return
        self._ready_sent = True
        if not self.ready_url:
            log.info("No frame ready_url configured — skipping ready signal")
            return
        payload = {"id": self.id, "name": self.name, "state": "ready"}
        try:
            async with self._http_session.post(
                self.ready_url, json=payload, timeout=POST_TIMEOUT
            ) as resp:
                log.info("Host frame -> ready (HTTP %d)", resp.status)
        except Exception as e:
            log.warning("Host frame unreachable: %s", e)

    # ── UI broadcasting ──

    async def broadcast(self, event_type, data):
        """Push an event to UI clients via the configured webhook."""
        if not self.broadcast_url or not self._http_session:
            return
        try:
            async with self._http_session.post(
                self.broadcast_url,
                json={"command": "broadcast", "params": {"type": event_type, "data": data}},
                timeout=POST_TIMEOUT,
            ) as resp:
                log.info("→ broadcast %s (HTTP %d)", event_type, resp.status)
        except Exception as e:
            log.error("Failed to broadcast %s: %s", event_type, e)

    # ── HTTP server ──

    def build_app(self) -> web.Application:
        """Create the aiohttp app with the shared and subclass routes."""
        app = web.Application()
        app.router.add_get("/status", self._handle_status_route)
        app.router.add_post("/command", self._handle_command_route)
        app.router.add_options("/command", self._handle_cors)
        self.add_routes(app)
        return app

    async def start(self):
        """Run on_setup(), start listening, then run on_start()."""
        self._http_session = ClientSession()
        await self.on_setup()

        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, "0.0.0.0", self.port)
        await site.start()
        log.info("HTTP API on port %d", self.port)

        await self.on_start()

    async def stop(self):
        """Shutdown hook — override on_stop() for cleanup."""
        await self.on_stop()
        if self._http_session:
            await self._http_session.close()
            self._http_session = None
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def run(self):
        """Convenience entry-point: start + wait for signal + stop."""
        await self.start()
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        try:
            await stop_event.wait()
        finally:
            await self.stop()

    # ── CORS ──

    def _cors_headers(self):
        return dict(CORS_HEADERS)

    async def _handle_cors(self, request):
        return web.Response(headers=self._cors_headers())

    # ── Route handlers (delegate to subclass) ──

    async def _handle_status_route(self, request):
        result = await self.handle_status()
        return web.json_response(result, headers=self._cors_headers())

    async def _handle_command_route(self, request):
        try:
            data = await request.json()
            cmd = data.get("command", "")
            if cmd not in self.commands:
                raise UnknownCommand(cmd)

            result = await self.handle_command(cmd, data)
            resp = {"status": "ok", "command": cmd}
            if result:
                resp.update(result)
            return web.json_response(resp, headers=self._cors_headers())

        except UnknownCommand as e:
            return web.json_response(
                {"status": "error", "message": f"Unknown command: {e}"},
                status=400,
                headers=self._cors_headers(),
            )
        except Exception as e:
            log.exception("Command error")
            return web.json_response(
                {"status": "error", "message": str(e)},
                status=500,
                headers=self._cors_headers(),
            )

    # ── Subclass hooks (override as needed) ──

    async def on_setup(self):
        """Called before the HTTP server starts listening."""

    async def on_start(self):
        """Called after HTTP server is up."""

    async def on_stop(self):
        """Called during shutdown."""

    async def handle_status(self) -> dict:
        """Return status dict for GET /status."""
        return {"frame": self.id, "name": self.name, "ready": self._ready_sent}

    def add_routes(self, app: web.Application):
        """Add extra aiohttp routes to the app."""

    async def handle_command(self, cmd: str, data: dict) -> dict:
        """Handle a command. Must be implemented by subclass."""
        raise NotImplementedError
