#!/usr/bin/env python3
"""
Spotify Now Playing frame (frame-nowplaying)

Serves the embedded now-playing card, keeps the Spotify access token from the
implicit OAuth redirect, and reports the current (or last played) track.

Routes:
  GET  /          card page
  POST /callback  {"fragment": "#access_token=..."} from the redirect page
  GET  /login     redirect to the OAuth entry point
  GET  /status    view-state JSON
  POST /command   {"command": "refresh" | "connect"}

Port: 8790
"""

import asyncio
import logging

from aiohttp import web

from framelib.config import cfg
from framelib.frame_base import FrameBase, UnknownCommand
from nowplaying.card import render_card
from nowplaying.fetch import NowPlayingFetcher
from nowplaying.session import Location, SessionController
from nowplaying.tokens import FileCredentialStore

log = logging.getLogger('frame-nowplaying')

PAGE = '''<!DOCTYPE html><html><head>
<meta charset="UTF-8"><meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Spotify Now Playing</title>
<style>
*{{box-sizing:border-box;margin:0;padding:0}}
body{{font-family:'Helvetica Neue',-apple-system,sans-serif;background:#fff;color:#111}}
#frame{{width:300px;margin:0 auto;padding:8px}}
.card{{border:1px solid #e5e5e5;border-radius:8px;padding:16px}}
.card-title{{font-size:18px;font-weight:600}}
.card-description{{color:#666;font-size:14px;margin-top:4px}}
.card-content{{display:flex;flex-direction:column;align-items:center;text-align:center;padding:16px 0}}
.cover{{width:128px;height:128px;border-radius:6px;margin-bottom:16px}}
.track-name{{font-weight:700;font-size:18px}}
.artists{{font-size:14px;color:#6b7280}}
.album{{font-size:12px;color:#9ca3af;margin-top:4px}}
.card-footer{{display:flex;justify-content:space-between}}
.btn{{padding:6px 12px;border-radius:4px;font-size:14px;text-decoration:none;cursor:pointer}}
.btn-outline{{background:#fff;border:1px solid #d4d4d4}}
.btn-spotify{{background:#22c55e;color:#fff;border:none}}
.btn-spotify:hover{{background:#16a34a}}
</style></head><body>
<div id="frame">{card}</div>
<script>
async function load() {{
  const r = await fetch('/status');
  const s = await r.json();
  document.getElementById('frame').innerHTML = s.card;
  bind();
}}
function bind() {{
  const b = document.getElementById('refresh');
  if (b) b.onclick = async () => {{
    b.disabled = true; b.textContent = 'Refreshing...';
    await fetch('/command', {{method: 'POST', headers: {{'Content-Type': 'application/json'}},
                             body: JSON.stringify({{command: 'refresh'}})}});
    load();
  }};
}}
(async () => {{
  bind();
  if (window.location.hash) {{
    const r = await fetch('/callback', {{method: 'POST', headers: {{'Content-Type': 'application/json'}},
                                        body: JSON.stringify({{fragment: window.location.hash}})}});
    const res = await r.json();
    if (res.clear_fragment) history.replaceState(null, '', location.pathname + location.search);
    load();
  }}
}})();
</script>
</body></html>'''


class NowPlayingService(FrameBase):
    """Embedded Spotify now-playing frame."""

    id = "spotify-now-playing"
    name = "Spotify Now Playing"
    port = 8790
    commands = ("refresh", "connect")

    def __init__(self, store=None, fetcher=None):
        super().__init__()
        self.id = cfg("frame", "id", default=self.id)
        self.name = cfg("frame", "name", default=self.name)
        self.port = cfg("frame", "port", default=self.port)
        self.store = store
        self.fetcher = fetcher
        self.controller = None
        self._pending = set()

    def setup_controller(self):
        """Wire store, fetcher and controller.  Needs the HTTP session for the default fetcher."""
        store = self.store or FileCredentialStore()
        fetcher = self.fetcher or NowPlayingFetcher(self._http_session)
        self.controller = SessionController(store, fetcher)
        self.controller.add_listener(self._on_view_change)
        return self.controller

    async def on_setup(self):
        self.setup_controller()

    async def on_start(self):
        if self.controller is None:
            self.setup_controller()
        await self.controller.mount()
        await self.signal_ready()
        log.info("Now-playing frame ready (%s)", self.controller.state.value)

    async def on_stop(self):
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _on_view_change(self, view):
        if not self.broadcast_url:
            return
        task = asyncio.get_running_loop().create_task(
            self.broadcast("now_playing", view.to_dict()))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    # ── FrameBase hooks ──

    def add_routes(self, app):
        app.router.add_get('/', self._handle_index)
        app.router.add_post('/callback', self._handle_callback)
        app.router.add_get('/login', self._handle_login)

    async def handle_status(self) -> dict:
        view = self.controller.view
        result = view.to_dict()
        result.update({
            'state': self.controller.state.value,
            'ready': self.is_ready,
            'card': render_card(view, ready=self.is_ready),
        })
        return result

    async def handle_command(self, cmd, data) -> dict:
        if cmd == 'refresh':
            outcome = await self.controller.refresh()
            return {
                'outcome': type(outcome).__name__ if outcome is not None else None,
                'view': self.controller.view.to_dict(),
            }
        if cmd == 'connect':
            return {'url': self.controller.connect()}
        raise UnknownCommand(cmd)

    # ── Extra routes ──

    async def _handle_index(self, request):
        html = PAGE.format(card=render_card(self.controller.view, ready=self.is_ready))
        return web.Response(text=html, content_type='text/html')

    async def _handle_callback(self, request):
        """Receive the redirect fragment forwarded by the card page."""
        try:
            data = await request.json()
            location = Location(data.get('fragment', ''))
            found = await self.controller.handle_redirect(location)
        except Exception as e:
            log.exception("Redirect handling failed")
            return web.json_response(
                {'status': 'error', 'message': str(e)},
                status=500, headers=self._cors_headers())
        if not found:
            log.info("Redirect fragment without access_token")
        return web.json_response({
            'status': 'ok',
            'authenticated': self.controller.view.is_authenticated,
            'clear_fragment': location.cleared,
            'view': self.controller.view.to_dict(),
        }, headers=self._cors_headers())

    async def _handle_login(self, request):
        raise web.HTTPFound(self.controller.connect())


def main():
    logging.basicConfig(level=logging.INFO, format='[%(levelname)s] %(message)s')
    service = NowPlayingService()
    asyncio.run(service.run())


if __name__ == '__main__':
    main()
