"""HTML card for the now-playing frame (connect / now playing / last played)."""

from html import escape

CONNECT_URL = "/login"


def render_card(view, ready=True, connect_url=CONNECT_URL):
    if not ready:
        return '<div class="loading">Loading...</div>'

    track = view.track
    if track is None or not view.is_authenticated:
        return f'''<div class="card">
<div class="card-header">
<h2 class="card-title">Spotify Now Playing</h2>
<p class="card-description">Connect with Spotify to see what you&apos;re listening to</p>
</div>
<div class="card-content">
<a href="{escape(connect_url)}" class="btn btn-spotify">Connect Spotify</a>
</div>
</div>'''

    cover = ""
    if track.cover_url:
        cover = (f'<img src="{escape(track.cover_url)}" '
                 f'alt="{escape(track.album)} cover" class="cover">')
    disabled = " disabled" if view.is_loading else ""
    label = "Refreshing..." if view.is_loading else "Refresh"

    return f'''<div class="card">
<div class="card-header">
<h2 class="card-title">{"Now Playing" if view.is_playing else "Last Played"}</h2>
</div>
<div class="card-content">
{cover}
<h3 class="track-name">{escape(track.name)}</h3>
<p class="artists">{escape(track.artist_line)}</p>
<p class="album">{escape(track.album)}</p>
</div>
<div class="card-footer">
<button id="refresh" class="btn btn-outline"{disabled}>{label}</button>
<a href="{escape(track.url)}" target="_blank" rel="noopener" class="btn btn-spotify">Open in Spotify</a>
</div>
</div>'''
