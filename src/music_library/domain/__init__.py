"""Library domain - track metadata, playlists and track import."""
