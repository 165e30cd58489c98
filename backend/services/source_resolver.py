"""Pick the playback protocol and absolute url for a stream descriptor."""

from models import ResolvedSource, StreamDescriptor, StreamProtocol

# Paths served by the encoding service; anything else is passed through as-is.
_ENCODING_SERVICE_PREFIXES = ("/hls/", "/dash/", "/encoded/", "/api/thumbnails/")


def resolve_asset_url(path: str | None, base_url: str) -> str | None:
    if not path:
        return None
    if path.startswith(_ENCODING_SERVICE_PREFIXES):
        return f"{base_url.rstrip('/')}{path}"
    return path


def resolve(descriptor: StreamDescriptor, base_url: str) -> ResolvedSource:
    """
    HLS wins whenever an HLS manifest is present, DASH is the fallback.

    A descriptor with neither manifest resolves to NONE; that is a valid
    "no stream available" result, not an error.
    """
    if descriptor.hls_url:
        return ResolvedSource(StreamProtocol.HLS, resolve_asset_url(descriptor.hls_url, base_url))
    if descriptor.dash_url:
        return ResolvedSource(StreamProtocol.DASH, resolve_asset_url(descriptor.dash_url, base_url))
    return ResolvedSource(StreamProtocol.NONE)
