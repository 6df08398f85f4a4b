# magnet.py: Builds and parses magnet links

import binascii
import re
from urllib.parse import parse_qs, quote

MAGNET_PREFIX = 'magnet:?'
BTIH_PREFIX = 'urn:btih:'

_HEX_HASH = re.compile(r'[0-9a-fA-F]{40}')


def create_magnet(info_hash, name=None, trackers=None):
    """Create a magnet link from an info hash (raw bytes or hex) and optional name/trackers."""
    if isinstance(info_hash, bytes):
        info_hash = binascii.hexlify(info_hash).decode()
    if not _HEX_HASH.fullmatch(info_hash):
        raise ValueError(f"Invalid info hash: {info_hash!r}")

    magnet = f"{MAGNET_PREFIX}xt={BTIH_PREFIX}{info_hash.lower()}"

    if name:
        magnet += f"&dn={quote(name, safe='')}"

    if trackers:
        for tracker in trackers:
            magnet += f"&tr={quote(tracker, safe='')}"

    return magnet


def parse_magnet(magnet_uri):
    """Parse a magnet URI into its info hash, display name and trackers."""
    if not magnet_uri.startswith(MAGNET_PREFIX):
        raise ValueError("Not a valid magnet URI")

    params = parse_qs(magnet_uri[len(MAGNET_PREFIX):])

    result = {
        'xt': [],      # Exact Topic (info hashes as bytes)
        'dn': None,    # Display Name
        'tr': [],      # Tracker URLs
    }

    for key, values in params.items():
        if key == 'xt':
            for v in values:
                if not v.startswith(BTIH_PREFIX):
                    continue
                hex_hash = v[len(BTIH_PREFIX):]
                if not _HEX_HASH.fullmatch(hex_hash):
                    raise ValueError(f"Invalid btih: {hex_hash!r}")
                result['xt'].append(bytes.fromhex(hex_hash))
        elif key == 'dn':
            result['dn'] = values[0]
        elif key == 'tr':
            result['tr'].extend(values)

    return result
