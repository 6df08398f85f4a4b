import os
from hashlib import sha1
import logging
from bencoding import Decoder, BencodeError, ByteRange, locate_info
from magnet import create_magnet

MAX_TORRENT_SIZE = 10 * 1024 * 1024  # 10 MiB, real .torrent files are far smaller


class TorrentError(Exception):
    pass


def find_info_range(data) -> ByteRange:
    """
    Returns the byte range of the info dictionary, see Torrent for the details.
    """
    return Torrent(data).info_range


def info_hash(data) -> bytes:
    """
    The 20 byte SHA1 of the raw info dictionary.
    """
    return Torrent(data).info_hash


class Torrent:
    """
    This class basically represents the metadata of a torrent file.

    It decodes the metadata and calculates the info hash, which is used to identify the
    torrent (and is the btih part of its magnet link).

    The info hash is the SHA1 of the info dictionary exactly as it appears in the file.
    The Decoder tells us where the top level 'info' value starts and ends, if the file
    can't be decoded or has no top level 'info' key we scan for it with locate_info(),
    which raises NotFound when that fails too.

    `label` is used as the display name when the metadata doesn't have one, usually the
    file name without its .torrent suffix.
    """
    def __init__(self, data, label=None):
        self.data = data
        self.label = label

        decoder = Decoder(data)
        try:
            self.meta_info = decoder.decode().value
            info_range = decoder.info_range
        except BencodeError as e:
            logging.warning(f"Could not decode torrent metadata ({e}), searching for the info dictionary")
            self.meta_info = None
            info_range = None

        if info_range is None:
            logging.debug("No top level info dictionary, scanning for the info key")
            info_range = locate_info(data)

        logging.debug(f"Info dictionary spans bytes {info_range.start}-{info_range.end}")
        self.info_range = info_range
        self.info_hash = sha1(memoryview(data)[info_range.start:info_range.end]).digest()

    @classmethod
    def from_file(cls, filename):
        """
        Reads a .torrent file, files bigger than MAX_TORRENT_SIZE are refused.
        """
        try:
            size = os.path.getsize(filename)
        except OSError as e:
            raise TorrentError(f"Cannot read {filename}: {e.strerror}") from e
        if size > MAX_TORRENT_SIZE:
            raise TorrentError(f"{filename} is {size} bytes, larger than the {MAX_TORRENT_SIZE} byte limit")

        with open(filename, 'rb') as f:
            data = f.read()

        label = os.path.basename(filename)
        if label.lower().endswith('.torrent'):
            label = label[:-len('.torrent')]
        return cls(data, label=label)

    @property
    def info_hash_hex(self) -> str:
        return self.info_hash.hex()

    @property
    def info(self):
        """
        The decoded info dictionary, None if the metadata could not be decoded.
        """
        if isinstance(self.meta_info, dict) and isinstance(self.meta_info.get('info'), dict):
            return self.meta_info['info']
        return None

    @property
    def name(self):
        """
        The display name: a top level 'name', otherwise the label we were given.
        """
        if isinstance(self.meta_info, dict) and isinstance(self.meta_info.get('name'), str):
            return self.meta_info['name']
        return self.label

    @property
    def announce(self):
        """
        Returns the announce URL of the torrent, None if there is none.
        """
        if isinstance(self.meta_info, dict) and isinstance(self.meta_info.get('announce'), str):
            return self.meta_info['announce']
        return None

    @property
    def announce_list(self):
        """
        All tracker URLs, the announce URL first followed by the 'announce-list' tiers
        flattened in order, without duplicates.
        """
        trackers = []
        if self.announce:
            trackers.append(self.announce)
        tiers = self.meta_info.get('announce-list') if isinstance(self.meta_info, dict) else None
        if isinstance(tiers, list):
            for tier in tiers:
                if not isinstance(tier, list):
                    continue
                for url in tier:
                    if isinstance(url, str) and url not in trackers:
                        trackers.append(url)
        return trackers

    def magnet(self, trackers=False):
        """
        Returns the magnet link of the torrent, with the tracker URLs when `trackers` is set.
        """
        return create_magnet(
            self.info_hash,
            name=self.name,
            trackers=self.announce_list if trackers else None,
        )

    def __str__(self):
        return 'Name: {0}\n' \
               'Announce URL: {1}\n' \
               'Hash: {2}\n' \
               'Magnet: {3}'.format(self.name,
                                    self.announce,
                                    self.info_hash_hex,
                                    self.magnet())
