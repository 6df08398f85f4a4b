import argparse
import logging
import sys
from bencoding import BencodeError, NotFound
from torrent import Torrent, TorrentError


def build_parser():
    parser = argparse.ArgumentParser(
        prog='torrent2magnet',
        description="Print the magnet link of .torrent files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Magnet link of a torrent:
    torrent2magnet ubuntu.iso.torrent

  Name, info hash and magnet link with trackers:
    torrent2magnet --info --trackers ubuntu.iso.torrent
        """
    )
    parser.add_argument('torrents', nargs='+', metavar='FILE', help="Path to a .torrent file")
    parser.add_argument('--info', '-i', action='store_true', help="Also show the name and info hash")
    parser.add_argument('--trackers', '-t', action='store_true', help="Add the tracker URLs to the magnet link")
    parser.add_argument('--verbose', '-v', action='store_true', help="Debug logging")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    failed = False
    for filename in args.torrents:
        try:
            torrent = Torrent.from_file(filename)
        except NotFound as e:
            logging.debug(f"{filename}: {e}")
            print(f"{filename}: could not locate info dictionary", file=sys.stderr)
            failed = True
            continue
        except (TorrentError, BencodeError) as e:
            logging.error(f"{filename}: {e}")
            failed = True
            continue

        magnet = torrent.magnet(trackers=args.trackers)
        if args.info:
            print(f"Name: {torrent.name}")
            print(f"Info hash: {torrent.info_hash_hex}")
            print(f"Magnet: {magnet}")
        else:
            print(magnet)

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
