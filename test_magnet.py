import pytest
from magnet import create_magnet, parse_magnet

HASH = bytes(range(20))
HEX = HASH.hex()


def test_create_magnet_from_bytes():
    assert create_magnet(HASH) == f"magnet:?xt=urn:btih:{HEX}"


def test_create_magnet_from_hex():
    assert create_magnet(HEX.upper()) == f"magnet:?xt=urn:btih:{HEX}"


def test_create_magnet_quotes_name_and_trackers():
    magnet = create_magnet(HASH, name='a b&c/d', trackers=['http://t.example/ann?x=1'])
    assert magnet == (
        f"magnet:?xt=urn:btih:{HEX}"
        "&dn=a%20b%26c%2Fd"
        "&tr=http%3A%2F%2Ft.example%2Fann%3Fx%3D1"
    )


def test_create_magnet_unicode_name():
    assert create_magnet(HASH, name='é').endswith('&dn=%C3%A9')


def test_create_magnet_invalid_hash():
    with pytest.raises(ValueError):
        create_magnet(b'short')
    with pytest.raises(ValueError):
        create_magnet('z' * 40)


def test_parse_magnet():
    magnet = create_magnet(HASH, name='a b&c', trackers=['http://one/a', 'udp://two:80'])
    parsed = parse_magnet(magnet)
    assert parsed['xt'] == [HASH]
    assert parsed['dn'] == 'a b&c'
    assert parsed['tr'] == ['http://one/a', 'udp://two:80']


def test_parse_magnet_rejects_other_uris():
    with pytest.raises(ValueError):
        parse_magnet('http://example.com/?xt=urn:btih:' + HEX)


def test_parse_magnet_rejects_bad_btih():
    with pytest.raises(ValueError):
        parse_magnet('magnet:?xt=urn:btih:1234')
