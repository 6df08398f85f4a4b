"""
This module decodes bencoded data while keeping track of where every value came from.

What is Bencoding?
Bencoding is the encoding used by BitTorrent to store and transmit data.

It supports four types of data:
1. Integers: Represented as 'i' followed by the integer value and 'e' to end.
    - i.e i<integer_value>e, for eg, i42e represents the integer 42.
2. Byte Strings: Represented as the length of the string followed by ':' and the string itself.
    - i.e <length>:<string>, for eg, 4:spam represents the string "spam".
3. Lists: Represented as 'l' followed by the bencoded elements and 'e' to end.
    - i.e l<element1><element2>e, for eg, l4:spam4:eggse represents the list ["spam", "eggs"].
4. Dictionaries: Represented as 'd' followed by the bencoded key-value pairs and 'e' to end.
    - i.e d<key1><value1><key2><value2>e, for eg, d3:cati42e3:bar4:spamse represents
    the dictionary {'cat': 42, 'bar': 'spam'}.

Why not just use bencodepy to decode?
The info hash of a torrent is the SHA1 of the *original* bytes of the info dictionary.
Decoding and then encoding again only gives the same bytes when the file was written
canonically (sorted keys, no leading zeros, ...), which is not always the case. So the
Decoder here reports the byte range (start, end) of every value it parses, and remembers
the range of the value stored under the 'info' key.

When the normal walk can't give us that range (the file is slightly broken, or the info
dictionary is not a direct child of the top level dictionary) locate_info() falls back to
searching the raw bytes for '4:info' and parsing whatever value follows it.

The Encoder still uses bencodepy, it is handy for building metadata but never for hashing.
"""

import re
import bencodepy
from collections import namedtuple

INFO_KEY = 'info'
INFO_NEEDLE = b'4:info'  # the bencoded form of the 'info' key

# Integers outside the signed 64 bit range are reported instead of silently accepted
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1
MAX_DIGITS = len(str(INT64_MAX))  # longest integer or length field, leading zeros aside

MAX_DEPTH = 200  # maximum nesting of lists and dictionaries

_DICT = ord('d')
_LIST = ord('l')
_INT = ord('i')
_END = ord('e')
_COLON = b':'

_INTEGER = re.compile(rb'-?[0-9]+')


class BencodeError(ValueError):
    pass


class MalformedInput(BencodeError):
    """
    An unexpected byte was found where a value (or a valid integer/length) was expected.
    """
    def __init__(self, offset, byte=None, reason=None):
        self.offset = offset
        self.byte = byte
        if reason is None:
            reason = f"Unexpected byte {bytes([byte])!r}"
        super().__init__(f"{reason} at offset {offset}")


class TruncatedInput(BencodeError):
    """
    The data ended before a terminator or a declared string length was satisfied.
    """
    def __init__(self, offset, expected):
        self.offset = offset
        super().__init__(f"Unexpected end of data at offset {offset}, expected {expected}")


class NotFound(BencodeError):
    pass


class ByteRange(namedtuple('ByteRange', ['start', 'end'])):
    """
    A half open range [start, end) of offsets into the original buffer.
    The range covers the whole encoded value, including its own framing bytes.
    """
    __slots__ = ()

    @property
    def length(self) -> int:
        return self.end - self.start

    def slice(self, data):
        return data[self.start:self.end]


# value is the decoded python object, start/end the bytes it was decoded from.
# info_range is only set on dictionaries that hold an 'info' key.
ParseResult = namedtuple('ParseResult', ['value', 'start', 'end', 'info_range'])
ParseResult.__new__.__defaults__ = (None,)


class Decoder:
    """
    This class is used to decode bencoded data.

    Every call to decode() parses exactly one value starting at the given offset and
    returns a ParseResult, afterwards `cursor` points right after the consumed bytes.

    Byte strings are decoded to text using `encoding` (invalid sequences are replaced),
    pass encoding=None to get the raw bytes back instead. Dictionary keys are always text.
    """
    def __init__(self, data, encoding='utf-8'):
        if isinstance(data, memoryview):
            data = data.tobytes()
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(f"Cannot decode {type(data).__name__}, expected bytes")
        self.data = data
        self.encoding = encoding
        self.cursor = 0
        self.info_range = None
        self._pos = 0
        self._depth = 0

    def decode(self, offset=0) -> ParseResult:
        """
        Decodes the value starting at `offset`.

        If the value is a dictionary with an 'info' key, `info_range` is set to the
        byte range of that key's value. Nested dictionaries don't propagate their own
        'info' keys up, only the outermost dictionary counts.
        """
        self._pos = offset
        self._depth = 0
        self.info_range = None
        result = self._decode_next()
        self.cursor = self._pos
        self.info_range = result.info_range
        return result

    def _peek(self, expected):
        if self._pos >= len(self.data):
            raise TruncatedInput(self._pos, expected)
        return self.data[self._pos]

    def _decode_next(self) -> ParseResult:
        token = self._peek('a value')

        if token == _DICT:
            return self._decode_dict()
        elif token == _LIST:
            return self._decode_list()
        elif token == _INT:
            return self._decode_int()
        elif 0x30 <= token <= 0x39:  # '0'-'9'
            return self._decode_string()
        raise MalformedInput(self._pos, token)

    def _enter(self):
        self._depth += 1
        if self._depth > MAX_DEPTH:
            raise MalformedInput(self._pos, reason=f"Nesting deeper than {MAX_DEPTH} levels")

    def _decode_dict(self) -> ParseResult:
        """
        Format: d<key1><value1><key2><value2>...e
        """
        start = self._pos
        self._enter()
        self._pos += 1  # Skip 'd'
        result = {}
        info_range = None
        while self._peek("'e' or a key") != _END:
            key = self._decode_key()
            item = self._decode_next()
            result[key] = item.value
            if key == INFO_KEY:
                info_range = ByteRange(item.start, item.end)
        self._pos += 1  # Skip 'e'
        self._depth -= 1
        return ParseResult(result, start, self._pos, info_range)

    def _decode_list(self) -> ParseResult:
        """
        Format: l<item1><item2>...e
        """
        start = self._pos
        self._enter()
        self._pos += 1  # Skip 'l'
        result = []
        while self._peek("'e' or a value") != _END:
            result.append(self._decode_next().value)
        self._pos += 1  # Skip 'e'
        self._depth -= 1
        return ParseResult(result, start, self._pos)

    def _decode_int(self) -> ParseResult:
        """
        Format: i<integer>e
        """
        start = self._pos
        end_index = self.data.find(b'e', start + 1)
        if end_index == -1:
            raise TruncatedInput(len(self.data), "'e' closing the integer")

        int_bytes = self.data[start + 1:end_index]
        if not _INTEGER.fullmatch(int_bytes):
            raise MalformedInput(start, reason=f"Invalid integer {bytes(int_bytes)!r}")
        digits = int_bytes.lstrip(b'-').lstrip(b'0') or b'0'
        if len(digits) > MAX_DIGITS:
            raise MalformedInput(start, reason="Integer does not fit in 64 bits")
        value = -int(digits) if int_bytes.startswith(b'-') else int(digits)
        if not INT64_MIN <= value <= INT64_MAX:
            raise MalformedInput(start, reason=f"Integer {value} does not fit in 64 bits")

        self._pos = end_index + 1  # Move past 'e'
        return ParseResult(value, start, self._pos)

    def _read_string(self):
        """
        Format: <length>:<string_bytes>
        returns the raw bytes and the offset of the length prefix.
        """
        start = self._pos
        colon_index = self.data.find(_COLON, start)
        if colon_index == -1:
            raise TruncatedInput(len(self.data), "':' after the string length")

        length_bytes = self.data[start:colon_index]
        if not length_bytes.isdigit():
            raise MalformedInput(start, reason=f"Invalid string length {bytes(length_bytes)!r}")
        digits = length_bytes.lstrip(b'0') or b'0'
        if len(digits) > MAX_DIGITS:
            raise MalformedInput(start, reason="String length does not fit in 64 bits")
        length = int(digits)

        string_start = colon_index + 1
        string_end = string_start + length
        if string_end > len(self.data):
            raise TruncatedInput(len(self.data), f"{length} string bytes")

        self._pos = string_end
        return bytes(self.data[string_start:string_end]), start

    def _decode_string(self) -> ParseResult:
        raw, start = self._read_string()
        value = raw if self.encoding is None else raw.decode(self.encoding, errors='replace')
        return ParseResult(value, start, self._pos)

    def _decode_key(self):
        token = self._peek('a key')
        if not 0x30 <= token <= 0x39:
            raise MalformedInput(self._pos, token)
        raw, _ = self._read_string()
        return raw.decode('utf-8', errors='replace')


def locate_info(data) -> ByteRange:
    """
    Fallback for when the Decoder could not give us the info range.

    Searches the raw bytes for the first '4:info' and decodes the single value that
    follows it. This can be fooled if '4:info' shows up inside some unrelated string,
    we accept that since it is only used when the normal walk fails.
    """
    key_index = data.find(INFO_NEEDLE)
    if key_index == -1:
        raise NotFound("Could not locate info dictionary")

    value_start = key_index + len(INFO_NEEDLE)
    try:
        result = Decoder(data).decode(value_start)
    except BencodeError as e:
        raise NotFound(f"Could not locate info dictionary: {e}") from e
    return ByteRange(result.start, result.end)


class Encoder:
    """
    This class is used to encode data into bencoded format.
    """
    def __init__(self, data):
        self.data = data

    def encode(self):
        return bencodepy.encode(self.data)
