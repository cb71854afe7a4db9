# vim: set et ai ts=4 sts=4 sw=4:
"""Entry and keystore base classes, and the length-prefixed primitives the JKS format is built from."""
from .util import *

MAX_UTF_LENGTH = 0xFFFF
MAX_DATA_LENGTH = 0xFFFFFFFF

def write_utf(text):
    """2-byte length followed by the modified UTF-8 encoding of ``text``, as Java's DataOutput.writeUTF produces it."""
    encoded = encode_modified_utf8(text)
    if len(encoded) > MAX_UTF_LENGTH:
        raise BadDataLengthException("Cannot write '%s...'; %d bytes of modified UTF-8 exceed the limit of %d" % (text[:16], len(encoded), MAX_UTF_LENGTH))
    return b2.pack(len(encoded)) + encoded

def write_data(data):
    """4-byte length followed by ``data``."""
    if len(data) > MAX_DATA_LENGTH:
        raise BadDataLengthException("Cannot write %d bytes of binary data; limit is %d" % (len(data), MAX_DATA_LENGTH))
    return b4.pack(len(data)) + bytes(data)

def timestamp_millis(clock):
    """Current time of ``clock`` (a callable returning seconds since the epoch), in whole milliseconds."""
    return int(clock() * 1000)


class AbstractKeystore(object):
    def __init__(self, entries):
        self.entries = dict(entries)  #: Entries by alias, in output order.

    def saves(self, store_password, random_source=None):
        raise NotImplementedError("Abstract method")

    def save(self, filename, store_password, random_source=None):
        """Writes the output of :meth:`saves` to ``filename``."""
        with open(filename, 'wb') as f:
            f.write(self.saves(store_password, random_source=random_source))


class AbstractKeystoreEntry(object):
    """
    Common attributes of keystore entries. Subclasses set :attr:`tag` to their JKS entry tag and produce the
    tag-specific part of their serialized form.
    """
    tag = None

    def __init__(self, **kwargs):
        self.alias = kwargs.get("alias")
        self.timestamp = kwargs.get("timestamp")  #: Creation time, in milliseconds since the UNIX epoch.

    def _payload(self, store_password, random_source):
        raise NotImplementedError("Abstract method")
