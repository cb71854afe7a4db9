# vim: set et ai ts=4 sts=4 sw=4:
"""
Minimal PEM (RFC 7468) decoding and encoding.

Only the first PEM block in the input is decoded; any text preceding it
(e.g. the human-readable dump emitted by ``openssl x509 -text``) is
ignored. Encrypted PEM blocks carrying RFC 1421 headers are rejected.
"""
import re
import base64
import binascii
import textwrap
from collections import namedtuple

from .util import PemDecodeException

PemBlock = namedtuple("PemBlock", ["label", "der"])

_PEM_BLOCK_RE = re.compile(
    br"-----BEGIN (?P<label>[^\r\n-]*)-----[ \t]*\r?\n"
    br"(?P<body>.*?)"
    br"-----END (?P=label)-----",
    re.DOTALL)

_PEM_BEGIN_RE = re.compile(br"-----BEGIN [^\r\n-]*-----")

def decode_pem(data):
    """
    Decodes the first PEM block found in ``data``.

    :param data: PEM text, as a byte string or a (ASCII-compatible) text string.
    :returns: A :class:`PemBlock` holding the block label (e.g. ``CERTIFICATE``) and its decoded DER payload.
    :raises PemDecodeException: If no well-formed PEM block could be found.
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    if not data or not data.strip():
        raise PemDecodeException("Cannot decode PEM data; input is empty")

    match = _PEM_BLOCK_RE.search(data)
    if not match:
        if _PEM_BEGIN_RE.search(data):
            raise PemDecodeException("Cannot decode PEM data; BEGIN line has no matching END line")
        raise PemDecodeException("Cannot decode PEM data; no BEGIN line found")

    try:
        label = match.group('label').decode('ascii')
    except UnicodeDecodeError as e:
        raise PemDecodeException("Cannot decode PEM data; block label is not ASCII") from e
    body = match.group('body')

    if any(b":" in line for line in body.splitlines()):
        raise PemDecodeException("Cannot decode PEM block '%s'; encapsulated headers (encrypted PEM) are not supported" % label)

    try:
        der = base64.b64decode(b"".join(body.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise PemDecodeException("Cannot decode PEM block '%s'; invalid base64 data: %s" % (label, e)) from e

    if not der:
        raise PemDecodeException("Cannot decode PEM block '%s'; block is empty" % label)

    return PemBlock(label, der)

def encode_pem(der_bytes, label):
    result = "-----BEGIN %s-----\n" % label
    result += "\n".join(textwrap.wrap(base64.b64encode(der_bytes).decode('ascii'), 64))
    result += "\n-----END %s-----\n" % label
    return result
