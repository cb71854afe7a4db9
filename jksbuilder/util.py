# vim: set et ai ts=4 sts=4 sw=4:
import struct

from pyasn1.codec.ber import decoder
from pyasn1.error import PyAsn1Error

b8 = struct.Struct('>Q')
b4 = struct.Struct('>L') # unsigned
b2 = struct.Struct('>H')

RSA_ENCRYPTION_OID = (1,2,840,113549,1,1,1)
EC_PUBLIC_KEY_OID  = (1,2,840,10045,2,1)       # id-ecPublicKey; see RFC 5480, section 2.1.1 (also used as the PKCS#8 algorithm for EC private keys)

class KeystoreException(Exception):
    """
    Superclass for all jksbuilder exceptions.

    When raised while building a keystore, :attr:`alias` is set to the alias of the entry that caused the failure.
    """
    alias = None

    def __str__(self):
        msg = super(KeystoreException, self).__str__()
        if self.alias:
            return "alias '%s': %s" % (self.alias, msg)
        return msg

class NoPasswordException(KeystoreException):
    """Signifies that a keystore was built without setting a store password."""
    pass
class InvalidAliasException(KeystoreException):
    """Signifies that an entry was added with an empty alias."""
    pass
class InvalidPasswordException(KeystoreException):
    """Signifies that a password given as a byte string is not valid UTF-8."""
    pass
class EmptyFieldException(KeystoreException):
    """
    Signifies that a certificate, private key or intermediate certificate was given as empty data.

    :attr:`field` is one of ``certificate``, ``private_key`` or ``intermediate_certificate``; for the latter,
    :attr:`index` holds the 0-based position of the offending certificate in the intermediates list.
    """
    def __init__(self, msg, field, index=None):
        super(EmptyFieldException, self).__init__(msg)
        self.field = field
        self.index = index
class PemDecodeException(KeystoreException):
    """Signifies that input data did not contain a well-formed PEM block."""
    pass
class UnsupportedKeyTypeException(KeystoreException):
    """Signifies that a private key was supplied in a PEM block whose label (or embedded algorithm) is not supported."""
    def __init__(self, msg, label):
        super(UnsupportedKeyTypeException, self).__init__(msg)
        self.label = label
class BadKeyEncodingException(KeystoreException):
    """Signifies that a key that was declared to be encoded in a particular format could not be interpreted as such"""
    pass
class KeyParseException(BadKeyEncodingException):
    """Signifies that the DER payload of a private key PEM block could not be decoded."""
    pass
class CertificateParseException(KeystoreException):
    """
    Signifies that a certificate could not be decoded as an X.509 certificate.
    :attr:`index` is the 0-based position of the certificate in the chain; the leaf certificate is at position 0.
    """
    def __init__(self, msg, index):
        super(CertificateParseException, self).__init__(msg)
        self.index = index
class KeyProtectionException(KeystoreException):
    """Signifies that a private key could not be protected, e.g. because the password or the key was empty."""
    pass
class DuplicateAliasException(KeystoreException):
    """Signifies that duplicate aliases were encountered in a keystore."""
    pass
class SerializationException(KeystoreException):
    """Signifies that a keystore could not be written, e.g. because one of its entries is structurally invalid."""
    pass
class BadDataLengthException(SerializationException):
    """Signifies that given input data was of wrong or unexpected length."""
    pass
class BadHashCheckException(KeystoreException):
    """Signifies that a hash computation did not match an expected value (wrong password or corrupt data)."""
    pass
class DecryptionFailureException(KeystoreException):
    """Signifies failure to decrypt a value."""
    pass
class UnexpectedAlgorithmException(KeystoreException):
    """Signifies that an unexpected cryptographic algorithm was used in a keystore."""
    pass
class UnsupportedKeystoreEntryTypeException(KeystoreException):
    """Signifies that the keystore entry was an unsupported type."""
    pass

def oid_to_str(oid):
    return ".".join(str(i) for i in oid)

def xor_bytearrays(a, b):
    return bytearray([x^y for x,y in zip(a,b)])

def to_text(value, encoding='utf-8'):
    """Returns ``value`` as text; byte strings are decoded using the given encoding."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode(encoding)
    return value

def asn1_checked_decode(asn1_bytes, asn1Spec):
    """
    Decodes the input ASN.1 byte sequence and returns it as an object of the given spec if it could be successfully decoded as such,
    or raises a PyAsn1Error otherwise. Input with bytes left over after the structure is rejected.
    """
    obj, rest = decoder.decode(asn1_bytes, asn1Spec=asn1Spec)
    # Note: despite the asn1Spec parameter to decoder.decode, you can still get an object of a different type, on which the remainder of the operations
    # you might want to do on those (like accessing members) raises a TypeError.
    # Motivating use case is feeding b"\x00\x00" to decoder.decode(); regardless of asn1Spec, you'll get an EndOfOctets() object that will throw TypeErrors
    # when you try to access members through obj['foo'] syntax.
    if not isinstance(obj, asn1Spec.__class__):
        raise PyAsn1Error("Not a valid %s structure" % (asn1Spec.__class__.__name__, ))
    if rest:
        raise PyAsn1Error("Found %d bytes of trailing data after %s structure" % (len(rest), asn1Spec.__class__.__name__))
    return obj

def _utf16_code_units(text):
    encoded = text.encode('utf-16be', 'surrogatepass')
    return struct.unpack('>%dH' % (len(encoded) // 2), encoded)

def encode_modified_utf8(text):
    """
    Encodes text the way Java's DataOutput.writeUTF does: each UTF-16 code unit is encoded separately
    (so supplementary characters become two 3-byte surrogate sequences), and U+0000 is encoded as 0xC0 0x80.
    """
    result = bytearray()
    for unit in _utf16_code_units(text):
        if 0x0001 <= unit <= 0x007F:
            result.append(unit)
        elif unit <= 0x07FF:
            result.append(0xC0 | (unit >> 6))
            result.append(0x80 | (unit & 0x3F))
        else:
            result.append(0xE0 | (unit >> 12))
            result.append(0x80 | ((unit >> 6) & 0x3F))
            result.append(0x80 | (unit & 0x3F))
    return bytes(result)

def decode_modified_utf8(data):
    """
    Inverse of :func:`encode_modified_utf8`. Raises ValueError on malformed input, including overlong encodings
    (other than the two-byte encoding of U+0000) and 4-byte UTF-8 sequences.
    """
    data = bytearray(data)
    units = []
    pos = 0
    while pos < len(data):
        b = data[pos]
        if b < 0x80:
            units.append(b)
            pos += 1
            continue

        if (b & 0xE0) == 0xC0:
            size = 2
        elif (b & 0xF0) == 0xE0:
            size = 3
        else:
            raise ValueError("Invalid modified UTF-8 lead byte 0x%02x at position %d" % (b, pos))

        continuation = data[pos+1:pos+size]
        if len(continuation) != size - 1 or any((c & 0xC0) != 0x80 for c in continuation):
            raise ValueError("Truncated or invalid modified UTF-8 sequence at position %d" % pos)

        if size == 2:
            unit = ((b & 0x1F) << 6) | (continuation[0] & 0x3F)
            if unit < 0x80 and unit != 0:
                raise ValueError("Overlong modified UTF-8 sequence at position %d" % pos)
        else:
            unit = ((b & 0x0F) << 12) | ((continuation[0] & 0x3F) << 6) | (continuation[1] & 0x3F)
            if unit < 0x800:
                raise ValueError("Overlong modified UTF-8 sequence at position %d" % pos)

        units.append(unit)
        pos += size

    return struct.pack('>%dH' % len(units), *units).decode('utf-16be', 'surrogatepass')
