# vim: set ai et ts=4 sw=4 sts=4:
"""
Test helpers: a minimal JKS reader used to verify the output of the keystore builder,
and generation of fresh keys and self-signed certificates.
"""
import os
import struct
import hashlib
import datetime
import tempfile
import contextlib
from collections import namedtuple

from cryptography import x509
from cryptography.x509.oid import NameOID
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa, ec, dsa
from pyasn1.error import PyAsn1Error
from pyasn1_modules import rfc5208

import jksbuilder
from jksbuilder import sun_crypto
from jksbuilder.util import *

LoadedKeystore = namedtuple("LoadedKeystore", ["version", "entries"])


class BadKeystoreFormatException(KeystoreException):
    """Signifies that a structural error was encountered in keystore data."""
    pass
class KeystoreSignatureException(KeystoreException):
    """Signifies that the supplied password for a keystore integrity check is incorrect."""
    pass
class NotYetDecryptedException(KeystoreException):
    """Signifies that the key of a loaded private key entry was accessed before calling decrypt()."""
    pass


class LoadedPrivateKeyEntry(object):
    """A private key entry as read back from a keystore; the key becomes available after :meth:`decrypt`."""
    def __init__(self, alias, timestamp, cert_chain, encrypted):
        self.alias = alias
        self.timestamp = timestamp
        self.cert_chain = cert_chain
        self.encrypted = encrypted
        self._decrypted = None

    def is_decrypted(self):
        return self._decrypted is not None

    def decrypt(self, key_password):
        if self.is_decrypted():
            return
        protected = sun_crypto.unwrap_encrypted_key(self.encrypted)
        try:
            plaintext = sun_crypto.jks_pkey_decrypt(protected, key_password)
        except (BadHashCheckException, BadDataLengthException) as e:
            raise DecryptionFailureException("Failed to decrypt data for private key '%s'; wrong password?" % self.alias) from e
        try:
            info = asn1_checked_decode(plaintext, asn1Spec=rfc5208.PrivateKeyInfo())
        except PyAsn1Error as e:
            raise DecryptionFailureException("Decrypted data for private key '%s' is not a PKCS#8 PrivateKeyInfo structure" % self.alias) from e
        self._decrypted = (info['privateKey'].asOctets(), plaintext, info['privateKeyAlgorithm']['algorithm'].asTuple())

    def _key_part(self, i, name):
        if not self.is_decrypted():
            raise NotYetDecryptedException("Cannot access attribute '%s'; entry not yet decrypted" % name)
        return self._decrypted[i]

    pkey = property(lambda self: self._key_part(0, "pkey"))
    pkey_pkcs8 = property(lambda self: self._key_part(1, "pkey_pkcs8"))
    algorithm_oid = property(lambda self: self._key_part(2, "algorithm_oid"))


def read_keystore(data, store_password):
    """
    Parses a JKS keystore and verifies its signature. Returns a :class:`LoadedKeystore` whose entries
    are listed in file order; private key entries are returned in encrypted form.
    """
    if data[:4] != jksbuilder.MAGIC_NUMBER_JKS:
        raise BadKeystoreFormatException("Not a JKS keystore (magic number wrong; expected FEEDFEED)")

    try:
        version = b4.unpack_from(data, 4)[0]
        entry_count = b4.unpack_from(data, 8)[0]
        pos = 12
        entries = []
        for i in range(entry_count):
            tag = b4.unpack_from(data, pos)[0]; pos += 4
            alias, pos = _read_utf(data, pos)
            timestamp = int(b8.unpack_from(data, pos)[0]); pos += 8

            if tag == jksbuilder.KeyStore.ENTRY_TYPE_PRIVATE_KEY:
                encrypted, pos = _read_data(data, pos)
                chain_len = b4.unpack_from(data, pos)[0]; pos += 4
                cert_chain = []
                for j in range(chain_len):
                    cert_type, pos = _read_utf(data, pos)
                    cert_data, pos = _read_data(data, pos)
                    cert_chain.append((cert_type, cert_data))
                entry = LoadedPrivateKeyEntry(alias, timestamp, cert_chain, encrypted)
            elif tag == jksbuilder.KeyStore.ENTRY_TYPE_CERTIFICATE:
                cert_type, pos = _read_utf(data, pos)
                cert_data, pos = _read_data(data, pos)
                entry = jksbuilder.TrustedCertEntry(alias=alias, timestamp=timestamp, type=cert_type, cert=cert_data)
            else:
                raise BadKeystoreFormatException("Unexpected keystore entry tag %d" % tag)
            entries.append(entry)
    except struct.error as e:
        raise BadKeystoreFormatException(e)

    expected_hash = hashlib.sha1(store_password.encode("utf-16be", "surrogatepass") + jksbuilder.SIGNATURE_WHITENING + data[:pos]).digest()
    found_hash = data[pos:pos+20]
    if len(found_hash) != 20:
        raise BadKeystoreFormatException("Bad signature size; found %d bytes, expected 20 bytes" % len(found_hash))
    if expected_hash != found_hash:
        raise KeystoreSignatureException("Hash mismatch; incorrect keystore password?")
    if pos + 20 != len(data):
        raise BadKeystoreFormatException("Found %d bytes of trailing data" % (len(data) - pos - 20))

    return LoadedKeystore(version, entries)

def _read_utf(data, pos):
    size = b2.unpack_from(data, pos)[0]
    pos += 2
    if pos + size > len(data):
        raise BadKeystoreFormatException("Cannot read UTF-8 data; length exceeds remaining available data")
    return decode_modified_utf8(data[pos:pos+size]), pos+size

def _read_data(data, pos):
    size = b4.unpack_from(data, pos)[0]; pos += 4
    if pos + size > len(data):
        raise BadKeystoreFormatException("Cannot read binary data; length exceeds remaining available data")
    return data[pos:pos+size], pos+size


def new_private_key(key_type="rsa"):
    if key_type == "rsa":
        return rsa.generate_private_key(public_exponent=65537, key_size=2048)
    elif key_type == "ec":
        return ec.generate_private_key(ec.SECP256R1())
    elif key_type == "dsa":
        return dsa.generate_private_key(key_size=2048)
    raise ValueError("Unknown key type: %s" % key_type)

def private_key_pem(key, private_format=serialization.PrivateFormat.PKCS8):
    return key.private_bytes(serialization.Encoding.PEM, private_format, serialization.NoEncryption())

def new_self_signed_cert_pem(common_name="example.com", key_type="rsa", name=None):
    """Returns a (private key PEM, certificate PEM) pair; the key is PKCS#8-encoded. An explicit x509.Name overrides common_name."""
    key = new_private_key(key_type)
    name = name or x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = x509.CertificateBuilder() \
        .subject_name(name) \
        .issuer_name(name) \
        .public_key(key.public_key()) \
        .serial_number(x509.random_serial_number()) \
        .not_valid_before(now) \
        .not_valid_after(now + datetime.timedelta(days=1)) \
        .sign(key, hashes.SHA256())
    return private_key_pem(key), cert.public_bytes(serialization.Encoding.PEM)

def load_pkcs8(pkey_pkcs8):
    return serialization.load_der_private_key(pkey_pkcs8, password=None)


class FixedRandom(object):
    """Deterministic stand-in for os.urandom; records the size of every request."""
    def __init__(self, byte=b"\x2a"):
        self.byte = byte
        self.requests = []

    def __call__(self, n):
        self.requests.append(n)
        return self.byte * n

class CountingRandom(object):
    """Returns a different (but predictable) byte string on every call."""
    def __init__(self):
        self.counter = 0

    def __call__(self, n):
        self.counter += 1
        return bytes([self.counter % 256]) * n


@contextlib.contextmanager
def tempfile_path():
    fd, path = tempfile.mkstemp()
    os.close(fd)
    try:
        yield path
    finally:
        os.unlink(path)
