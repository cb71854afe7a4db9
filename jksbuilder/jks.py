# vim: set et ai ts=4 sts=4 sw=4:
"""JKS file format encoder.

A JKS keystore is laid out as follows (all integers big-endian)::

    magic number    4 bytes, 0xFEEDFEED
    version         4 bytes, always 2
    entry count     4 bytes
    entries         see below
    signature       20 bytes, SHA1(password || "Mighty Aphrodite" || all preceding bytes)

where each entry consists of a 4-byte tag, the alias (as written by Java's
DataOutput.writeUTF), an 8-byte creation timestamp in milliseconds since the
UNIX epoch, and a tag-specific payload:

  - private key entries (tag 1): the length-prefixed DER encoding of a PKCS#8
    EncryptedPrivateKeyInfo structure, followed by the number of certificates
    in the chain and, for each certificate, its type and length-prefixed data.
  - trusted certificate entries (tag 2): the certificate type and the
    length-prefixed certificate data.

The password is converted to bytes as UTF-16BE for both the key protection
and the signature.
"""

import os
import time
import hashlib
from . import sun_crypto
from .base import *
from .certs import Certificate
from .keys import PrivateKey, Pkcs8PrivateKey
from .util import *

MAGIC_NUMBER_JKS = b4.pack(0xFEEDFEED)
VERSION_JKS = 2
SIGNATURE_WHITENING = b"Mighty Aphrodite"


class TrustedCertEntry(AbstractKeystoreEntry):
    """A certificate stored on its own, without a private key."""
    tag = 2

    def __init__(self, **kwargs):
        super(TrustedCertEntry, self).__init__(**kwargs)
        self.type = kwargs.get("type", "X.509")  #: Certificate type as written to the keystore.
        self.cert = kwargs.get("cert")           #: DER encoding of the certificate.

    @classmethod
    def new(cls, alias, cert, timestamp=None):
        """
        :param cert: DER bytes or a :class:`~jksbuilder.certs.Certificate`.
        :param int timestamp: Milliseconds since the UNIX epoch; the current time if omitted.
        """
        if isinstance(cert, Certificate):
            cert = cert.der
        if timestamp is None:
            timestamp = timestamp_millis(time.time)
        return cls(alias=alias, timestamp=timestamp, cert=cert)

    def _payload(self, store_password, random_source):
        return write_utf(self.type) + write_data(self.cert)


class PrivateKeyEntry(AbstractKeystoreEntry):
    """An RSA or EC private key together with its certificate chain; the key is protected with the store password when the keystore is saved."""
    tag = 1

    def __init__(self, **kwargs):
        super(PrivateKeyEntry, self).__init__(**kwargs)
        self.cert_chain = kwargs.get("cert_chain")
        """``(type, der)`` tuples, leaf certificate first."""

        self.pkey = kwargs.get("pkey")                    #: DER bytes of the RSAPrivateKey or ECPrivateKey structure.
        self.pkey_pkcs8 = kwargs.get("pkey_pkcs8")        #: DER bytes of the PKCS#8 PrivateKeyInfo that gets encrypted.
        self.algorithm_oid = kwargs.get("algorithm_oid")  #: OID tuple of the key algorithm.

    @classmethod
    def new(cls, alias, certs, key, timestamp=None):
        """
        :param list certs: The chain, leaf first; each item either DER bytes or a :class:`~jksbuilder.certs.Certificate`.
        :param key: A :class:`~jksbuilder.keys.PrivateKey`, or the DER bytes of a PKCS#8 PrivateKeyInfo.
        :param int timestamp: Milliseconds since the UNIX epoch; the current time if omitted.

        :raises KeyParseException: If ``key`` is bytes that do not hold a PKCS#8 PrivateKeyInfo.
        :raises UnsupportedKeyTypeException: If ``key`` is bytes holding a key other than RSA or EC.
        """
        if not isinstance(key, PrivateKey):
            key = Pkcs8PrivateKey.from_der(key)
        if timestamp is None:
            timestamp = timestamp_millis(time.time)

        chain = [(c.type, c.der) if isinstance(c, Certificate) else ("X.509", c) for c in certs]
        return cls(alias=alias, timestamp=timestamp, cert_chain=chain,
                   pkey=key.pkey, pkey_pkcs8=key.pkey_pkcs8, algorithm_oid=key.algorithm_oid)

    def _protected_key(self, key_password, random_source):
        """DER EncryptedPrivateKeyInfo for this key; a fresh salt is drawn for every call."""
        record = sun_crypto.jks_pkey_encrypt(self.pkey_pkcs8, key_password, random_source=random_source)
        return sun_crypto.wrap_encrypted_key(record)

    def _payload(self, store_password, random_source):
        if not self.cert_chain:
            raise SerializationException("Cannot write private key entry '%s'; certificate chain is empty" % self.alias)

        payload = write_data(self._protected_key(store_password, random_source))
        payload += b4.pack(len(self.cert_chain))
        for cert_type, cert_der in self.cert_chain:
            payload += write_utf(cert_type) + write_data(cert_der)
        return payload


class KeyStore(AbstractKeystore):
    """An ordered collection of JKS entries, keyed by alias."""
    ENTRY_TYPE_PRIVATE_KEY = PrivateKeyEntry.tag
    ENTRY_TYPE_CERTIFICATE = TrustedCertEntry.tag

    @classmethod
    def new(cls, store_entries):
        """
        :param list store_entries: :class:`PrivateKeyEntry` and :class:`TrustedCertEntry` instances, in output order.

        :raises DuplicateAliasException: If two entries share an alias.
        :raises UnsupportedKeystoreEntryTypeException: If an item is not a keystore entry.
        """
        entries = {}
        for entry in store_entries:
            if not isinstance(entry, (PrivateKeyEntry, TrustedCertEntry)):
                raise UnsupportedKeystoreEntryTypeException("Cannot store object of type %s in a JKS keystore" % type(entry).__name__)
            if entry.alias in entries:
                raise DuplicateAliasException("Found duplicate alias '%s'" % entry.alias)
            entries[entry.alias] = entry
        return cls(entries)

    def saves(self, store_password, random_source=None):
        """
        Serializes the keystore. Every private key is protected with the store password under a fresh salt.

        :param str store_password: Password for the keystore signature and the private keys.
        :param random_source: Callable returning ``n`` random bytes, for the key protection salts; :func:`os.urandom` if omitted.

        :raises SerializationException: On an empty alias or an empty certificate chain.
        :raises BadDataLengthException: If an alias or a data field does not fit its length prefix.
        """
        random_source = random_source or os.urandom

        body = MAGIC_NUMBER_JKS + b4.pack(VERSION_JKS) + b4.pack(len(self.entries))
        for alias, entry in self.entries.items():
            if not alias:
                raise SerializationException("Cannot write keystore entry with an empty alias")
            if not isinstance(entry, (PrivateKeyEntry, TrustedCertEntry)):
                raise UnsupportedKeystoreEntryTypeException("Unknown entry type in keystore")
            try:
                body += b4.pack(entry.tag) + write_utf(alias) + b8.pack(entry.timestamp)
                body += entry._payload(store_password, random_source)
            except KeystoreException as e:
                e.alias = alias
                raise

        return body + self.signature(store_password, body)

    @staticmethod
    def signature(store_password, body):
        """The 20-byte integrity digest that terminates a keystore."""
        return hashlib.sha1(store_password.encode('utf-16be', 'surrogatepass') + SIGNATURE_WHITENING + body).digest()
