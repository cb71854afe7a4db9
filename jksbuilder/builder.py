# vim: set et ai ts=4 sts=4 sw=4:
"""Builder interface for generating JKS keystores from PEM-encoded certificates and private keys."""

import os
import time
import base64
import logging
from collections import namedtuple

from .base import timestamp_millis
from .certs import assemble_chain
from .jks import KeyStore, PrivateKeyEntry
from .keys import parse_private_key
from .util import *

log = logging.getLogger(__name__)


class KeyPair(namedtuple("KeyPair", ["key", "cert", "ca_certs"])):
    """
    A certificate and private key to add to a keystore, as supplied to :meth:`KeystoreBuilder.add_cert`.

    ``key`` is the private key in PEM format, ``cert`` the server certificate in X.509 PEM format and
    ``ca_certs`` a tuple of intermediate CA certificates in X.509 PEM format.
    """
    __slots__ = ()

    def parse(self, alias):
        """Decodes the private key and certificate chain; returns a :class:`ParsedKeyPair`."""
        return ParsedKeyPair(alias, parse_private_key(self.key), assemble_chain(self.cert, self.ca_certs))


class ParsedKeyPair(namedtuple("ParsedKeyPair", ["alias", "key", "certs"])):
    """A decoded :class:`KeyPair`: its alias, a :class:`~jksbuilder.keys.PrivateKey` and the certificate chain, leaf first."""
    __slots__ = ()

    def to_entry(self, timestamp):
        return PrivateKeyEntry.new(self.alias, self.certs, self.key, timestamp=timestamp)


class KeystoreBuilder(object):
    """
    Accumulates certificate/private key pairs and a store password, and builds a JKS keystore from them.

    Entries are written in the order their alias was first added; re-adding an alias replaces its
    certificate and key but keeps its position.

    The builder is not safe for concurrent use.
    """
    def __init__(self, random_source=os.urandom, clock=time.time):
        """
        :param random_source: Callable returning the requested number of cryptographically secure random bytes;
          used to generate a fresh salt for every private key.
        :param clock: Callable returning the current time in seconds since the UNIX epoch; used for entry timestamps.
        """
        self._key_pairs = {}
        self._password = ""
        self.random_source = random_source
        self.clock = clock

    def __len__(self):
        return len(self._key_pairs)

    @property
    def aliases(self):
        """The aliases added so far, in output order."""
        return list(self._key_pairs.keys())

    def add_cert(self, alias, cert, key, *ca_certs):
        """
        Adds a certificate and private key to the key store.
        If an alias is reused, this overwrites the previous cert.

        :param str alias: Alias for cert/key pair
        :param cert: Certificate, in X.509 PEM format
        :param key: Private key, in PEM format
        :param ca_certs: Optional intermediate certificate authorities to add to keypair, in X.509 PEM format
        """
        self._key_pairs[alias] = KeyPair(key=key, cert=cert, ca_certs=tuple(ca_certs))

    def set_password(self, password):
        """
        Sets the keystore password. Byte strings are interpreted as UTF-8.

        :raises InvalidPasswordException: If a byte string password is not valid UTF-8.
        """
        try:
            self._password = to_text(password)
        except UnicodeDecodeError as e:
            raise InvalidPasswordException("password is not valid UTF-8: %s" % e) from e

    def build(self):
        """
        Constructs the keystore from the builder contents.

        :returns: The keystore, as a JKS-formatted byte string.

        :raises NoPasswordException: If no (or an empty) password was set.
        :raises InvalidAliasException: If an entry has an empty alias.
        :raises EmptyFieldException: If an entry has an empty certificate, key or intermediate certificate.
        :raises KeystoreException: Any parse or serialization error; its ``alias`` attribute names the offending entry.
        """
        self._validate()

        entries = self._gen_entries()
        keystore = KeyStore.new(entries)
        keystore_bytes = keystore.saves(self._password, random_source=self.random_source)

        log.debug("Built JKS keystore with %d entries (%d bytes)", len(entries), len(keystore_bytes))
        return keystore_bytes

    def build_base64(self):
        """Same as :meth:`build`, but returns the keystore base64-encoded as text."""
        return base64.b64encode(self.build()).decode('ascii')

    def _gen_entries(self):
        entries = []
        timestamp = timestamp_millis(self.clock)

        for alias, key_pair in self._key_pairs.items():
            try:
                parsed = key_pair.parse(alias)
            except KeystoreException as e:
                e.alias = alias
                raise

            if log.isEnabledFor(logging.DEBUG):
                log.debug("Adding %s private key with %d certificate(s) as '%s' (subject %s)",
                          parsed.key.key_type, len(parsed.certs), alias, parsed.certs[0].subject)
            entries.append(parsed.to_entry(timestamp))

        return entries

    def _validate(self):
        if not self._password:
            raise NoPasswordException("password is not set for store")

        for alias, key_pair in self._key_pairs.items():
            if not alias:
                raise InvalidAliasException("alias must not be an empty string")
            if not key_pair.cert:
                raise self._with_alias(EmptyFieldException("certificate is empty", "certificate"), alias)
            if not key_pair.key:
                raise self._with_alias(EmptyFieldException("key is empty", "private_key"), alias)
            for i, ca_cert in enumerate(key_pair.ca_certs):
                if not ca_cert:
                    raise self._with_alias(EmptyFieldException("CA certificate %d is empty" % i, "intermediate_certificate", i), alias)

    @staticmethod
    def _with_alias(exception, alias):
        exception.alias = alias
        return exception
