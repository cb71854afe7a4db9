# vim: set et ai ts=4 sts=4 sw=4:
import logging

from .util import *
from .pem import PemBlock, decode_pem, encode_pem
from .keys import PrivateKey, Pkcs8PrivateKey, RsaPrivateKey, EcPrivateKey, parse_private_key, parse_private_key_block
from .certs import Certificate, parse_certificate, assemble_chain
from .sun_crypto import jks_pkey_encrypt, jks_pkey_decrypt
from .jks import *
from .builder import KeystoreBuilder, KeyPair, ParsedKeyPair

__version_info__ = (0, 1, 0)
__version__ = ".".join(str(x) for x in __version_info__)

logging.getLogger(__name__).addHandler(logging.NullHandler())
