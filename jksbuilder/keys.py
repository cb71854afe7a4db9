# vim: set et ai ts=4 sts=4 sw=4:
"""
Decoding of PEM-encoded private keys into the PKCS#8 form that JKS keystores embed.

Three PEM labels are understood, each mapping to its own key class:

  - ``PRIVATE KEY``:     PKCS#8 PrivateKeyInfo (RSA or EC), see :class:`Pkcs8PrivateKey`
  - ``RSA PRIVATE KEY``: PKCS#1 RSAPrivateKey, see :class:`RsaPrivateKey`
  - ``EC PRIVATE KEY``:  RFC 5915 ECPrivateKey with a named curve, see :class:`EcPrivateKey`

Any other label is rejected with an :class:`~jksbuilder.util.UnsupportedKeyTypeException`.
"""
from pyasn1.codec.der import encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import univ
from pyasn1_modules import rfc2437, rfc2459, rfc5208

from . import rfc5915
from .pem import decode_pem, encode_pem
from .util import *


class PrivateKey(object):
    """Abstract superclass for decoded private keys."""
    label = None
    """The PEM label this kind of key is read from."""

    KEY_TYPE_RSA = "RSA"
    KEY_TYPE_EC = "EC"

    def __init__(self, algorithm_oid, pkey, pkey_pkcs8, curve_oid=None):
        self.algorithm_oid = algorithm_oid  #: OID tuple of the key algorithm, as found in the PKCS#8 AlgorithmIdentifier.
        self.pkey = pkey                    #: DER bytes of the algorithm-specific key structure (RSAPrivateKey or ECPrivateKey).
        self.pkey_pkcs8 = pkey_pkcs8        #: DER bytes of the PKCS#8 PrivateKeyInfo wrapping :attr:`pkey`.
        self.curve_oid = curve_oid          #: OID tuple of the named curve for EC keys, ``None`` otherwise.

    @property
    def key_type(self):
        """Either ``RSA`` or ``EC``."""
        if self.algorithm_oid == RSA_ENCRYPTION_OID:
            return self.KEY_TYPE_RSA
        return self.KEY_TYPE_EC

    def as_pem(self):
        """Returns the key as PKCS#8 PEM text."""
        return encode_pem(self.pkey_pkcs8, "PRIVATE KEY")

    def __repr__(self):
        return "<%s key_type=%s>" % (self.__class__.__name__, self.key_type)

    @classmethod
    def from_der(cls, der):
        raise NotImplementedError("Abstract method")


class Pkcs8PrivateKey(PrivateKey):
    """An RSA or EC private key that was supplied PKCS#8-wrapped; the original encoding is kept as-is."""
    label = "PRIVATE KEY"

    @classmethod
    def from_der(cls, der):
        try:
            private_key_info = asn1_checked_decode(der, asn1Spec=rfc5208.PrivateKeyInfo())
            algorithm_oid = private_key_info['privateKeyAlgorithm']['algorithm'].asTuple()
            pkey = private_key_info['privateKey'].asOctets()
        except PyAsn1Error as e:
            raise KeyParseException("Failed to parse key as a PKCS#8 PrivateKeyInfo structure: %s" % (e,)) from e

        curve_oid = None
        if algorithm_oid == RSA_ENCRYPTION_OID:
            _decode_rsa_private_key(pkey)
        elif algorithm_oid == EC_PUBLIC_KEY_OID:
            _decode_ec_private_key(pkey)
            curve_oid = _decode_curve_parameters(private_key_info['privateKeyAlgorithm']['parameters'])
        else:
            raise UnsupportedKeyTypeException("Unsupported PKCS#8 private key algorithm %s; only RSA and EC keys are supported" % (oid_to_str(algorithm_oid),),
                                              cls.label)

        return cls(algorithm_oid, pkey, bytes(der), curve_oid=curve_oid)


class RsaPrivateKey(PrivateKey):
    """An RSA private key supplied in the traditional PKCS#1 encoding."""
    label = "RSA PRIVATE KEY"

    @classmethod
    def from_der(cls, der):
        _decode_rsa_private_key(der)
        pkey_pkcs8 = _encode_pkcs8(RSA_ENCRYPTION_OID, encoder.encode(univ.Null()), der)
        return cls(RSA_ENCRYPTION_OID, bytes(der), pkey_pkcs8)


class EcPrivateKey(PrivateKey):
    """An EC private key supplied in the traditional RFC 5915 (SEC1) encoding."""
    label = "EC PRIVATE KEY"

    @classmethod
    def from_der(cls, der):
        ec_key = _decode_ec_private_key(der)
        if not ec_key['parameters'].isValue:
            raise KeyParseException("EC private key does not specify a named curve")
        curve_oid = ec_key['parameters'].asTuple()

        # Inside PKCS#8 the curve is carried by the AlgorithmIdentifier, so the inner structure omits it.
        inner = rfc5915.ECPrivateKey()
        inner.setComponentByName('version', 1)
        inner.setComponentByName('privateKey', ec_key['privateKey'].asOctets())
        if ec_key['publicKey'].isValue:
            inner.setComponentByName('publicKey', ec_key['publicKey'])
        pkey = encoder.encode(inner)

        curve_params = encoder.encode(univ.ObjectIdentifier(curve_oid))
        pkey_pkcs8 = _encode_pkcs8(EC_PUBLIC_KEY_OID, curve_params, pkey)
        return cls(EC_PUBLIC_KEY_OID, pkey, pkey_pkcs8, curve_oid=curve_oid)


def parse_private_key(data):
    """
    Decodes a PEM-encoded private key.

    :param data: PEM text (bytes or str) containing a single private key block.
    :returns: A :class:`Pkcs8PrivateKey`, :class:`RsaPrivateKey` or :class:`EcPrivateKey` instance.

    :raises PemDecodeException: If the PEM armor is malformed.
    :raises UnsupportedKeyTypeException: If the PEM label is not one of the supported key labels.
    :raises KeyParseException: If the DER payload is malformed.
    """
    return parse_private_key_block(decode_pem(data))

def parse_private_key_block(block):
    """Same as :func:`parse_private_key`, for an already decoded :class:`~jksbuilder.pem.PemBlock`."""
    label = block.label
    if label == Pkcs8PrivateKey.label:
        return Pkcs8PrivateKey.from_der(block.der)
    elif label == RsaPrivateKey.label:
        return RsaPrivateKey.from_der(block.der)
    elif label == EcPrivateKey.label:
        return EcPrivateKey.from_der(block.der)
    else:
        raise UnsupportedKeyTypeException("Unsupported private key type '%s'" % (label,), label)

def _decode_rsa_private_key(der):
    try:
        return asn1_checked_decode(der, asn1Spec=rfc2437.RSAPrivateKey())
    except PyAsn1Error as e:
        raise KeyParseException("Failed to parse key as a PKCS#1 RSAPrivateKey structure: %s" % (e,)) from e

def _decode_ec_private_key(der):
    try:
        ec_key = asn1_checked_decode(der, asn1Spec=rfc5915.ECPrivateKey())
    except PyAsn1Error as e:
        raise KeyParseException("Failed to parse key as an ECPrivateKey structure: %s" % (e,)) from e
    if int(ec_key['version']) != 1:
        raise KeyParseException("Unexpected ECPrivateKey version %d; expected 1" % int(ec_key['version']))
    return ec_key

def _decode_curve_parameters(parameters):
    if not parameters.isValue:
        raise KeyParseException("PKCS#8 EC private key does not specify a named curve")
    try:
        curve = asn1_checked_decode(parameters.asOctets(), asn1Spec=univ.ObjectIdentifier())
    except PyAsn1Error as e:
        raise KeyParseException("PKCS#8 EC private key parameters are not a named curve: %s" % (e,)) from e
    return curve.asTuple()

def _encode_pkcs8(algorithm_oid, parameters, pkey):
    private_key_info = rfc5208.PrivateKeyInfo()
    private_key_info.setComponentByName('version','v1')
    a = rfc2459.AlgorithmIdentifier()
    a.setComponentByName('algorithm', algorithm_oid)
    a.setComponentByName('parameters', parameters)
    private_key_info.setComponentByName('privateKeyAlgorithm', a)
    private_key_info.setComponentByName('privateKey', pkey)
    return encoder.encode(private_key_info)
