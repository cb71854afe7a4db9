# vim: set et ai ts=4 sts=4 sw=4:
from collections import namedtuple

from pyasn1.codec.ber import decoder
from pyasn1.error import PyAsn1Error
from pyasn1_modules import rfc2459

from .pem import decode_pem
from .util import *

# OpenSSL's TRUSTED CERTIFICATE blocks append auxiliary trust data to the DER and are not accepted
CERTIFICATE_LABELS = ("CERTIFICATE", "X509 CERTIFICATE")

NAME_ATTRIBUTE_LABELS = {
    (2,5,4,3): "CN",
    (2,5,4,6): "C",
    (2,5,4,7): "L",
    (2,5,4,8): "ST",
    (2,5,4,10): "O",
    (2,5,4,11): "OU",
    (0,9,2342,19200300,100,1,25): "DC",
    (0,9,2342,19200300,100,1,1): "UID",
}

class Certificate(namedtuple("Certificate", ["type", "der"])):
    """
    A decoded certificate, ready to be embedded in a keystore.

    ``type`` is the certificate type as written to the keystore (always ``X.509``),
    ``der`` the DER encoding of the certificate, exactly as it was supplied.
    """
    __slots__ = ()

    @property
    def subject(self):
        """The subject name as an RFC 4514 string (most specific RDN first), for diagnostics. Values are not escaped."""
        cert = asn1_checked_decode(self.der, asn1Spec=rfc2459.Certificate())
        rdn_sequence = cert['tbsCertificate']['subject'].getComponent()

        rdns = []
        for rdn in rdn_sequence:
            rdns.append("+".join(_format_attribute(atv) for atv in rdn))
        return ",".join(reversed(rdns))

def _format_attribute(atv):
    oid = tuple(atv['type'])
    name = NAME_ATTRIBUTE_LABELS.get(oid, oid_to_str(oid))
    try:
        value, _ = decoder.decode(atv['value'].asOctets())
        value = str(value)
    except PyAsn1Error:
        value = "#" + atv['value'].asOctets().hex()
    return "%s=%s" % (name, value)

def parse_certificate(data, index=0):
    """
    Decodes a single PEM-encoded X.509 certificate.

    :param int index: Position of the certificate in its chain; reported in the exception on failure.
    :raises CertificateParseException: If the data is not a PEM-encoded X.509 certificate.
    """
    try:
        block = decode_pem(data)
    except PemDecodeException as e:
        raise CertificateParseException("Error parsing certificate %d: %s" % (index, e), index) from e

    if block.label not in CERTIFICATE_LABELS:
        raise CertificateParseException("Error parsing certificate %d: unexpected PEM block type '%s'" % (index, block.label), index)

    try:
        asn1_checked_decode(block.der, asn1Spec=rfc2459.Certificate())
    except PyAsn1Error as e:
        raise CertificateParseException("Error parsing certificate %d: not a valid X.509 certificate: %s" % (index, e), index) from e

    return Certificate("X.509", block.der)

def assemble_chain(cert, ca_certs=()):
    """
    Decodes a leaf certificate and its intermediate CA certificates into a certificate chain.

    No validation of signatures, validity periods or issuer/subject linkage takes place; the
    chain is returned in the order given, with the leaf certificate first.

    :param cert: The leaf certificate, in PEM format.
    :param ca_certs: Intermediate CA certificates in PEM format, in leaf-to-root order (root excluded).
    :returns: A list of :class:`Certificate` instances.
    :raises CertificateParseException: Identifying the 0-based position of the first certificate that could not be parsed.
    """
    pem_certs = [cert] + list(ca_certs)
    return [parse_certificate(pem_cert, index=i) for i, pem_cert in enumerate(pem_certs)]
