# vim: set ai et ts=4 sts=4 sw=4:
"""
ASN.1 structure for EC private keys as defined in RFC 5915 (SEC1), restricted to named curves.
"""
from pyasn1.type import univ, namedtype, namedval, tag

class ECPrivateKey(univ.Sequence):
    """
    ECPrivateKey ::= SEQUENCE {
      version        INTEGER { ecPrivkeyVer1(1) } (ecPrivkeyVer1),
      privateKey     OCTET STRING,
      parameters [0] ECParameters {{ NamedCurve }} OPTIONAL,
      publicKey  [1] BIT STRING OPTIONAL
    }

    Only the ``namedCurve`` alternative of ECParameters is supported; specified (explicit) curve parameters fail to decode.
    """
    componentType = namedtype.NamedTypes(
        namedtype.NamedType('version', univ.Integer(namedValues=namedval.NamedValues(('ecPrivkeyVer1', 1)))),
        namedtype.NamedType('privateKey', univ.OctetString()),
        namedtype.OptionalNamedType('parameters', univ.ObjectIdentifier().subtype(
            explicitTag=tag.Tag(tag.tagClassContext, tag.tagFormatSimple, 0))),
        namedtype.OptionalNamedType('publicKey', univ.BitString().subtype(
            explicitTag=tag.Tag(tag.tagClassContext, tag.tagFormatSimple, 1)))
    )
