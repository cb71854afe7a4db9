# vim: set et ai ts=4 sts=4 sw=4:
import os
import hashlib

from cryptography.hazmat.primitives import constant_time
from pyasn1.codec.der import encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import univ
from pyasn1_modules import rfc2459, rfc5208

from .util import *

SUN_JKS_ALGO_ID = (1,3,6,1,4,1,42,2,17,1,1) # JavaSoft proprietary key-protection algorithm
SALT_SIZE = 20
DIGEST_SIZE = hashlib.sha1().digest_size

def jks_pkey_encrypt(key, password_str, salt=None, random_source=os.urandom):
    """
    Encrypts a PKCS#8-encoded private key with the private key protection algorithm used by JKS keystores.
    See sun/security/provider/KeyProtector.java in the JDK sources.

    The result is laid out as ``salt (20 bytes) || ciphertext || SHA1(password || plaintext)``, where the ciphertext is the
    plaintext XORed with a keystream of chained SHA1 digests seeded with the password and salt.

    :param bytes key: The plaintext (PKCS#8 DER) to protect.
    :param str password_str: The password; converted to bytes as UTF-16BE, i.e. Java's raw 2-byte char representation.
    :param bytes salt: Optional fixed 20-byte salt. If not given, a fresh one is obtained from ``random_source``.
    :param random_source: Callable returning the requested number of cryptographically secure random bytes.

    :raises KeyProtectionException: If the password or the key is empty, or the salt is not 20 bytes long.
    """
    if not password_str:
        raise KeyProtectionException("Cannot protect private key; password is empty")
    if not key:
        raise KeyProtectionException("Cannot protect private key; key data is empty")

    if salt is None:
        salt = random_source(SALT_SIZE)
    if len(salt) != SALT_SIZE:
        raise KeyProtectionException("Expected %d-byte salt for JKS key protection, found %d bytes" % (SALT_SIZE, len(salt)))

    password_bytes = password_str.encode('utf-16be', 'surrogatepass') # Java chars are UTF-16BE code units
    key = bytearray(key)

    data = xor_bytearrays(key, _jks_keystream(bytearray(salt), password_bytes))
    check = hashlib.sha1(bytes(password_bytes + key)).digest()

    return bytes(salt) + bytes(data) + check

def jks_pkey_decrypt(data, password_str):
    """
    Decrypts the private key password protection algorithm used by JKS keystores.
    The JDK sources state that 'the password is expected to be in printable ASCII', though this does not appear to be enforced;
    the password is converted into bytes simply by taking each individual Java char and appending its raw 2-byte representation.
    See sun/security/provider/KeyProtector.java in the JDK sources.

    :raises BadDataLengthException: If the data is too short to hold a salt and an integrity check.
    :raises BadHashCheckException: If the integrity check fails, i.e. the password is wrong or the data was corrupted.
    """
    if len(data) < SALT_SIZE + DIGEST_SIZE:
        raise BadDataLengthException("Protected key data is too short; expected at least %d bytes, found %d" % (SALT_SIZE + DIGEST_SIZE, len(data)))

    password_bytes = password_str.encode('utf-16be', 'surrogatepass')

    data = bytearray(data)
    iv, data, check = data[:SALT_SIZE], data[SALT_SIZE:-DIGEST_SIZE], data[-DIGEST_SIZE:]
    key = xor_bytearrays(data, _jks_keystream(iv, password_bytes))

    if not constant_time.bytes_eq(hashlib.sha1(bytes(password_bytes + key)).digest(), bytes(check)):
        raise BadHashCheckException("Bad hash check on private key; wrong password?")
    return bytes(key)

def _jks_keystream(iv, password):
    """Helper keystream generator for jks_pkey_encrypt and jks_pkey_decrypt"""
    cur = iv
    while 1:
        cur = bytearray(hashlib.sha1(bytes(password + cur)).digest())
        for byte in cur:
            yield byte

def wrap_encrypted_key(protected_key):
    """
    Wraps the output of :func:`jks_pkey_encrypt` in the DER-encoded PKCS#8 EncryptedPrivateKeyInfo structure that JKS keystores store,
    identifying the JavaSoft key protection algorithm.
    """
    a = rfc2459.AlgorithmIdentifier()
    a.setComponentByName('algorithm', SUN_JKS_ALGO_ID)
    a.setComponentByName('parameters', encoder.encode(univ.Null()))

    epki = rfc5208.EncryptedPrivateKeyInfo()
    epki.setComponentByName('encryptionAlgorithm', a)
    epki.setComponentByName('encryptedData', protected_key)
    return encoder.encode(epki)

def unwrap_encrypted_key(epki_bytes):
    """
    Inverse of :func:`wrap_encrypted_key`.

    :raises DecryptionFailureException: If the data is not an EncryptedPrivateKeyInfo structure.
    :raises UnexpectedAlgorithmException: If the key was protected with something other than the JKS key protection algorithm.
    """
    try:
        encrypted_info = asn1_checked_decode(epki_bytes, asn1Spec=rfc5208.EncryptedPrivateKeyInfo())
    except PyAsn1Error as e:
        raise DecryptionFailureException("Failed to parse encrypted private key: %s" % (e,)) from e

    algo_id = encrypted_info['encryptionAlgorithm']['algorithm'].asTuple()
    if algo_id != SUN_JKS_ALGO_ID:
        raise UnexpectedAlgorithmException("Unknown JKS private key protection algorithm: %s" % (oid_to_str(algo_id),))
    return encrypted_info['encryptedData'].asOctets()
