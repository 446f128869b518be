"""
CMS / PKCS#7 SignedData Encoding

Builds and reads the attached-content SignedData structure produced for
pkcs7 signatures:
- One signer certificate
- One SignerInfo identified by issuer and serial number
- Signed attributes: content type, message digest, signing time
"""

import binascii
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Union

from asn1crypto import algos, cms, core
from asn1crypto import pem as asn1_pem
from asn1crypto import x509 as asn1_x509
from cryptography.hazmat.primitives import hashes

from docsign.common.utils import b64decode

# Option names -> asn1crypto digest names
HASH_ALGORITHMS = {
    "SHA-256": "sha256",
    "SHA-384": "sha384",
    "SHA-512": "sha512",
}

DIGEST_ALGORITHMS = {
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


@dataclass(frozen=True)
class ParsedSignedData:
    certificates: List[bytes]
    digest_algorithm: str
    signature: bytes
    signed_attrs_der: Optional[bytes]
    message_digest: Optional[bytes]
    signing_time: Optional[datetime]
    content: Optional[bytes]


def hash_for(digest_name: str) -> hashes.HashAlgorithm:
    """
    Return a cryptography hash instance for an asn1crypto digest name.

    Raises:
        ValueError: If the digest is not SHA-256/384/512
    """
    try:
        return DIGEST_ALGORITHMS[digest_name]()
    except KeyError:
        raise ValueError(f"Unsupported digest algorithm: {digest_name}")


def signed_digest_algorithm(digest_name: str, key_algorithm: str) -> str:
    if key_algorithm == "RSA":
        return "rsassa_pkcs1v15"
    if key_algorithm == "ECDSA":
        return f"{digest_name}_ecdsa"
    raise ValueError(f"Unsupported key algorithm: {key_algorithm}")


def build_signed_attributes(message_digest: bytes, signing_time: datetime) -> cms.CMSAttributes:
    return cms.CMSAttributes([
        cms.CMSAttribute({
            'type': cms.CMSAttributeType('content_type'),
            'values': (cms.ContentType('data'),),
        }),
        cms.CMSAttribute({
            'type': cms.CMSAttributeType('message_digest'),
            'values': (core.OctetString(message_digest),),
        }),
        cms.CMSAttribute({
            'type': cms.CMSAttributeType('signing_time'),
            'values': (cms.Time({'utc_time': core.UTCTime(signing_time)}),),
        }),
    ])


def build_signed_data(
    content: bytes,
    certificate_der: bytes,
    digest_name: str,
    signature_algorithm: str,
    signed_attrs: cms.CMSAttributes,
    signature: bytes
) -> bytes:
    """
    Assemble a DER-encoded ContentInfo wrapping SignedData.

    Args:
        content: Document bytes, embedded as id-data content
        certificate_der: Signer certificate in DER form
        digest_name: asn1crypto digest name (e.g. "sha256")
        signature_algorithm: asn1crypto signed digest algorithm name
        signed_attrs: Attributes the signature was computed over
        signature: Raw signature value

    Returns:
        DER-encoded ContentInfo
    """
    certificate = asn1_x509.Certificate.load(certificate_der)

    signer_info = cms.SignerInfo({
        'version': 'v1',
        'sid': cms.SignerIdentifier({
            'issuer_and_serial_number': cms.IssuerAndSerialNumber({
                'issuer': certificate.issuer,
                'serial_number': certificate.serial_number,
            }),
        }),
        'digest_algorithm': algos.DigestAlgorithm({'algorithm': digest_name}),
        'signed_attrs': signed_attrs,
        'signature_algorithm': algos.SignedDigestAlgorithm({'algorithm': signature_algorithm}),
        'signature': signature,
    })

    signed_data = cms.SignedData({
        'version': 'v1',
        'digest_algorithms': [algos.DigestAlgorithm({'algorithm': digest_name})],
        'encap_content_info': {
            'content_type': 'data',
            'content': content,
        },
        'certificates': [certificate],
        'signer_infos': [signer_info],
    })

    return cms.ContentInfo({
        'content_type': 'signed_data',
        'content': signed_data,
    }).dump()


def decode_signature_blob(blob: Union[str, bytes]) -> bytes:
    """
    Turn a transported signature into DER bytes.

    Accepts base64 text, PEM armor, or raw DER.

    Raises:
        ValueError: If the blob cannot be decoded
    """
    if isinstance(blob, str):
        text = blob.strip()
    elif blob[:1] == b"\x30":
        return bytes(blob)
    else:
        try:
            text = bytes(blob).decode("ascii").strip()
        except UnicodeDecodeError as e:
            raise ValueError(f"Signature is neither DER nor text: {e}")

    if text.startswith("-----BEGIN"):
        _, _, der = asn1_pem.unarmor(text.encode("ascii"))
        return der
    try:
        return b64decode(text)
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError(f"Signature is not valid base64: {e}")


def load_signed_data(blob: Union[str, bytes]) -> ParsedSignedData:
    """
    Decode a CMS SignedData structure and pull out the first signer.

    Raises:
        ValueError: If the blob is not a well-formed SignedData with a SignerInfo
    """
    der = decode_signature_blob(blob)
    content_info = cms.ContentInfo.load(der, strict=True)
    if content_info['content_type'].native != 'signed_data':
        raise ValueError("Not a CMS SignedData structure")

    signed_data = content_info['content']
    signer_infos = signed_data['signer_infos']
    if len(signer_infos) == 0:
        raise ValueError("SignedData contains no SignerInfo")
    signer_info = signer_infos[0]

    certificates = []
    certificate_set = signed_data['certificates']
    if not isinstance(certificate_set, core.Void):
        for choice in certificate_set:
            if choice.name == 'certificate':
                certificates.append(choice.chosen.dump())

    signed_attrs_der = None
    message_digest = None
    signing_time = None
    signed_attrs = signer_info['signed_attrs']
    if not isinstance(signed_attrs, core.Void):
        # Signature covers the attributes with their universal SET tag, not [0]
        signed_attrs_der = b"\x31" + signed_attrs.dump()[1:]
        for attr in signed_attrs:
            attr_type = attr['type'].native
            if attr_type == 'message_digest':
                message_digest = attr['values'][0].native
            elif attr_type == 'signing_time':
                signing_time = attr['values'][0].native

    content = signed_data['encap_content_info']['content']

    return ParsedSignedData(
        certificates=certificates,
        digest_algorithm=signer_info['digest_algorithm']['algorithm'].native,
        signature=signer_info['signature'].native,
        signed_attrs_der=signed_attrs_der,
        message_digest=message_digest,
        signing_time=signing_time,
        content=None if isinstance(content, core.Void) else content.native,
    )
