"""
Shared fixtures: throwaway CA, leaf and self-signed certificates.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from docsign.crypto.certificate import parse_certificate

KEY_PASSWORD = "correct horse battery staple"


@dataclass
class Identity:
    private_key: object
    cert: x509.Certificate

    @property
    def cert_pem(self) -> str:
        return self.cert.public_bytes(serialization.Encoding.PEM).decode("ascii")

    @property
    def cert_der(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.DER)

    @property
    def key_pem(self) -> str:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")

    @property
    def certificate(self):
        return parse_certificate(self.cert_pem)


def make_name(common_name: str, organization: str = "DocSign Test") -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "PK"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])


def issue(
    subject_key,
    subject_cn: str,
    issuer_key=None,
    issuer_name: x509.Name = None,
    not_before: datetime = None,
    not_after: datetime = None,
    is_ca: bool = False,
) -> x509.Certificate:
    """Build a certificate; self-signed when no issuer is given."""
    now = datetime.now(timezone.utc)
    subject = make_name(subject_cn)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name or subject)
        .public_key(subject_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or now - timedelta(days=1))
        .not_valid_after(not_after or now + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=not is_ca,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=is_ca,
                crl_sign=is_ca,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    )
    if not is_ca:
        builder = builder.add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.EMAIL_PROTECTION]),
            critical=False,
        ).add_extension(
            x509.SubjectAlternativeName([x509.RFC822Name(f"{subject_cn}@example.com")]),
            critical=False,
        )
    return builder.sign(issuer_key or subject_key, hashes.SHA256())


def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ca():
    key = rsa_key()
    return Identity(key, issue(key, "DocSign Test Root CA", is_ca=True))


@pytest.fixture(scope="session")
def leaf(ca):
    key = rsa_key()
    cert = issue(key, "signer.docsign.test", issuer_key=ca.private_key, issuer_name=ca.cert.subject)
    return Identity(key, cert)


@pytest.fixture(scope="session")
def self_signed():
    key = rsa_key()
    return Identity(key, issue(key, "self.docsign.test"))


@pytest.fixture(scope="session")
def ecdsa_self_signed():
    key = ec.generate_private_key(ec.SECP256R1())
    return Identity(key, issue(key, "ecdsa.docsign.test"))


@pytest.fixture(scope="session")
def expired():
    key = rsa_key()
    now = datetime.now(timezone.utc)
    cert = issue(
        key,
        "expired.docsign.test",
        not_before=now - timedelta(days=60),
        not_after=now - timedelta(days=1),
    )
    return Identity(key, cert)


@pytest.fixture(scope="session")
def not_yet_valid():
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(timezone.utc)
    cert = issue(
        key,
        "future.docsign.test",
        not_before=now + timedelta(days=10),
        not_after=now + timedelta(days=375),
    )
    return Identity(key, cert)


@pytest.fixture(scope="session")
def inverted_validity():
    """Self-signed RSA certificate whose notBefore lies after its notAfter."""
    key = rsa_key()
    now = datetime.now(timezone.utc)
    template = asn1_x509.Certificate.load(
        issue(key, "inverted.docsign.test").public_bytes(serialization.Encoding.DER)
    )
    source = template['tbs_certificate']

    # CertificateBuilder refuses an inverted window, so the TBS is rebuilt by hand
    tbs = asn1_x509.TbsCertificate({
        'version': 'v3',
        'serial_number': source['serial_number'].native,
        'signature': source['signature'],
        'issuer': source['issuer'],
        'validity': asn1_x509.Validity({
            'not_before': asn1_x509.Time(name='utc_time', value=now - timedelta(days=5)),
            'not_after': asn1_x509.Time(name='utc_time', value=now - timedelta(days=10)),
        }),
        'subject': source['subject'],
        'subject_public_key_info': source['subject_public_key_info'],
    })
    signature = key.sign(tbs.dump(), padding.PKCS1v15(), hashes.SHA256())
    der = asn1_x509.Certificate({
        'tbs_certificate': tbs,
        'signature_algorithm': template['signature_algorithm'],
        'signature_value': signature,
    }).dump()
    return Identity(key, x509.load_der_x509_certificate(der))


@pytest.fixture(scope="session")
def encrypted_key_pem(leaf):
    return leaf.private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.BestAvailableEncryption(KEY_PASSWORD.encode()),
    ).decode("ascii")


@pytest.fixture(scope="session")
def key_password():
    return KEY_PASSWORD


@pytest.fixture
def build_certificate():
    return issue
