import base64
from datetime import datetime, timezone

import pytest

from docsign.common.exceptions import SignatureError
from docsign.common.models import SignatureOptions
from docsign.common.utils import now_utc
from docsign.crypto.cms import load_signed_data
from docsign.crypto.keys import import_private_key
from docsign.crypto.sign import create_signature, sign_file, verify_detached_signature

DOCUMENT = b"Quarterly report: revenue up, costs down.\n"


def test_pkcs7_signature_metadata(leaf):
    certificate = leaf.certificate
    with import_private_key(leaf.key_pem) as key:
        result = create_signature(DOCUMENT, certificate, key, SignatureOptions())

    assert result.format == "pkcs7"
    assert result.algorithm == "SHA256withRSA"
    assert result.hash_algorithm == "SHA-256"
    assert result.signed_at.microsecond == 0
    assert result.timestamp is None
    assert result.metadata.algorithm == result.algorithm
    assert result.metadata.signed_at == result.signed_at
    assert result.metadata.signer_info == certificate.subject
    assert result.metadata.certificate_fingerprint == certificate.fingerprints.sha256


def test_pkcs7_embeds_content_certificate_and_signing_time(leaf):
    with import_private_key(leaf.key_pem) as key:
        result = create_signature(DOCUMENT, leaf.certificate, key, SignatureOptions(hash_algorithm="SHA-512"))

    signed = load_signed_data(result.signature)

    assert signed.content == DOCUMENT
    assert signed.certificates == [leaf.cert_der]
    assert signed.digest_algorithm == "sha512"
    assert signed.signing_time == result.signed_at
    assert signed.signed_attrs_der is not None


def test_signed_at_is_current(leaf):
    before = now_utc().replace(microsecond=0)
    with import_private_key(leaf.key_pem) as key:
        result = create_signature(DOCUMENT, leaf.certificate, key)
    after = now_utc()

    assert before <= result.signed_at <= after


def test_ecdsa_signature_algorithm(ecdsa_self_signed):
    with import_private_key(ecdsa_self_signed.key_pem) as key:
        result = create_signature(
            DOCUMENT,
            ecdsa_self_signed.certificate,
            key,
            SignatureOptions(hash_algorithm="SHA-384"),
        )

    assert result.algorithm == "SHA384withECDSA"
    assert load_signed_data(result.signature).digest_algorithm == "sha384"


def test_detached_signature(leaf):
    certificate = leaf.certificate
    with import_private_key(leaf.key_pem) as key:
        result = create_signature(DOCUMENT, certificate, key, SignatureOptions(format="detached"))

    assert result.format == "detached"
    assert len(base64.b64decode(result.signature)) == 256
    assert verify_detached_signature(DOCUMENT, result.signature, certificate) is True
    assert verify_detached_signature(DOCUMENT + b"!", result.signature, certificate) is False
    assert verify_detached_signature(DOCUMENT, result.signature, certificate, "SHA-512") is False
    assert verify_detached_signature(DOCUMENT, "not base64!", certificate) is False
    assert verify_detached_signature(DOCUMENT, result.signature, certificate, "MD5") is False


def test_detached_ecdsa_signature(ecdsa_self_signed):
    certificate = ecdsa_self_signed.certificate
    options = SignatureOptions(format="detached", hash_algorithm="SHA-512")
    with import_private_key(ecdsa_self_signed.key_pem) as key:
        result = create_signature(DOCUMENT, certificate, key, options)

    assert verify_detached_signature(DOCUMENT, result.signature, certificate, "SHA-512") is True


def test_string_document_is_utf8(leaf):
    text = "Zahlung über 100 €"
    certificate = leaf.certificate
    with import_private_key(leaf.key_pem) as key:
        result = create_signature(text, certificate, key, SignatureOptions(format="detached"))

    assert verify_detached_signature(text.encode("utf-8"), result.signature, certificate) is True


def test_include_timestamp(leaf):
    with import_private_key(leaf.key_pem) as key:
        result = create_signature(DOCUMENT, leaf.certificate, key, SignatureOptions(include_timestamp=True))

    assert result.timestamp == result.signed_at


def test_key_certificate_algorithm_mismatch(leaf, ecdsa_self_signed):
    with import_private_key(ecdsa_self_signed.key_pem) as key:
        with pytest.raises(SignatureError, match="does not match"):
            create_signature(DOCUMENT, leaf.certificate, key, SignatureOptions())


def test_pdf_format_is_not_supported(leaf):
    with import_private_key(leaf.key_pem) as key:
        with pytest.raises(SignatureError):
            create_signature(DOCUMENT, leaf.certificate, key, SignatureOptions(format="pdf"))


def test_cleared_key_is_refused(leaf):
    key = import_private_key(leaf.key_pem)
    key.clear()

    with pytest.raises(SignatureError, match="cleared"):
        create_signature(DOCUMENT, leaf.certificate, key, SignatureOptions())


def test_unsupported_hash_is_refused(leaf):
    options = SignatureOptions.model_construct(hash_algorithm="SHA-1", format="pkcs7", include_timestamp=False)
    with import_private_key(leaf.key_pem) as key:
        with pytest.raises(SignatureError, match="Unsupported hash algorithm"):
            create_signature(DOCUMENT, leaf.certificate, key, options)


def test_metadata_cannot_be_supplied(leaf):
    with import_private_key(leaf.key_pem) as key:
        result = create_signature(DOCUMENT, leaf.certificate, key, SignatureOptions())

    forged = type(result).model_validate({
        **result.model_dump(exclude={"metadata"}),
        "metadata": {"algorithm": "SHA1withRSA"},
    })

    assert forged.metadata.algorithm == "SHA256withRSA"


def test_sign_file(tmp_path, leaf):
    path = tmp_path / "contract.txt"
    path.write_bytes(DOCUMENT)

    with import_private_key(leaf.key_pem) as key:
        result = sign_file(path, leaf.certificate, key, SignatureOptions())

    assert load_signed_data(result.signature).content == DOCUMENT


def test_signing_time_follows_clock(monkeypatch, leaf):
    fixed = datetime(2030, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
    monkeypatch.setattr("docsign.crypto.sign.now_utc", lambda: fixed)

    with import_private_key(leaf.key_pem) as key:
        result = create_signature(DOCUMENT, leaf.certificate, key, SignatureOptions())

    assert result.signed_at == fixed.replace(microsecond=0)
    assert load_signed_data(result.signature).signing_time == result.signed_at
