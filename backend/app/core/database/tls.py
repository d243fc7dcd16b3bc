"""
TLS trust material: load CA bundles from a file or a base64 blob and turn a
descriptor into an ``ssl.SSLContext`` for the driver.
"""

import base64
import binascii
import logging
import re
import ssl
from pathlib import Path

from .descriptor import ConnectionDescriptor
from .errors import TLSMaterialError

_log = logging.getLogger(__name__)

_PEM_BLOCK = re.compile(
    r"-----BEGIN CERTIFICATE-----\s*(?P<body>[A-Za-z0-9+/=\s]+?)\s*-----END CERTIFICATE-----"
)


def validate_pem(text: str) -> str:
    """Return *text* unchanged if it holds PEM certificates the TLS library accepts."""
    blocks = list(_PEM_BLOCK.finditer(text))
    if not blocks:
        raise TLSMaterialError("CA bundle does not contain a PEM certificate")
    for i, block in enumerate(blocks, start=1):
        body = "".join(block.group("body").split())
        try:
            der = base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as e:
            raise TLSMaterialError(f"PEM certificate #{i} has an invalid body: {e}") from e
        if not der:
            raise TLSMaterialError(f"PEM certificate #{i} is empty")
    try:
        ssl.create_default_context(cadata=text)
    except (ssl.SSLError, ValueError) as e:
        raise TLSMaterialError(f"CA bundle is not valid certificate data: {e}") from e
    return text


def decode_base64_pem(blob: str) -> str:
    """Decode a base64-transported CA bundle (e.g. DB_SSL_CA_BASE64) to PEM text."""
    compact = "".join(blob.split())
    try:
        raw = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise TLSMaterialError(f"CA bundle is not valid base64: {e}") from e
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise TLSMaterialError("decoded CA bundle is not UTF-8 text") from e
    return validate_pem(text)


def read_ca_file(path: str | Path) -> str:
    """Read a PEM CA bundle from the local filesystem."""
    try:
        raw = Path(path).expanduser().read_bytes()
    except OSError as e:
        raise TLSMaterialError(f"cannot read CA file {path}: {e}") from e
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise TLSMaterialError(f"CA file {path} is not PEM text") from e
    return validate_pem(text)


def build_ssl_context(descriptor: ConnectionDescriptor) -> ssl.SSLContext | None:
    """
    SSL context for the driver, or None when TLS is disabled.

    - CA bundle present: verify the server against that bundle only.
    - No bundle but TLS enabled: verify against the system trust store.
    """
    if not descriptor.tls_enabled:
        return None
    try:
        if descriptor.ca_bundle:
            ctx = ssl.create_default_context(cadata=descriptor.ca_bundle)
        else:
            ctx = ssl.create_default_context()
    except (ssl.SSLError, ValueError) as e:
        raise TLSMaterialError(f"CA bundle rejected by TLS library: {e}") from e
    ctx.minimum_version = ssl.TLSVersion.TLSv1_2
    _log.debug(
        "TLS context built (source=%s)", descriptor.ca_source or "system trust store"
    )
    return ctx
