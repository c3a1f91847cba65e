"""VAPID server identity for Web Push."""

import base64
import json
from pathlib import Path

from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
)
from py_vapid import Vapid02

from pushrelay.config import Settings

PEM_NAME = "vapid_private.pem"
PUBLIC_NAME = "vapid_keys.json"


def application_server_key(vapid: Vapid02) -> str:
    """Uncompressed P-256 public point, base64url without padding."""
    point = vapid.public_key.public_bytes(
        encoding=Encoding.X962,
        format=PublicFormat.UncompressedPoint,
    )
    return base64.urlsafe_b64encode(point).rstrip(b"=").decode()


def load_or_create_vapid_keys(
    state_dir: str | Path,
    public_key: str = "",
    private_key: str = "",
) -> tuple[str, str]:
    """Resolve the VAPID key pair.

    A configured pair wins. Otherwise the pair kept in
    state_dir is reused, or generated there on first start.

    Returns:
        (application_server_key, private key as raw base64url
        or PEM path; pywebpush accepts either)
    """
    if public_key and private_key:
        return public_key, private_key

    state = Path(state_dir)
    pem_path = state / PEM_NAME
    public_path = state / PUBLIC_NAME
    if pem_path.exists() and public_path.exists():
        stored = json.loads(public_path.read_text())
        return stored["public_key"], str(pem_path)

    state.mkdir(parents=True, exist_ok=True)
    vapid = Vapid02()
    vapid.generate_keys()
    vapid.save_key(str(pem_path))
    generated = application_server_key(vapid)
    public_path.write_text(json.dumps({"public_key": generated}))
    return generated, str(pem_path)


def resolve_vapid_keys(settings: Settings) -> tuple[str, str]:
    return load_or_create_vapid_keys(
        settings.state_dir,
        public_key=settings.vapid_public_key,
        private_key=settings.vapid_private_key,
    )
