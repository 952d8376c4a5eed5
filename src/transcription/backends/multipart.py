"""Hand-built multipart/form-data payload for a single file field.

The recognition service only needs one part, so the body is assembled
directly from bytes instead of going through a form encoder. The exact
framing matters: the boundary advertised in Content-Type must match the
delimiters in the body once the leading "--" is accounted for.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass

BOUNDARY_PREFIX = "Boundary"
BOUNDARY_RANDOM_LENGTH = 16
_ALPHABET = string.ascii_letters + string.digits


def random_boundary(length: int = BOUNDARY_RANDOM_LENGTH) -> str:
    """Return a fresh boundary token: "Boundary" plus random alphanumerics."""
    return BOUNDARY_PREFIX + "".join(secrets.choice(_ALPHABET) for _ in range(length))


@dataclass(frozen=True)
class MultipartPayload:
    """A ready-to-send body with its matching Content-Type header value."""

    boundary: str
    content_type: str
    body: bytes


def build_audio_payload(
    audio: bytes,
    *,
    field_name: str = "audio_file",
    filename: str = "blob",
    boundary: str | None = None,
) -> MultipartPayload:
    """Wrap raw audio bytes in a single-part multipart/form-data body."""
    boundary = boundary or random_boundary()
    # Header boundary is "----<token>", body delimiters add the usual "--".
    delimiter = f"----{boundary}"
    head = (
        f"--{delimiter}\r\n"
        f'Content-Disposition: form-data; name="{field_name}"; filename="{filename}"\r\n'
        'Content-Type: "application/octet-stream"\r\n'
        "\r\n"
    ).encode()
    tail = f"\r\n--{delimiter}--".encode()

    return MultipartPayload(
        boundary=boundary,
        content_type=f"multipart/form-data; boundary={delimiter}",
        body=b"".join((head, audio, tail)),
    )
