"""Filesystem-safe names derived from untrusted strings."""
import secrets

MAX_NAME_LENGTH = 100

_RESERVED = '/\\:*?"<>| '
_TRANSLATION = str.maketrans({ch: "_" for ch in _RESERVED})


def sanitize_filename(name: str) -> str:
    """Make an arbitrary string safe to embed in a filename.

    Each of ``/ \\ : * ? " < > |`` and space becomes ``_``, then the result is
    cut to 100 code points. Deterministic and total: an empty input gives an
    empty output, which callers must reject before using it as a whole name.

    >>> sanitize_filename("My Song")
    'My_Song'
    >>> sanitize_filename('a/b\\\\c:d')
    'a_b_c_d'
    """
    return name.translate(_TRANSLATION)[:MAX_NAME_LENGTH]


def random_hex(length: int = 8) -> str:
    """Return ``length`` hex characters from a cryptographically secure source."""
    return secrets.token_hex((length + 1) // 2)[:length]
