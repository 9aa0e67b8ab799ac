"""
Password obfuscation used by the portal's login form.

The login page ships a numeric PasswordSalt; its JavaScript XORs every
character of the password with it before submitting the PwEnc field. This is
obfuscation, not cryptography.
"""
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def _parse_salt(salt: Optional[str]) -> Optional[int]:
    if salt is None or not salt.strip():
        return None
    try:
        return int(salt.strip())
    except ValueError:
        return None


def encode(password: str, salt: Optional[str]) -> str:
    """
    XOR every character code of password with the integer value of salt.

    An empty or non-numeric salt returns the password unchanged, matching what
    the portal's own script does.
    """
    key = _parse_salt(salt)
    if key is None:
        logger.warning(f"Unusable password salt {salt!r}; sending plain password")
        return password
    # the browser XORs 16-bit code units
    key &= 0xFFFF
    return "".join(chr(key ^ ord(c)) for c in password)


# XOR with a fixed key is its own inverse
decode = encode
