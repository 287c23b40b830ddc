"""
Credential helpers (bcrypt).

The session core only needs verify_password; hashing is used by signup.
"""

import bcrypt

BCRYPT_ROUNDS = 12

# bcrypt only reads this many bytes and refuses longer input
MAX_PASSWORD_BYTES = 72

# Compared against when the email is unknown so timing does not leak existence
_DUMMY_HASH = bcrypt.hashpw(b"dummy_password", bcrypt.gensalt(BCRYPT_ROUNDS))


def password_fits(plain: str) -> bool:
    return len(plain.encode("utf-8")) <= MAX_PASSWORD_BYTES


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash, or the password is too long
        return False


def burn_password_check(plain: str) -> None:
    bcrypt.checkpw(plain.encode("utf-8")[:MAX_PASSWORD_BYTES], _DUMMY_HASH)
