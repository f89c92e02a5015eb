from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError

passwordHasher = PasswordHasher(encoding="utf-8")


def makePassword(password: str) -> str:
    """
    Hash a plain-text password or PIN using Argon2.

    Args:
        password (str): The plain-text secret to be hashed.

    Returns:
        str: The Argon2 hash of the given secret.
    """
    return passwordHasher.hash(password)


def checkPassword(password: str, actual_password: str) -> bool:
    """
    Verify a plain-text password or PIN against a stored Argon2 hash.

    Args:
        password (str): The plain-text secret to check.
        actual_password (str): The stored Argon2 hash.

    Returns:
        bool: True if the secret matches the hash, False otherwise.
    """
    try:
        passwordHasher.verify(actual_password, password)
        return True
    except (VerifyMismatchError, InvalidHashError):
        return False
