from __future__ import annotations
from cryptography.hazmat.primitives import hashes

SHA1_DIGEST_LENGTH = 20


def sha1_digest(data: bytes) -> bytes:
    digest = hashes.Hash(hashes.SHA1())
    digest.update(data)
    return digest.finalize()


def bin2hex(data: bytes) -> str:
    """Lower-case hex encoding, two digits per byte."""
    return data.hex()


def generate_auth_string(user: str, password: str) -> str:
    """
    Build the authentication token the CDC service expects:
    hex(user + ":") followed by hex(sha1(password)).
    """
    part1 = bin2hex(f"{user}:".encode())
    part2 = bin2hex(sha1_digest(password.encode()))
    return part1 + part2
