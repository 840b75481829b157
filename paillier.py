"""
Paillier cipher space used for homomorphic vote aggregation.

Ciphertexts live in Z*_{N^2}. Multiplying two ciphertexts adds their
plaintexts modulo N, which is the only operation the voting roles need.
"""

import logging
import math
import random
import secrets
from dataclasses import dataclass
from functools import reduce
from typing import Iterable, Optional

from errors import InvalidParameters, MalformedCiphertext, DecryptionError

logger = logging.getLogger(__name__)


def generate_random_prime(min_val: int = 50, max_val: int = 100) -> int:
    """Generate a random prime number in given range"""
    while True:
        candidate = random.randint(min_val, max_val)
        if is_prime(candidate):
            return candidate


def is_prime(n: int) -> bool:
    """Check if a number is prime"""
    if n < 2:
        return False
    for i in range(2, math.isqrt(n) + 1):
        if n % i == 0:
            return False
    return True


@dataclass(frozen=True)
class PublicKey:
    """Authority public key N, with the simplified generator g = N + 1"""
    n: int

    @property
    def n_squared(self) -> int:
        return self.n * self.n

    @property
    def g(self) -> int:
        return self.n + 1


@dataclass(frozen=True)
class PrivateKey:
    """Authority private key (p, q)"""
    p: int
    q: int

    def __post_init__(self):
        if self.p == self.q:
            raise InvalidParameters("Private key primes must differ")
        if math.gcd(self.lmbda, self.p * self.q) != 1:
            raise InvalidParameters("Private key primes do not yield an invertible lambda")

    @classmethod
    def from_primes(cls, p: int, q: int) -> 'PrivateKey':
        """Build a key after checking both factors are prime"""
        for factor in (p, q):
            if not is_prime(factor):
                raise InvalidParameters(f"{factor} is not prime")
        return cls(p, q)

    @property
    def public_key(self) -> PublicKey:
        return PublicKey(self.p * self.q)

    @property
    def lmbda(self) -> int:
        return (self.p - 1) * (self.q - 1)

    @property
    def mu(self) -> int:
        return pow(self.lmbda, -1, self.p * self.q)


class CipherSpace:
    """Paillier encrypt / combine / decrypt over one public key"""

    def __init__(self, public_key: PublicKey, private_key: Optional[PrivateKey] = None):
        if private_key is not None and private_key.public_key != public_key:
            raise InvalidParameters("Private key does not match public key")
        self.public_key = public_key
        self.private_key = private_key

    @property
    def n(self) -> int:
        return self.public_key.n

    def is_well_formed(self, ciphertext) -> bool:
        """Check membership in Z*_{N^2} without the private key"""
        if isinstance(ciphertext, bool) or not isinstance(ciphertext, int):
            return False
        if not 0 < ciphertext < self.public_key.n_squared:
            return False
        return math.gcd(ciphertext, self.n) == 1

    def is_valid_nonce(self, nonce) -> bool:
        if isinstance(nonce, bool) or not isinstance(nonce, int):
            return False
        return 0 < nonce < self.n and math.gcd(nonce, self.n) == 1

    def random_nonce(self, bits: int) -> int:
        """Draw a fresh nonce of the given width from Z*_N"""
        while True:
            r = secrets.randbits(bits) % self.n
            if r > 1 and math.gcd(r, self.n) == 1:
                return r

    def encrypt(self, plaintext: int, nonce: int) -> int:
        """Encrypt plaintext m with nonce r: g^m * r^N mod N^2"""
        if not 0 <= plaintext < self.n:
            raise ValueError(f"Plaintext outside message space [0, {self.n})")
        if not self.is_valid_nonce(nonce):
            raise ValueError("Nonce must be a unit modulo N")

        n2 = self.public_key.n_squared
        ciphertext = (pow(self.public_key.g, plaintext, n2) * pow(nonce, self.n, n2)) % n2
        logger.debug("Paillier: encrypted %d -> %d", plaintext, ciphertext)
        return ciphertext

    def identity(self) -> int:
        """Encryption of 0 with nonce 1, the neutral element of combine"""
        return 1

    def combine(self, c1: int, c2: int) -> int:
        """Homomorphic addition = multiplication of ciphertexts"""
        for c in (c1, c2):
            if not self.is_well_formed(c):
                raise MalformedCiphertext(c)
        return (c1 * c2) % self.public_key.n_squared

    def combine_all(self, ciphertexts: Iterable[int]) -> int:
        """Fold combine over ciphertexts, left to right"""
        return reduce(self.combine, ciphertexts, self.identity())

    def decrypt(self, ciphertext: int) -> int:
        """Decrypt ciphertext c with the authority private key"""
        if self.private_key is None:
            raise DecryptionError("No private key available to this role")
        if not self.is_well_formed(ciphertext):
            raise DecryptionError(f"Ciphertext {ciphertext!r} is outside the ciphertext space")

        n = self.n
        cl = pow(ciphertext, self.private_key.lmbda, self.public_key.n_squared)
        if (cl - 1) % n != 0:
            raise DecryptionError(f"Ciphertext {ciphertext} does not decrypt under this key")
        plaintext = ((cl - 1) // n * self.private_key.mu) % n
        logger.debug("Paillier: decrypted %d -> %d", ciphertext, plaintext)
        return plaintext
