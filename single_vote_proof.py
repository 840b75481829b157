"""
Non-interactive proof that a Paillier ciphertext encrypts a single vote.

The prover shows that c encrypts one of the allowed plaintexts
m_1..m_K without revealing which one. For every allowed m_j the
statement is "c / g^(m_j) is an N-th residue"; the real branch is
proved with the nonce, the other K-1 branches are simulated, and
Fiat-Shamir binds the challenges to the commitments:

    u_j = z_j^N * (c / g^(m_j))^(-e_j)      mod N^2
    sum(e_j) = H(N, c, allowed, u_1..u_K)   mod 2^t

Verification needs only the public key.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import Sequence, Tuple

from paillier import CipherSpace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SingleVoteProof:
    """Commitments, challenges and responses, one entry per allowed plaintext"""
    commitments: Tuple[int, ...]
    challenges: Tuple[int, ...]
    responses: Tuple[int, ...]

    def to_dict(self) -> dict:
        return {
            'commitments': list(self.commitments),
            'challenges': list(self.challenges),
            'responses': list(self.responses),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SingleVoteProof':
        return cls(tuple(data['commitments']), tuple(data['challenges']), tuple(data['responses']))


def challenge_width(cipher_space: CipherSpace, max_bits: int) -> int:
    """Challenge bits must stay below the smallest factor of N"""
    return max(1, min(max_bits, cipher_space.n.bit_length() // 2 - 1))


def _hash_challenge(n: int, ciphertext: int, allowed: Sequence[int],
                    commitments: Sequence[int], bits: int) -> int:
    h = hashlib.sha256()
    for value in (n, ciphertext, *allowed, *commitments):
        h.update(str(value).encode())
        h.update(b'|')
    return int.from_bytes(h.digest(), 'big') % (1 << bits)


def _residue_base(cipher_space: CipherSpace, ciphertext: int, plaintext: int) -> int:
    """c / g^m mod N^2, an N-th residue exactly when c encrypts m"""
    n2 = cipher_space.public_key.n_squared
    return (ciphertext * pow(pow(cipher_space.public_key.g, plaintext, n2), -1, n2)) % n2


def prove_single_vote(cipher_space: CipherSpace, ciphertext: int, plaintext: int, nonce: int,
                      allowed: Sequence[int], challenge_bits: int) -> SingleVoteProof:
    """Prove that ciphertext = Enc(plaintext, nonce) with plaintext in allowed"""
    if plaintext not in allowed:
        raise ValueError("Plaintext is not one of the allowed values")

    n = cipher_space.n
    n2 = cipher_space.public_key.n_squared
    real = list(allowed).index(plaintext)
    modulus = 1 << challenge_bits

    commitments = [0] * len(allowed)
    challenges = [0] * len(allowed)
    responses = [0] * len(allowed)

    # Simulate every branch except the real one
    for j, m in enumerate(allowed):
        if j == real:
            continue
        challenges[j] = secrets.randbelow(modulus)
        responses[j] = cipher_space.random_nonce(n.bit_length())
        base = _residue_base(cipher_space, ciphertext, m)
        commitments[j] = (pow(responses[j], n, n2) * pow(base, -challenges[j], n2)) % n2

    rho = cipher_space.random_nonce(n.bit_length())
    commitments[real] = pow(rho, n, n2)

    e = _hash_challenge(n, ciphertext, allowed, commitments, challenge_bits)
    challenges[real] = (e - sum(challenges)) % modulus
    responses[real] = (rho * pow(nonce, challenges[real], n)) % n

    return SingleVoteProof(tuple(commitments), tuple(challenges), tuple(responses))


def verify_single_vote(cipher_space: CipherSpace, ciphertext: int, proof: SingleVoteProof,
                       allowed: Sequence[int], challenge_bits: int) -> bool:
    """Check a SingleVoteProof against ciphertext using the public key only"""
    if not cipher_space.is_well_formed(ciphertext):
        return False
    k = len(allowed)
    if not (len(proof.commitments) == len(proof.challenges) == len(proof.responses) == k):
        return False

    n = cipher_space.n
    n2 = cipher_space.public_key.n_squared
    modulus = 1 << challenge_bits

    for u, e, z in zip(proof.commitments, proof.challenges, proof.responses):
        if not cipher_space.is_well_formed(u) or not cipher_space.is_valid_nonce(z):
            return False
        if isinstance(e, bool) or not isinstance(e, int) or not 0 <= e < modulus:
            return False

    e = _hash_challenge(n, ciphertext, allowed, proof.commitments, challenge_bits)
    if sum(proof.challenges) % modulus != e:
        logger.debug("Proof: challenge sum mismatch for %d", ciphertext)
        return False

    for m, u, e_j, z in zip(allowed, proof.commitments, proof.challenges, proof.responses):
        base = _residue_base(cipher_space, ciphertext, m)
        if pow(z, n, n2) != (u * pow(base, e_j, n2)) % n2:
            logger.debug("Proof: branch for plaintext %d does not verify", m)
            return False
    return True
