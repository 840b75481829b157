import logging
from dataclasses import dataclass
from typing import Optional

from election_config import ElectionConfig, SLOT_ORDERS
from errors import InvalidParameters

logger = logging.getLogger(__name__)


def default_bits_per_candidate(voter_count: int) -> int:
    """ceil(log2(voter_count + 1)): bits needed to count every voter in one slot"""
    return max(1, voter_count.bit_length())


@dataclass(frozen=True)
class ElectionParameters:
    """Immutable election parameters shared by every component"""
    modulus: int
    voter_count: int
    candidate_count: int
    randomness_bits: int
    slot_order: str = "index_low"
    bits_override: Optional[int] = None

    def __post_init__(self):
        if self.voter_count < 1:
            raise InvalidParameters(f"Voter count must be positive, got {self.voter_count}")
        if self.candidate_count < 1:
            raise InvalidParameters(f"Candidate count must be positive, got {self.candidate_count}")
        if self.randomness_bits < 2:
            raise InvalidParameters(f"Randomness width must be at least 2 bits, got {self.randomness_bits}")
        if self.slot_order not in SLOT_ORDERS:
            raise InvalidParameters(f"Unknown slot order {self.slot_order!r}")
        if self.bits_override is not None and self.bits_override < 1:
            raise InvalidParameters(f"Bits per candidate must be positive, got {self.bits_override}")
        if self.modulus < 6:
            raise InvalidParameters(f"Modulus {self.modulus} is not a usable public key")
        if self.modulus % 2 == 0:
            raise InvalidParameters(f"Modulus {self.modulus} is even; a product of two odd primes is required")

        if self.plaintext_bits > self.modulus.bit_length() - 1:
            raise InvalidParameters(
                f"{self.candidate_count} candidates x {self.bits_per_candidate} bits "
                f"exceed the message space of a {self.modulus.bit_length()}-bit modulus")

        if self.bits_per_candidate < default_bits_per_candidate(self.voter_count):
            logger.warning("Parameters: %d bits per candidate cannot count %d voters; "
                           "slot counts alias modulo %d",
                           self.bits_per_candidate, self.voter_count, self.slot_capacity)

    @property
    def bits_per_candidate(self) -> int:
        if self.bits_override is not None:
            return self.bits_override
        return default_bits_per_candidate(self.voter_count)

    @property
    def plaintext_bits(self) -> int:
        """Width of a packed tally"""
        return self.candidate_count * self.bits_per_candidate

    @property
    def slot_capacity(self) -> int:
        """Number of distinct counts one slot holds before wrapping"""
        return 1 << self.bits_per_candidate

    @classmethod
    def from_config(cls, election: ElectionConfig) -> 'ElectionParameters':
        """Build parameters from the election section of the configuration"""
        return cls(
            modulus=election.MODULUS,
            voter_count=election.VOTER_COUNT,
            candidate_count=election.CANDIDATE_COUNT,
            randomness_bits=election.RANDOMNESS_BITS,
            slot_order=election.SLOT_ORDER,
            bits_override=election.BITS_PER_CANDIDATE,
        )
