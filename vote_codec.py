"""
Positional bit-field encoding of votes and tallies.

Every candidate owns a slot of ``bits_per_candidate`` bits inside one
plaintext integer. A single vote sets its candidate's slot to 1, and
adding plaintexts adds slot counts. Counts that reach the slot capacity
carry into the neighbouring slot and the decoded count wraps; decoding
never corrects this.
"""

from typing import List

from errors import InvalidCandidate
from parameters import ElectionParameters


class VoteCodec:
    """Maps candidate choices to and from packed plaintext values"""

    def __init__(self, parameters: ElectionParameters):
        self.parameters = parameters
        self.bits = parameters.bits_per_candidate
        self.mask = (1 << self.bits) - 1

    def position(self, candidate_index: int) -> int:
        """Slot number of a candidate under the configured slot order"""
        if self.parameters.slot_order == "index_high":
            return self.parameters.candidate_count - 1 - candidate_index
        return candidate_index

    def encode_vote(self, candidate_index: int) -> int:
        """Encode one vote for a candidate"""
        if isinstance(candidate_index, bool) or not isinstance(candidate_index, int):
            raise InvalidCandidate(candidate_index, self.parameters.candidate_count)
        if not 0 <= candidate_index < self.parameters.candidate_count:
            raise InvalidCandidate(candidate_index, self.parameters.candidate_count)
        return 1 << (self.bits * self.position(candidate_index))

    def decode_tally(self, plaintext: int) -> List[int]:
        """Extract every candidate's count from an aggregate plaintext"""
        return [
            (plaintext >> (self.bits * self.position(i))) & self.mask
            for i in range(self.parameters.candidate_count)
        ]

    def is_single_vote(self, plaintext: int) -> bool:
        """True iff exactly one slot holds 1 and nothing else is set"""
        if plaintext <= 0 or plaintext >> self.parameters.plaintext_bits:
            return False
        return sorted(self.decode_tally(plaintext)) == [0] * (self.parameters.candidate_count - 1) + [1]

    def single_vote_values(self) -> List[int]:
        """All plaintexts that encode exactly one vote, in candidate order"""
        return [self.encode_vote(i) for i in range(self.parameters.candidate_count)]
