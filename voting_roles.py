"""
The three voting roles and the messages they exchange.

Phase 1, Caster: encrypt one vote, then fold every well-formed
ciphertext of the locality into the locality product Mul(c).
Phase 2, Validator: filter products received from other localities,
keeping only shares that carry exactly one vote.
Phase 3, Combiner: fold Mul(c) with the accepted shares into prod(c),
decrypt it and decode the tally.

Each role is a single-pass state machine; its ``state`` only moves
forward and calling a step out of order raises RuntimeError.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import relay_channel
from errors import MalformedCiphertext, RejectedShare, DecryptionError
from paillier import CipherSpace
from parameters import ElectionParameters
from relay_channel import Channel
from single_vote_proof import SingleVoteProof, challenge_width, prove_single_vote, verify_single_vote
from vote_codec import VoteCodec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ballot:
    """One encrypted vote; the nonce stays with the caster"""
    nonce: int
    ciphertext: int
    proof: Optional[SingleVoteProof] = None


@dataclass(frozen=True)
class Share:
    """A locality product offered to another locality"""
    ciphertext: int
    proof: Optional[SingleVoteProof] = None


@dataclass(frozen=True)
class CasterOutput:
    locality_product: int
    included: Tuple[int, ...]
    dropped: Tuple = ()


@dataclass(frozen=True)
class ValidatorOutput:
    accepted: Tuple[Share, ...]
    rejected: Tuple = ()

    @property
    def ciphertexts(self) -> List[int]:
        return [share.ciphertext for share in self.accepted]


@dataclass(frozen=True)
class CombinerOutput:
    product: int
    plaintext: int
    tally: Tuple[int, ...]


def as_share(value: Union[int, Share]) -> Share:
    """Wrap a bare relayed ciphertext as a Share without proof"""
    if isinstance(value, Share):
        return value
    return Share(value)


class CasterState(Enum):
    START = "start"
    AWAIT_CHOICE = "await_choice"
    ENCRYPT = "encrypt"
    AWAIT_PEER_CIPHERTEXTS = "await_peer_ciphertexts"
    AGGREGATE = "aggregate"
    DONE = "done"


class ValidatorState(Enum):
    START = "start"
    COLLECT_SHARES = "collect_shares"
    VALIDATE_EACH = "validate_each"
    DONE = "done"


class CombinerState(Enum):
    START = "start"
    COMBINE = "combine"
    DECRYPT = "decrypt"
    DECODE = "decode"
    DONE = "done"


def _require(role: str, state: Enum, *expected: Enum):
    if state not in expected:
        raise RuntimeError(f"{role}: step not allowed in state {state.value}")


class Caster:
    """Casts one vote and aggregates its locality"""

    def __init__(self, parameters: ElectionParameters, cipher_space: CipherSpace,
                 codec: VoteCodec, proof_challenge_bits: Optional[int] = None):
        self.parameters = parameters
        self.cipher_space = cipher_space
        self.codec = codec
        self.proof_challenge_bits = proof_challenge_bits
        self.state = CasterState.START
        self.ballot: Optional[Ballot] = None

    def cast(self, candidate_index: int) -> Ballot:
        """Encrypt a vote for candidate_index under a fresh nonce"""
        _require("Caster", self.state, CasterState.START, CasterState.AWAIT_CHOICE)
        self.state = CasterState.AWAIT_CHOICE

        # InvalidCandidate leaves the caster waiting for another choice
        vote = self.codec.encode_vote(candidate_index)

        self.state = CasterState.ENCRYPT
        nonce = self.cipher_space.random_nonce(self.parameters.randomness_bits)
        ciphertext = self.cipher_space.encrypt(vote, nonce)

        proof = None
        if self.proof_challenge_bits is not None:
            proof = prove_single_vote(
                self.cipher_space, ciphertext, vote, nonce,
                self.codec.single_vote_values(),
                challenge_width(self.cipher_space, self.proof_challenge_bits))

        self.ballot = Ballot(nonce, ciphertext, proof)
        self.state = CasterState.AWAIT_PEER_CIPHERTEXTS
        logger.info("Caster: vote encrypted")
        logger.debug("Caster: ri = %d, ci = %d", nonce, ciphertext)
        return self.ballot

    def aggregate(self, ciphertexts: Sequence[int]) -> CasterOutput:
        """Fold the locality's well-formed ciphertexts into Mul(c)"""
        _require("Caster", self.state, CasterState.AWAIT_PEER_CIPHERTEXTS)
        self.state = CasterState.AGGREGATE

        ciphertexts = list(ciphertexts)
        if self.ballot.ciphertext not in ciphertexts:
            logger.info("Caster: own ciphertext missing from locality input, adding it")
            ciphertexts.insert(0, self.ballot.ciphertext)

        included, dropped = [], []
        for c in ciphertexts:
            if self.cipher_space.is_well_formed(c):
                included.append(c)
            else:
                logger.warning("Caster: dropped malformed ciphertext %r", c)
                dropped.append(c)

        product = self.cipher_space.combine_all(included)
        self.state = CasterState.DONE
        logger.info("Caster: combined %d ciphertexts into locality product", len(included))
        return CasterOutput(product, tuple(included), tuple(dropped))

    def run(self, candidate_index: int, channel: Channel,
            locality_size: Optional[int] = None) -> Tuple[Ballot, CasterOutput]:
        """Cast, publish ci, wait for the locality, publish Mul(c)"""
        ballot = self.cast(candidate_index)
        channel.emit(relay_channel.CIPHERTEXT, ballot.ciphertext)
        peers = channel.collect(relay_channel.CIPHERTEXT, locality_size)
        output = self.aggregate(peers)
        channel.emit(relay_channel.LOCALITY_PRODUCT, output.locality_product)
        return ballot, output


class ShareCheck(ABC):
    """Decides whether a remote share carries exactly one vote"""

    @abstractmethod
    def validate(self, share: Share) -> bool:
        pass


class TrialDecryptionCheck(ShareCheck):
    """Validator holding the private key: decrypt and inspect the plaintext"""

    def __init__(self, cipher_space: CipherSpace, codec: VoteCodec):
        if cipher_space.private_key is None:
            raise ValueError("Trial decryption needs the authority private key")
        self.cipher_space = cipher_space
        self.codec = codec

    def validate(self, share: Share) -> bool:
        return self.codec.is_single_vote(self.cipher_space.decrypt(share.ciphertext))


class ProofCheck(ShareCheck):
    """Validator without the private key: verify the attached proof"""

    def __init__(self, cipher_space: CipherSpace, codec: VoteCodec, proof_challenge_bits: int):
        self.cipher_space = cipher_space
        self.allowed = codec.single_vote_values()
        self.challenge_bits = challenge_width(cipher_space, proof_challenge_bits)

    def validate(self, share: Share) -> bool:
        if share.proof is None:
            return False
        return verify_single_vote(self.cipher_space, share.ciphertext, share.proof,
                                  self.allowed, self.challenge_bits)


class Validator:
    """Filters remote shares; performs no combination"""

    def __init__(self, parameters: ElectionParameters, cipher_space: CipherSpace, check: ShareCheck):
        self.parameters = parameters
        self.cipher_space = cipher_space
        self.check = check
        self.state = ValidatorState.START

    def check_share(self, share: Share):
        """Raise unless share is well formed and passes the single-vote check"""
        if not self.cipher_space.is_well_formed(share.ciphertext):
            raise MalformedCiphertext(share.ciphertext)
        if not self.check.validate(share):
            raise RejectedShare(share.ciphertext)

    def validate(self, shares: Sequence[Union[int, Share]]) -> ValidatorOutput:
        _require("Validator", self.state, ValidatorState.START, ValidatorState.COLLECT_SHARES)
        self.state = ValidatorState.VALIDATE_EACH

        accepted, rejected = [], []
        for share in map(as_share, shares):
            try:
                self.check_share(share)
            except (MalformedCiphertext, RejectedShare) as e:
                logger.warning("Validator: %s", e)
                rejected.append(share)
            else:
                accepted.append(share)

        self.state = ValidatorState.DONE
        logger.info("Validator: accepted %d of %d shares", len(accepted), len(accepted) + len(rejected))
        return ValidatorOutput(tuple(accepted), tuple(rejected))

    def run(self, channel: Channel, share_count: Optional[int] = None) -> ValidatorOutput:
        """Collect cMi, publish the accepted ones"""
        _require("Validator", self.state, ValidatorState.START)
        self.state = ValidatorState.COLLECT_SHARES
        shares = channel.collect(relay_channel.REMOTE_SHARE, share_count)
        output = self.validate(shares)
        for share in output.accepted:
            channel.emit(relay_channel.ACCEPTED_SHARE, share.ciphertext)
        return output


class Combiner:
    """Combines, decrypts and decodes the final tally"""

    def __init__(self, parameters: ElectionParameters, cipher_space: CipherSpace, codec: VoteCodec):
        if cipher_space.private_key is None:
            raise ValueError("Combiner needs the authority private key")
        self.parameters = parameters
        self.cipher_space = cipher_space
        self.codec = codec
        self.state = CombinerState.START

    def combine(self, locality_product: int,
                accepted: Sequence[Union[int, Share]] = ()) -> CombinerOutput:
        """prod(c) = Mul(c) * cMi_1 * ... * cMi_m, then decrypt and decode"""
        _require("Combiner", self.state, CombinerState.START)

        self.state = CombinerState.COMBINE
        ciphertexts = [locality_product] + [as_share(s).ciphertext for s in accepted]
        try:
            product = self.cipher_space.combine_all(ciphertexts)
        except MalformedCiphertext as e:
            raise DecryptionError(f"prod(c) is outside the ciphertext space: {e}") from e

        self.state = CombinerState.DECRYPT
        plaintext = self.cipher_space.decrypt(product)

        self.state = CombinerState.DECODE
        tally = tuple(self.codec.decode_tally(plaintext))

        self.state = CombinerState.DONE
        logger.info("Combiner: decoded tally %s from %d ciphertexts", list(tally), len(ciphertexts))
        return CombinerOutput(product, plaintext, tally)

    def run(self, channel: Channel, share_count: Optional[int] = None) -> CombinerOutput:
        """Collect Mul(c) and accepted cMi, publish prod(c), m and the tally"""
        _require("Combiner", self.state, CombinerState.START)
        locality_product = channel.collect(relay_channel.LOCALITY_PRODUCT, 1)[0]
        accepted = channel.collect(relay_channel.ACCEPTED_SHARE, share_count)
        output = self.combine(locality_product, accepted)
        channel.emit(relay_channel.FINAL_PRODUCT, output.product)
        channel.emit(relay_channel.PLAINTEXT, output.plaintext)
        channel.emit(relay_channel.TALLY, list(output.tally))
        return output
