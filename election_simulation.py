"""
In-memory election run across several localities.

Stands in for the collaborators that sit around the core: a stand-in
authority key, one relay channel per locality and the operator who
copies each locality product to the other localities.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import relay_channel
from election_config import VotingSystemConfig
from errors import InvalidParameters
from paillier import CipherSpace, PrivateKey, generate_random_prime
from parameters import ElectionParameters
from relay_channel import MemoryChannel
from vote_codec import VoteCodec
from voting_roles import (
    Ballot, Caster, CasterOutput, Combiner, CombinerOutput, ProofCheck, Share,
    TrialDecryptionCheck, Validator, ValidatorOutput
)

logger = logging.getLogger(__name__)

VALIDATION_MODES = ("trial", "proof")


@dataclass
class LocalityReport:
    """Everything one locality produced during the run"""
    name: str
    ballots: List[Ballot]
    caster_output: CasterOutput
    validator_output: ValidatorOutput
    combiner_output: CombinerOutput


def stand_in_authority(config: VotingSystemConfig, attempts: int = 100) -> PrivateKey:
    """Generate a toy authority key whose modulus holds the configured tally"""
    crypto = config.crypto
    for _ in range(attempts):
        p = generate_random_prime(crypto.PRIME_MIN_VAL, crypto.PRIME_MAX_VAL)
        q = generate_random_prime(crypto.PRIME_MIN_VAL, crypto.PRIME_MAX_VAL)
        if p == q:
            continue
        try:
            key = PrivateKey.from_primes(p, q)
            config.election.MODULUS = key.public_key.n
            ElectionParameters.from_config(config.election)
        except InvalidParameters:
            continue
        logger.info("Simulation: stand-in authority modulus N = %d", key.public_key.n)
        return key
    raise InvalidParameters("Prime range cannot produce a modulus large enough for this election")


def _cast_locality(parameters: ElectionParameters, cipher_space: CipherSpace, codec: VoteCodec,
                   choices: Sequence[int], channel: MemoryChannel,
                   proof_bits: Optional[int]):
    """Run one caster per choice, each as its own instance"""
    casters = [Caster(parameters, cipher_space, codec, proof_bits) for _ in choices]
    with ThreadPoolExecutor(max_workers=max(1, len(casters))) as pool:
        futures = [
            pool.submit(caster.run, choice, channel, len(choices))
            for caster, choice in zip(casters, choices)
        ]
        results = [f.result() for f in futures]
    ballots = [ballot for ballot, _ in results]
    return ballots, results[0][1]


def run_election_simulation(localities: Dict[str, Sequence[int]],
                            config: Optional[VotingSystemConfig] = None,
                            private_key: Optional[PrivateKey] = None,
                            validation: str = "trial",
                            injected_shares: Sequence = ()) -> Dict[str, LocalityReport]:
    """Run complete three-phase election simulation"""
    if validation not in VALIDATION_MODES:
        raise ValueError(f"Validation mode must be one of {VALIDATION_MODES}")
    if not localities or any(not choices for choices in localities.values()):
        raise ValueError("Every locality needs at least one caster")

    config = config or VotingSystemConfig()
    if private_key is None:
        private_key = stand_in_authority(config)
    else:
        config.election.MODULUS = private_key.public_key.n

    parameters = ElectionParameters.from_config(config.election)
    public_space = CipherSpace(private_key.public_key)
    authority_space = CipherSpace(private_key.public_key, private_key)
    codec = VoteCodec(parameters)
    # Casters of a locality wait on each other's ci, so every choice is checked up front
    for choices in localities.values():
        for choice in choices:
            codec.encode_vote(choice)
    proof_bits = config.crypto.PROOF_CHALLENGE_BITS if validation == "proof" else None
    show = config.system.SHOW_INTERMEDIATE_RESULTS

    print("=" * 60)
    print("HOMOMORPHIC TALLY SIMULATION")
    print("=" * 60)
    print(f"N = {parameters.modulus}, {parameters.candidate_count} candidates, "
          f"{parameters.bits_per_candidate} bits per candidate, slot order {parameters.slot_order}")

    print(f"\nPhase 1: Casting")
    print("-" * 30)
    channels = {name: MemoryChannel() for name in localities}
    cast = {}
    for name, choices in localities.items():
        cast[name] = _cast_locality(parameters, public_space, codec, choices, channels[name], proof_bits)
        print(f"Locality {name}: {len(choices)} votes cast")
        if show:
            print(f"  Mul(c) = {cast[name][1].locality_product}")

    # Operator relay: every locality product goes to every other locality
    for name, channel in channels.items():
        for other, (ballots, output) in cast.items():
            if other == name:
                continue
            proof = ballots[0].proof if len(ballots) == 1 else None
            channel.emit(relay_channel.REMOTE_SHARE, Share(output.locality_product, proof))
        for value in injected_shares:
            channel.emit(relay_channel.REMOTE_SHARE, value)

    print(f"\nPhase 2: Validation ({validation})")
    print("-" * 30)
    if validation == "trial":
        check = TrialDecryptionCheck(authority_space, codec)
    else:
        check = ProofCheck(public_space, codec, config.crypto.PROOF_CHALLENGE_BITS)
    validated = {}
    for name, channel in channels.items():
        validated[name] = Validator(parameters, public_space, check).run(channel)
        print(f"Locality {name}: accepted {len(validated[name].accepted)} shares, "
              f"rejected {len(validated[name].rejected)}")

    print(f"\nPhase 3: Combining")
    print("-" * 30)
    reports = {}
    for name, channel in channels.items():
        combined = Combiner(parameters, authority_space, codec).run(channel)
        if show:
            print(f"Locality {name}: prod(c) = {combined.product}, m = {combined.plaintext}")
        print(f"Locality {name}: tally = {list(combined.tally)}")
        ballots, caster_output = cast[name]
        reports[name] = LocalityReport(name, ballots, caster_output, validated[name], combined)

    return reports
