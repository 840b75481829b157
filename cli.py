#!/usr/bin/env python3
"""
Console front end for the three voting roles.

Each role runs as its own process; the operator copies printed values
(ci, Mul(c), cMi) from one console into the next.

Usage:
    homomorphic-tally init-config election.json --modulus N
    homomorphic-tally cast --config election.json [--candidate I]
    homomorphic-tally validate --config election.json --key key.json
    homomorphic-tally combine --config election.json --key key.json
    homomorphic-tally simulate --locality A=0,0,2 --locality B=1
"""

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional

import relay_channel
from election_config import SLOT_ORDERS, SystemConfig, VotingSystemConfig, load_config, save_config
from election_simulation import VALIDATION_MODES, run_election_simulation
from errors import InvalidCandidate, InvalidParameters, VotingError
from paillier import CipherSpace, PrivateKey, PublicKey
from parameters import ElectionParameters
from relay_channel import ConsoleChannel
from single_vote_proof import SingleVoteProof
from vote_codec import VoteCodec
from voting_roles import Caster, Combiner, ProofCheck, Share, TrialDecryptionCheck, Validator


def configure_logging(system: SystemConfig):
    """Map the system output flags to a logging level"""
    if system.LOG_CRYPTO_OPERATIONS:
        level = logging.DEBUG
    elif system.VERBOSE_OUTPUT:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def load_private_key(path: str) -> PrivateKey:
    """Read the authority key file {"p": ..., "q": ...}"""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return PrivateKey.from_primes(int(data['p']), int(data['q']))


def load_shares(path: str) -> List[Share]:
    """Read [{"ciphertext": ..., "proof": {...}}, ...]"""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return [
        Share(int(item['ciphertext']),
              SingleVoteProof.from_dict(item['proof']) if item.get('proof') else None)
        for item in data
    ]


def _setup(args, private_key: Optional[PrivateKey] = None):
    config = load_config(args.config)
    configure_logging(config.system)
    if not config.validate():
        raise InvalidParameters("Configuration failed validation")
    if private_key is not None:
        if config.election.MODULUS and config.election.MODULUS != private_key.public_key.n:
            raise InvalidParameters("Key file does not match the configured modulus")
        config.election.MODULUS = private_key.public_key.n
    parameters = ElectionParameters.from_config(config.election)
    cipher_space = CipherSpace(PublicKey(parameters.modulus), private_key)
    return config, parameters, cipher_space, VoteCodec(parameters)


def cmd_init_config(args) -> int:
    config = VotingSystemConfig()
    config.election.MODULUS = args.modulus
    config.election.VOTER_COUNT = args.voters
    config.election.CANDIDATE_COUNT = args.candidates
    config.election.CHOSEN_CANDIDATE = args.chosen
    config.election.RANDOMNESS_BITS = args.randomness_bits
    config.election.SLOT_ORDER = args.slot_order
    config.election.BITS_PER_CANDIDATE = args.bits_per_candidate
    if not config.validate():
        return 1
    if args.modulus:
        ElectionParameters.from_config(config.election)
    save_config(config, args.path)
    print(f"Configuration written to {args.path}")
    return 0


def cmd_cast(args) -> int:
    config, parameters, cipher_space, codec = _setup(args)
    channel = ConsoleChannel()
    proof_bits = config.crypto.PROOF_CHALLENGE_BITS if args.proof_out else None
    caster = Caster(parameters, cipher_space, codec, proof_bits)

    channel.emit(relay_channel.MODULUS, parameters.modulus)
    choice = args.candidate if args.candidate is not None else config.election.CHOSEN_CANDIDATE
    while True:
        try:
            ballot = caster.cast(choice)
            break
        except InvalidCandidate as e:
            print(e)
            line = input(f"Candidate index [0, {parameters.candidate_count}): ").strip()
            try:
                choice = int(line)
            except ValueError:
                choice = line

    channel.emit(relay_channel.NONCE, ballot.nonce)
    channel.emit(relay_channel.CIPHERTEXT, ballot.ciphertext)
    if args.proof_out:
        with open(args.proof_out, 'w', encoding='utf-8') as f:
            json.dump([{'ciphertext': ballot.ciphertext, 'proof': ballot.proof.to_dict()}], f, indent=2)
        print(f"Share with proof written to {args.proof_out}")

    peers = channel.collect(relay_channel.CIPHERTEXT, args.locality_size)
    output = caster.aggregate(peers)
    if output.dropped:
        print(f"Dropped {len(output.dropped)} malformed ciphertext(s)")
    channel.emit(relay_channel.LOCALITY_PRODUCT, output.locality_product)
    return 0


def cmd_validate(args) -> int:
    if args.shares:
        config, parameters, cipher_space, codec = _setup(args)
        check = ProofCheck(cipher_space, codec, config.crypto.PROOF_CHALLENGE_BITS)
        shares = load_shares(args.shares)
    elif args.key:
        config, parameters, cipher_space, codec = _setup(args, load_private_key(args.key))
        check = TrialDecryptionCheck(cipher_space, codec)
        shares = ConsoleChannel().collect(relay_channel.REMOTE_SHARE)
    else:
        print("validate needs --key (trial decryption) or --shares (proof check)")
        return 2

    public_space = CipherSpace(cipher_space.public_key)
    output = Validator(parameters, public_space, check).validate(shares)
    print(f"Accepted {len(output.accepted)} of {len(shares)} shares")
    ConsoleChannel().emit(relay_channel.ACCEPTED_SHARE, output.ciphertexts)
    return 0


def cmd_combine(args) -> int:
    config, parameters, cipher_space, codec = _setup(args, load_private_key(args.key))
    output = Combiner(parameters, cipher_space, codec).run(ConsoleChannel())
    for i, count in enumerate(output.tally):
        print(f"Candidate {i}: {count}")
    return 0


def _parse_localities(items: List[str]) -> Dict[str, List[int]]:
    localities = {}
    for item in items:
        name, _, choices = item.partition('=')
        if not choices:
            raise ValueError(f"Locality must look like NAME=0,1,2, got {item!r}")
        localities[name] = [int(c) for c in choices.split(',')]
    return localities


def cmd_simulate(args) -> int:
    config = load_config(args.config) if args.config else VotingSystemConfig()
    configure_logging(config.system)
    localities = _parse_localities(args.locality or ["A=0,0,2"])
    key = load_private_key(args.key) if args.key else None
    run_election_simulation(localities, config, key, validation=args.validation)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="homomorphic-tally",
                                     description="Homomorphic vote casting, validation and tallying")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-config", help="write an election configuration file")
    p.add_argument("path")
    p.add_argument("--modulus", type=int, default=0, help="authority public key N")
    p.add_argument("--voters", type=int, default=16)
    p.add_argument("--candidates", type=int, default=3)
    p.add_argument("--chosen", type=int, default=0, help="default candidate index for cast")
    p.add_argument("--randomness-bits", type=int, default=14)
    p.add_argument("--slot-order", choices=SLOT_ORDERS, default="index_low")
    p.add_argument("--bits-per-candidate", type=int, default=None)
    p.set_defaults(func=cmd_init_config)

    p = sub.add_parser("cast", help="phase 1: encrypt a vote and aggregate the locality")
    p.add_argument("--config", required=True)
    p.add_argument("--candidate", type=int, default=None)
    p.add_argument("--locality-size", type=int, default=None,
                   help="number of ci values to read (default: until empty line)")
    p.add_argument("--proof-out", default=None, help="write the ballot with a single-vote proof")
    p.set_defaults(func=cmd_cast)

    p = sub.add_parser("validate", help="phase 2: filter remote locality products")
    p.add_argument("--config", required=True)
    p.add_argument("--key", default=None, help="authority key file, enables trial decryption")
    p.add_argument("--shares", default=None, help="JSON shares with proofs, checked without the key")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("combine", help="phase 3: combine, decrypt and decode the tally")
    p.add_argument("--config", required=True)
    p.add_argument("--key", required=True)
    p.set_defaults(func=cmd_combine)

    p = sub.add_parser("simulate", help="run all roles in memory")
    p.add_argument("--config", default=None)
    p.add_argument("--key", default=None)
    p.add_argument("--locality", action="append", help="NAME=choice,choice,...")
    p.add_argument("--validation", choices=VALIDATION_MODES, default="trial")
    p.set_defaults(func=cmd_simulate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (VotingError, OSError, KeyError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
