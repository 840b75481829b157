"""
Configuration module for the homomorphic tally system.

This module contains the configurable parameters of one election
together with the cryptographic and system settings, and loads or
stores them as JSON so every role instance reads the same values.
"""

import json
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

SLOT_ORDERS = ("index_low", "index_high")


@dataclass
class CryptoConfig:
    """Cryptographic configuration parameters"""

    # Prime range for the simulation's stand-in authority
    PRIME_MIN_VAL: int = 1000
    PRIME_MAX_VAL: int = 5000

    # Upper bound on Fiat-Shamir challenge width
    PROOF_CHALLENGE_BITS: int = 128


@dataclass
class SystemConfig:
    """System-wide configuration parameters"""

    # Logging and output
    VERBOSE_OUTPUT: bool = True
    LOG_CRYPTO_OPERATIONS: bool = False
    SHOW_INTERMEDIATE_RESULTS: bool = True

    # Validation parameters
    MAX_VOTERS: int = 10000
    MIN_VOTERS: int = 1


@dataclass
class ElectionConfig:
    """Per-election parameters, fixed before any role starts"""

    MODULUS: int = 0  # authority public key N, 0 until supplied
    VOTER_COUNT: int = 16
    CANDIDATE_COUNT: int = 3
    CHOSEN_CANDIDATE: int = 0
    RANDOMNESS_BITS: int = 14
    SLOT_ORDER: str = "index_low"
    BITS_PER_CANDIDATE: Optional[int] = None  # None derives it from VOTER_COUNT


class VotingSystemConfig:
    """Main configuration class combining all config sections"""

    def __init__(self):
        self.crypto = CryptoConfig()
        self.system = SystemConfig()
        self.election = ElectionConfig()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization"""
        return {
            'crypto': {
                'prime_min_val': self.crypto.PRIME_MIN_VAL,
                'prime_max_val': self.crypto.PRIME_MAX_VAL,
                'proof_challenge_bits': self.crypto.PROOF_CHALLENGE_BITS,
            },
            'system': {
                'verbose_output': self.system.VERBOSE_OUTPUT,
                'log_crypto_operations': self.system.LOG_CRYPTO_OPERATIONS,
                'show_intermediate_results': self.system.SHOW_INTERMEDIATE_RESULTS,
                'max_voters': self.system.MAX_VOTERS,
                'min_voters': self.system.MIN_VOTERS,
            },
            'election': {
                'modulus': self.election.MODULUS,
                'voter_count': self.election.VOTER_COUNT,
                'candidate_count': self.election.CANDIDATE_COUNT,
                'chosen_candidate': self.election.CHOSEN_CANDIDATE,
                'randomness_bits': self.election.RANDOMNESS_BITS,
                'slot_order': self.election.SLOT_ORDER,
                'bits_per_candidate': self.election.BITS_PER_CANDIDATE,
            }
        }

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'VotingSystemConfig':
        """Create configuration from dictionary"""
        config = cls()

        if 'crypto' in config_dict:
            crypto_config = config_dict['crypto']
            config.crypto.PRIME_MIN_VAL = crypto_config.get('prime_min_val', config.crypto.PRIME_MIN_VAL)
            config.crypto.PRIME_MAX_VAL = crypto_config.get('prime_max_val', config.crypto.PRIME_MAX_VAL)
            config.crypto.PROOF_CHALLENGE_BITS = crypto_config.get('proof_challenge_bits', config.crypto.PROOF_CHALLENGE_BITS)

        if 'system' in config_dict:
            system_config = config_dict['system']
            config.system.VERBOSE_OUTPUT = system_config.get('verbose_output', config.system.VERBOSE_OUTPUT)
            config.system.LOG_CRYPTO_OPERATIONS = system_config.get('log_crypto_operations', config.system.LOG_CRYPTO_OPERATIONS)
            config.system.SHOW_INTERMEDIATE_RESULTS = system_config.get('show_intermediate_results', config.system.SHOW_INTERMEDIATE_RESULTS)
            config.system.MAX_VOTERS = system_config.get('max_voters', config.system.MAX_VOTERS)
            config.system.MIN_VOTERS = system_config.get('min_voters', config.system.MIN_VOTERS)

        if 'election' in config_dict:
            election_config = config_dict['election']
            config.election.MODULUS = election_config.get('modulus', config.election.MODULUS)
            config.election.VOTER_COUNT = election_config.get('voter_count', config.election.VOTER_COUNT)
            config.election.CANDIDATE_COUNT = election_config.get('candidate_count', config.election.CANDIDATE_COUNT)
            config.election.CHOSEN_CANDIDATE = election_config.get('chosen_candidate', config.election.CHOSEN_CANDIDATE)
            config.election.RANDOMNESS_BITS = election_config.get('randomness_bits', config.election.RANDOMNESS_BITS)
            config.election.SLOT_ORDER = election_config.get('slot_order', config.election.SLOT_ORDER)
            config.election.BITS_PER_CANDIDATE = election_config.get('bits_per_candidate', config.election.BITS_PER_CANDIDATE)

        return config

    def validate(self) -> bool:
        """Validate configuration parameters that do not depend on the modulus"""
        try:
            # Validate crypto parameters
            assert self.crypto.PRIME_MIN_VAL > 2, "Prime min value must be greater than 2"
            assert self.crypto.PRIME_MAX_VAL > self.crypto.PRIME_MIN_VAL, "Prime max must be greater than min"
            assert self.crypto.PROOF_CHALLENGE_BITS >= 1, "Proof challenge must have at least one bit"

            # Validate system parameters
            assert self.system.MAX_VOTERS > 0, "Max voters must be positive"
            assert self.system.MIN_VOTERS > 0, "Min voters must be positive"
            assert self.system.MAX_VOTERS >= self.system.MIN_VOTERS, "Max voters must be >= min voters"

            # Validate election parameters
            assert self.system.MIN_VOTERS <= self.election.VOTER_COUNT <= self.system.MAX_VOTERS, \
                "Voter count outside allowed range"
            assert self.election.CANDIDATE_COUNT > 0, "Candidate count must be positive"
            assert self.election.RANDOMNESS_BITS >= 2, "Randomness width too small"
            assert self.election.SLOT_ORDER in SLOT_ORDERS, f"Slot order must be one of {SLOT_ORDERS}"
            if self.election.BITS_PER_CANDIDATE is not None:
                assert self.election.BITS_PER_CANDIDATE > 0, "Bits per candidate must be positive"

            return True

        except AssertionError as e:
            logger.error("Configuration validation failed: %s", e)
            return False


def load_config(path: str) -> VotingSystemConfig:
    """Read a configuration file written by save_config"""
    with open(path, 'r', encoding='utf-8') as f:
        return VotingSystemConfig.from_dict(json.load(f))


def save_config(config: VotingSystemConfig, path: str):
    """Write configuration as JSON"""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)
        f.write('\n')
