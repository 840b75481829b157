"""
Error kinds raised by the homomorphic tally core.
"""


class VotingError(Exception):
    """Base class for all tally errors"""
    pass


class InvalidParameters(VotingError):
    """Election parameters violate a structural or capacity constraint"""
    pass


class InvalidCandidate(VotingError):
    """Candidate index outside [0, candidate_count)"""

    def __init__(self, index, candidate_count: int):
        super().__init__(f"Candidate index {index} outside [0, {candidate_count})")
        self.index = index
        self.candidate_count = candidate_count


class MalformedCiphertext(VotingError):
    """Value is not a member of the ciphertext space"""

    def __init__(self, value):
        super().__init__(f"Malformed ciphertext: {value!r}")
        self.value = value


class RejectedShare(VotingError):
    """Remote share failed the single-vote check"""

    def __init__(self, share):
        super().__init__(f"Rejected share: {share!r}")
        self.share = share


class DecryptionError(VotingError):
    """Ciphertext could not be decrypted"""
    pass
