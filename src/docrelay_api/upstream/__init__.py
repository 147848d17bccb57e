from docrelay_api.upstream.client import UpstreamClient, UpstreamStream
from docrelay_api.upstream.challenge import ChallengeSolver, ChallengeVerifier

__all__ = [
    "ChallengeSolver",
    "ChallengeVerifier",
    "UpstreamClient",
    "UpstreamStream",
]
