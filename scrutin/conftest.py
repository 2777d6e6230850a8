from typing import Callable, Dict, List, Tuple

import pytest

from scrutin.auxiliary import RsaAuxiliaryChannel
from scrutin.ballot import BallotBoxState, SubmittedBallot
from scrutin.config import CeremonyDetails
from scrutin.context import CiphertextElectionContext, make_ciphertext_election_context
from scrutin.encrypt import (
    BallotEncrypter,
    ContestDescription,
    EncryptionDevice,
    PlaintextBallot,
    SelectionDescription,
)
from scrutin.guardian import Guardian
from scrutin.hash import hash_elems
from scrutin.key_ceremony import ElectionJointKey
from scrutin.logs import configure_logging
from scrutin.mediator import KeyCeremonyMediator
from scrutin.tally import CiphertextTally

NUMBER_OF_GUARDIANS = 5
QUORUM = 3

configure_logging("DEBUG")


@pytest.fixture(scope="session")
def channel() -> RsaAuxiliaryChannel:
    # 2048 bits : le plus petit module OAEP-SHA256 qui contienne une valeur de Z_q en hexadécimal
    return RsaAuxiliaryChannel(key_size=2048)


@pytest.fixture(scope="session")
def ceremony_details() -> CeremonyDetails:
    return CeremonyDetails(number_of_guardians=NUMBER_OF_GUARDIANS, quorum=QUORUM)


@pytest.fixture(scope="session")
def new_guardians(channel, ceremony_details) -> List[Guardian]:
    """Gardiens fraîchement créés ; les instantanés sont immuables donc partageables"""
    return [
        Guardian.create(f"gardien-{i}", i, ceremony_details, channel)
        for i in range(1, NUMBER_OF_GUARDIANS + 1)
    ]


@pytest.fixture(scope="session")
def start_ceremony(new_guardians, ceremony_details, channel) -> Callable[..., KeyCeremonyMediator]:
    """Annonce les gardiens et distribue les sauvegardes, sans les vérifier"""

    def start(**kwargs) -> KeyCeremonyMediator:
        mediator = KeyCeremonyMediator(ceremony_details, channel, **kwargs)
        for guardian in new_guardians:
            mediator.announce(guardian)
        mediator.orchestrate()
        return mediator

    return start


@pytest.fixture(scope="session")
def ceremony(start_ceremony) -> Tuple[KeyCeremonyMediator, ElectionJointKey]:
    mediator = start_ceremony()
    assert mediator.verify() == []
    joint_key = mediator.publish_joint_key()
    assert joint_key is not None
    return mediator, joint_key


@pytest.fixture(scope="session")
def contest_descriptions() -> List[ContestDescription]:
    return [
        ContestDescription(
            "maire",
            1,
            1,
            (
                SelectionDescription("maire-dupont", 1, "dupont"),
                SelectionDescription("maire-martin", 2, "martin"),
                SelectionDescription("maire-bernard", 3, "bernard"),
            ),
        ),
        ContestDescription(
            "conseil",
            2,
            2,
            (
                SelectionDescription("conseil-petit", 1, "petit"),
                SelectionDescription("conseil-durand", 2, "durand"),
                SelectionDescription("conseil-leroy", 3, "leroy"),
            ),
        ),
    ]


@pytest.fixture(scope="session")
def context(ceremony, ceremony_details, contest_descriptions) -> CiphertextElectionContext:
    _, joint_key = ceremony
    description_hash = hash_elems("scrutin-de-test", contest_descriptions)
    return make_ciphertext_election_context(ceremony_details, joint_key, description_hash)


PLAINTEXT_BALLOTS = [
    (
        PlaintextBallot(
            "b-1",
            "style-1",
            {"maire": {"maire-dupont": 1}, "conseil": {"conseil-petit": 1, "conseil-durand": 1}},
        ),
        BallotBoxState.CAST,
    ),
    (
        PlaintextBallot(
            "b-2", "style-1", {"maire": {"maire-martin": 1}, "conseil": {"conseil-petit": 1}}
        ),
        BallotBoxState.CAST,
    ),
    (
        PlaintextBallot(
            "b-3",
            "style-1",
            {"maire": {"maire-dupont": 1}, "conseil": {"conseil-durand": 1, "conseil-leroy": 1}},
        ),
        BallotBoxState.CAST,
    ),
    (
        PlaintextBallot(
            "b-4", "style-1", {"maire": {"maire-bernard": 1}, "conseil": {"conseil-leroy": 1}}
        ),
        BallotBoxState.SPOILED,
    ),
]


@pytest.fixture(scope="session")
def expected_tally() -> Dict[str, Dict[str, int]]:
    """Décompte attendu des bulletins CAST"""
    return {
        "maire": {"maire-dupont": 2, "maire-martin": 1, "maire-bernard": 0},
        "conseil": {"conseil-petit": 2, "conseil-durand": 2, "conseil-leroy": 1},
    }


@pytest.fixture(scope="session")
def expected_spoiled() -> Dict[str, Dict[str, Dict[str, int]]]:
    return {
        "b-4": {
            "maire": {"maire-dupont": 0, "maire-martin": 0, "maire-bernard": 1},
            "conseil": {"conseil-petit": 0, "conseil-durand": 0, "conseil-leroy": 1},
        }
    }


@pytest.fixture(scope="session")
def submitted_ballots(context, contest_descriptions) -> List[SubmittedBallot]:
    encrypter = BallotEncrypter(context, contest_descriptions, EncryptionDevice(1, "bureau-1"))
    return [
        SubmittedBallot(encrypter.encrypt(ballot), state)
        for ballot, state in PLAINTEXT_BALLOTS
    ]


@pytest.fixture(scope="session")
def ciphertext_tally(submitted_ballots, contest_descriptions) -> CiphertextTally:
    tally = CiphertextTally("décompte", contest_descriptions)
    for ballot in submitted_ballots:
        assert tally.append(ballot)
    return tally
