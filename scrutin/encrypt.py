import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from scrutin.ballot import CiphertextBallot, CiphertextBallotContest, CiphertextBallotSelection
from scrutin.chaum_pedersen import make_constant_chaum_pedersen, make_disjunctive_chaum_pedersen
from scrutin.context import CiphertextElectionContext
from scrutin.elgamal import elgamal_add, elgamal_encrypt
from scrutin.errors import InvalidElementError
from scrutin.group import ElementModP, ElementModQ, add_q, rand_q
from scrutin.hash import hash_elems
from scrutin.nonces import Nonces
from scrutin.tracker import get_first_tracker_seed, get_hash_for_device, get_rotating_tracker_hash

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionDescription:
    """Description d'une sélection, fournie par le manifeste"""

    object_id: str
    sequence_order: int
    candidate_id: str

    def crypto_hash(self) -> ElementModQ:
        return hash_elems(self.object_id, self.sequence_order, self.candidate_id)


@dataclass(frozen=True)
class ContestDescription:
    """Description d'une contest, fournie par le manifeste"""

    object_id: str
    sequence_order: int
    votes_allowed: int
    selections: Tuple[SelectionDescription, ...]

    def crypto_hash(self) -> ElementModQ:
        return hash_elems(
            self.object_id, self.sequence_order, self.votes_allowed, list(self.selections)
        )

    def placeholder_selections(self) -> List[SelectionDescription]:
        """Une sélection fictive par vote autorisé, pour que le total soit toujours votes_allowed"""
        max_sequence = max((s.sequence_order for s in self.selections), default=0)
        return [
            SelectionDescription(
                f"{self.object_id}-{max_sequence + i}-placeholder",
                max_sequence + i,
                f"{self.object_id}-{max_sequence + i}-candidate",
            )
            for i in range(1, self.votes_allowed + 1)
        ]


@dataclass(frozen=True)
class EncryptionDevice:
    """Appareil de chiffrement ; son hachage amorce la chaîne des codes de suivi"""

    uuid: int
    location: str

    def get_hash(self) -> ElementModQ:
        return get_hash_for_device(self.uuid, self.location)


@dataclass(frozen=True)
class PlaintextBallot:
    """Bulletin en clair : votes 0/1 par contest puis par sélection"""

    object_id: str
    ballot_style: str
    contests: Mapping[str, Mapping[str, int]] = field(default_factory=dict)


def encrypt_selection(
    selection_description: SelectionDescription,
    vote: int,
    elgamal_public_key: ElementModP,
    crypto_extended_base_hash: ElementModQ,
    nonce_seed: ElementModQ,
    is_placeholder: bool = False,
    should_verify_proofs: bool = True,
) -> Optional[CiphertextBallotSelection]:
    """
    Chiffre une sélection et prouve qu'elle vaut 0 ou 1

    Args:
        selection_description: La description de la sélection
        vote: 0 ou 1
        elgamal_public_key: La clé publique de l'élection
        crypto_extended_base_hash: Le hachage de base étendu
        nonce_seed: La graine de nonces de la contest
        is_placeholder: True pour une sélection fictive
        should_verify_proofs: Vérifie la preuve produite

    Returns:
        Optional[CiphertextBallotSelection]: La sélection chiffrée, ou None en cas d'échec

    Raises:
        InvalidElementError: Si le vote n'est pas 0 ou 1
    """
    if vote not in (0, 1):
        raise InvalidElementError(f"Vote invalide pour {selection_description.object_id} : {vote}")

    description_hash = selection_description.crypto_hash()
    nonce_sequence = Nonces(description_hash, nonce_seed)
    selection_nonce = nonce_sequence.get(selection_description.sequence_order)
    proof_nonce = nonce_sequence.get(0)

    ciphertext = elgamal_encrypt(vote, selection_nonce, elgamal_public_key)
    if ciphertext is None:
        return None

    proof = make_disjunctive_chaum_pedersen(
        ciphertext, selection_nonce, elgamal_public_key, crypto_extended_base_hash, proof_nonce, vote
    )
    selection = CiphertextBallotSelection(
        selection_description.object_id,
        description_hash,
        ciphertext,
        hash_elems(selection_description.object_id, description_hash, ciphertext.crypto_hash()),
        is_placeholder,
        selection_nonce,
        proof,
    )

    if should_verify_proofs and not selection.is_valid_encryption(
        description_hash, elgamal_public_key, crypto_extended_base_hash
    ):
        logger.warning("Chiffrement invalide pour la sélection %s", selection.object_id)
        return None
    return selection


def encrypt_contest(
    contest_description: ContestDescription,
    votes: Mapping[str, int],
    elgamal_public_key: ElementModP,
    crypto_extended_base_hash: ElementModQ,
    nonce_seed: ElementModQ,
    should_verify_proofs: bool = True,
) -> Optional[CiphertextBallotContest]:
    """
    Chiffre une contest, complétée par des sélections fictives

    Les sélections fictives portent le total chiffré à exactement votes_allowed, ce que
    prouve la preuve de constante.

    Args:
        contest_description: La description de la contest
        votes: Votes par identifiant de sélection ; les sélections absentes valent 0
        elgamal_public_key: La clé publique de l'élection
        crypto_extended_base_hash: Le hachage de base étendu
        nonce_seed: La graine de nonces du bulletin
        should_verify_proofs: Vérifie les preuves produites

    Returns:
        Optional[CiphertextBallotContest]: La contest chiffrée, ou None en cas d'échec

    Raises:
        InvalidElementError: Si une sélection est inconnue ou en cas de survote
    """
    known = {s.object_id for s in contest_description.selections}
    unknown = set(votes) - known
    if unknown:
        raise InvalidElementError(f"Sélections inconnues : {sorted(unknown)}")

    selected = sum(votes.values())
    if selected > contest_description.votes_allowed:
        raise InvalidElementError(f"Survote dans la contest {contest_description.object_id}")

    contest_hash = contest_description.crypto_hash()
    nonce_sequence = Nonces(contest_hash, nonce_seed)
    contest_nonce = nonce_sequence.get(contest_description.sequence_order)
    chaum_pedersen_nonce = nonce_sequence.get(0)

    selections: List[CiphertextBallotSelection] = []
    for description in contest_description.selections:
        encrypted = encrypt_selection(
            description,
            votes.get(description.object_id, 0),
            elgamal_public_key,
            crypto_extended_base_hash,
            contest_nonce,
            should_verify_proofs=should_verify_proofs,
        )
        if encrypted is None:
            return None
        selections.append(encrypted)

    # Complète jusqu'à votes_allowed avec des sélections fictives à 1
    for description in contest_description.placeholder_selections():
        vote = 1 if selected < contest_description.votes_allowed else 0
        selected += vote
        encrypted = encrypt_selection(
            description,
            vote,
            elgamal_public_key,
            crypto_extended_base_hash,
            contest_nonce,
            is_placeholder=True,
            should_verify_proofs=should_verify_proofs,
        )
        if encrypted is None:
            return None
        selections.append(encrypted)

    encrypted_total = elgamal_add(*(s.ciphertext for s in selections))
    aggregate_nonce = add_q(*(s.nonce for s in selections))
    proof = make_constant_chaum_pedersen(
        encrypted_total,
        contest_description.votes_allowed,
        aggregate_nonce,
        elgamal_public_key,
        chaum_pedersen_nonce,
        crypto_extended_base_hash,
    )
    contest = CiphertextBallotContest(
        contest_description.object_id,
        contest_hash,
        tuple(selections),
        hash_elems(contest_description.object_id, contest_hash, [s.crypto_hash for s in selections]),
        encrypted_total,
        contest_nonce,
        proof,
    )

    if should_verify_proofs and not contest.is_valid_encryption(
        contest_hash, elgamal_public_key, crypto_extended_base_hash
    ):
        logger.warning("Chiffrement invalide pour la contest %s", contest.object_id)
        return None
    return contest


def encrypt_ballot(
    ballot: PlaintextBallot,
    contest_descriptions: Sequence[ContestDescription],
    context: CiphertextElectionContext,
    previous_tracking_hash: ElementModQ,
    nonce: Optional[ElementModQ] = None,
    timestamp: Optional[int] = None,
    should_verify_proofs: bool = True,
) -> Optional[CiphertextBallot]:
    """
    Chiffre un bulletin complet et le chaîne au code de suivi précédent

    Args:
        ballot: Le bulletin en clair
        contest_descriptions: Les contests du style de bulletin
        context: Le contexte cryptographique de l'élection
        previous_tracking_hash: Le code de suivi précédent de l'appareil
        nonce: Nonce maître ; aléatoire s'il est absent
        timestamp: Horodatage ; l'heure courante s'il est absent
        should_verify_proofs: Vérifie les preuves produites

    Returns:
        Optional[CiphertextBallot]: Le bulletin chiffré, ou None en cas d'échec
    """
    described = {c.object_id for c in contest_descriptions}
    unknown = set(ballot.contests) - described
    if unknown:
        raise InvalidElementError(f"Contests inconnues : {sorted(unknown)}")

    master_nonce = nonce if nonce is not None else rand_q()
    nonce_seed = hash_elems(context.description_hash, ballot.object_id, master_nonce)

    contests: List[CiphertextBallotContest] = []
    for description in contest_descriptions:
        encrypted = encrypt_contest(
            description,
            ballot.contests.get(description.object_id, {}),
            context.elgamal_public_key,
            context.crypto_extended_base_hash,
            nonce_seed,
            should_verify_proofs,
        )
        if encrypted is None:
            return None
        contests.append(encrypted)

    crypto_hash = hash_elems(
        ballot.object_id, context.description_hash, [c.crypto_hash for c in contests]
    )
    if timestamp is None:
        timestamp = int(time.time())
    tracking_hash = get_rotating_tracker_hash(previous_tracking_hash, timestamp, crypto_hash)

    return CiphertextBallot(
        ballot.object_id,
        ballot.ballot_style,
        context.description_hash,
        previous_tracking_hash,
        tuple(contests),
        tracking_hash,
        timestamp,
        crypto_hash,
        master_nonce,
    )


class BallotEncrypter:
    """Chiffre des bulletins successifs sur un appareil en chaînant leurs codes de suivi"""

    def __init__(
        self,
        context: CiphertextElectionContext,
        contest_descriptions: Sequence[ContestDescription],
        device: EncryptionDevice,
    ):
        self.context = context
        self.contest_descriptions = list(contest_descriptions)
        self.device = device
        self.tracking_hash = get_first_tracker_seed(
            context.crypto_extended_base_hash, device.get_hash()
        )
        self.encrypted: Dict[str, CiphertextBallot] = {}

    def encrypt(self, ballot: PlaintextBallot, nonce: Optional[ElementModQ] = None) -> Optional[CiphertextBallot]:
        encrypted = encrypt_ballot(
            ballot, self.contest_descriptions, self.context, self.tracking_hash, nonce
        )
        if encrypted is not None:
            self.tracking_hash = encrypted.tracking_hash
            self.encrypted[encrypted.object_id] = encrypted
        return encrypted
