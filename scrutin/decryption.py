import logging
from typing import Dict, Mapping, Optional, Tuple, Union

from scrutin.auxiliary import AuxiliaryChannel
from scrutin.ballot import SubmittedBallot
from scrutin.context import CiphertextElectionContext
from scrutin.decryption_share import (
    BallotDecryptionShare,
    CiphertextCompensatedDecryptionSelection,
    CiphertextDecryptionSelection,
    CompensatedBallotDecryptionShare,
    CompensatedTallyDecryptionShare,
    TallyDecryptionShare,
)
from scrutin.dlog import DiscreteLog
from scrutin.elgamal import ElGamalCiphertext
from scrutin.errors import DecryptionError, DiscreteLogError
from scrutin.group import ElementModP, ElementModQ, g_pow_p, mult_p, pow_p
from scrutin.guardian import Guardian
from scrutin.polynomial import compute_lagrange_coefficient
from scrutin.tally import CiphertextTally, PlaintextTallyContest, PlaintextTallySelection

logger = logging.getLogger(__name__)

# (clé publique du gardien, son partage)
GuardianShare = Tuple[ElementModP, CiphertextDecryptionSelection]


def _ballot_messages(ballot: SubmittedBallot) -> Dict[str, Dict[str, ElGamalCiphertext]]:
    """Chiffrés des sélections réelles d'un bulletin, par contest"""
    return {
        contest.object_id: {
            s.object_id: s.ciphertext
            for s in contest.ballot_selections
            if not s.is_placeholder_selection
        }
        for contest in ballot.contests
    }


def _tally_messages(tally: CiphertextTally) -> Dict[str, Dict[str, ElGamalCiphertext]]:
    return {
        contest_id: {s_id: s.ciphertext for s_id, s in contest.tally_selections.items()}
        for contest_id, contest in tally.contests.items()
    }


def _direct_shares(
    guardian: Guardian,
    messages: Mapping[str, Mapping[str, ElGamalCiphertext]],
    context: CiphertextElectionContext,
) -> Optional[Dict[str, Dict[str, CiphertextDecryptionSelection]]]:
    public_key = guardian.election_public_key()
    contests: Dict[str, Dict[str, CiphertextDecryptionSelection]] = {}
    for contest_id, selections in messages.items():
        contests[contest_id] = {}
        for selection_id, message in selections.items():
            share, proof = guardian.partially_decrypt(message, context.crypto_extended_base_hash)
            if not proof.is_valid(message, public_key, share, context.crypto_extended_base_hash):
                logger.warning("Preuve de %s invalide pour %s", guardian.object_id, selection_id)
                return None
            contests[contest_id][selection_id] = CiphertextDecryptionSelection(
                selection_id, guardian.object_id, share, proof=proof
            )
    return contests


def _compensated_shares(
    guardian: Guardian,
    missing_guardian_id: str,
    messages: Mapping[str, Mapping[str, ElGamalCiphertext]],
    context: CiphertextElectionContext,
    channel: AuxiliaryChannel,
) -> Optional[Dict[str, Dict[str, CiphertextCompensatedDecryptionSelection]]]:
    recovery_key = guardian.recovery_public_key_for(missing_guardian_id)
    contests: Dict[str, Dict[str, CiphertextCompensatedDecryptionSelection]] = {}
    for contest_id, selections in messages.items():
        contests[contest_id] = {}
        for selection_id, message in selections.items():
            compensated = guardian.compensate_decrypt(
                missing_guardian_id, message, context.crypto_extended_base_hash, channel
            )
            if compensated is None:
                logger.warning(
                    "%s ne peut pas compenser %s", guardian.object_id, missing_guardian_id
                )
                return None
            share, proof = compensated
            if not proof.is_valid(message, recovery_key, share, context.crypto_extended_base_hash):
                logger.warning(
                    "Preuve compensée de %s invalide pour %s", guardian.object_id, selection_id
                )
                return None
            contests[contest_id][selection_id] = CiphertextCompensatedDecryptionSelection(
                selection_id, guardian.object_id, missing_guardian_id, share, recovery_key, proof
            )
    return contests


def compute_decryption_share_for_ballot(
    guardian: Guardian, ballot: SubmittedBallot, context: CiphertextElectionContext
) -> Optional[BallotDecryptionShare]:
    contests = _direct_shares(guardian, _ballot_messages(ballot), context)
    if contests is None:
        return None
    return BallotDecryptionShare(
        guardian.object_id, guardian.election_public_key(), ballot.object_id, contests
    )


def compute_decryption_share(
    guardian: Guardian, tally: CiphertextTally, context: CiphertextElectionContext
) -> Optional[TallyDecryptionShare]:
    """
    Partages de déchiffrement d'un gardien présent pour le décompte et les bulletins SPOILED

    Args:
        guardian: Le gardien, clé conjointe calculée
        tally: Le décompte chiffré
        context: Le contexte de l'élection

    Returns:
        Optional[TallyDecryptionShare]: Les partages, ou None si une preuve est invalide
    """
    contests = _direct_shares(guardian, _tally_messages(tally), context)
    if contests is None:
        return None

    spoiled: Dict[str, BallotDecryptionShare] = {}
    for ballot_id, ballot in tally.spoiled_ballots.items():
        share = compute_decryption_share_for_ballot(guardian, ballot, context)
        if share is None:
            return None
        spoiled[ballot_id] = share

    return TallyDecryptionShare(guardian.object_id, guardian.election_public_key(), contests, spoiled)


def compute_compensated_decryption_share(
    guardian: Guardian,
    missing_guardian_id: str,
    tally: CiphertextTally,
    context: CiphertextElectionContext,
    channel: AuxiliaryChannel,
) -> Optional[CompensatedTallyDecryptionShare]:
    """
    Contributions d'un gardien présent au partage d'un gardien absent

    Args:
        guardian: Le gardien présent
        missing_guardian_id: Le gardien absent
        tally: Le décompte chiffré
        context: Le contexte de l'élection
        channel: Le canal auxiliaire, pour déchiffrer la sauvegarde reçue de l'absent

    Returns:
        Optional[CompensatedTallyDecryptionShare]: Les contributions, ou None si la
        sauvegarde est inutilisable
    """
    contests = _compensated_shares(
        guardian, missing_guardian_id, _tally_messages(tally), context, channel
    )
    if contests is None:
        return None

    spoiled: Dict[str, CompensatedBallotDecryptionShare] = {}
    for ballot_id, ballot in tally.spoiled_ballots.items():
        ballot_contests = _compensated_shares(
            guardian, missing_guardian_id, _ballot_messages(ballot), context, channel
        )
        if ballot_contests is None:
            return None
        spoiled[ballot_id] = CompensatedBallotDecryptionShare(
            guardian.object_id,
            missing_guardian_id,
            guardian.recovery_public_key_for(missing_guardian_id),
            ballot_id,
            ballot_contests,
        )

    return CompensatedTallyDecryptionShare(
        guardian.object_id,
        missing_guardian_id,
        guardian.recovery_public_key_for(missing_guardian_id),
        contests,
        spoiled,
    )


def compute_lagrange_coefficients_for_guardians(
    sequence_orders: Mapping[str, int]
) -> Dict[str, ElementModQ]:
    """
    Coefficients de Lagrange en 0 pour les gardiens présents

    Les nœuds d'interpolation sont les numéros de séquence, jamais les identifiants.
    """
    return {
        guardian_id: compute_lagrange_coefficient(
            sequence_order,
            *[other for other_id, other in sequence_orders.items() if other_id != guardian_id],
        )
        for guardian_id, sequence_order in sequence_orders.items()
    }


def _reconstruct_contests(
    missing_guardian_id: str,
    contests: Mapping[str, Mapping[str, ElGamalCiphertext]],
    parts_by_guardian: Mapping[str, Mapping[str, Mapping[str, CiphertextCompensatedDecryptionSelection]]],
    lagrange_coefficients: Mapping[str, ElementModQ],
) -> Dict[str, Dict[str, CiphertextDecryptionSelection]]:
    reconstructed: Dict[str, Dict[str, CiphertextDecryptionSelection]] = {}
    for contest_id, selections in contests.items():
        reconstructed[contest_id] = {}
        for selection_id in selections:
            parts = {
                guardian_id: guardian_contests[contest_id][selection_id]
                for guardian_id, guardian_contests in parts_by_guardian.items()
            }
            # Π share_l^w_l
            share = mult_p(
                *[pow_p(part.share, lagrange_coefficients[guardian_id]) for guardian_id, part in parts.items()]
            )
            reconstructed[contest_id][selection_id] = CiphertextDecryptionSelection(
                selection_id, missing_guardian_id, share, recovered_parts=parts
            )
    return reconstructed


def reconstruct_decryption_share(
    missing_guardian_id: str,
    public_key: ElementModP,
    tally: CiphertextTally,
    shares: Mapping[str, CompensatedTallyDecryptionShare],
    lagrange_coefficients: Mapping[str, ElementModQ],
) -> TallyDecryptionShare:
    """
    Reconstitue le partage d'un gardien absent à partir des contributions compensées

    Args:
        missing_guardian_id: Le gardien absent
        public_key: Sa clé publique d'élection
        tally: Le décompte chiffré
        shares: Les contributions, par gardien présent
        lagrange_coefficients: Les coefficients des gardiens présents

    Returns:
        TallyDecryptionShare: Le partage reconstitué, chaque sélection portant ses parts

    Raises:
        DecryptionError: Si une contribution ou un coefficient manque
    """
    if set(shares) != set(lagrange_coefficients):
        raise DecryptionError(f"Contributions incomplètes pour {missing_guardian_id}")

    contests = _reconstruct_contests(
        missing_guardian_id,
        _tally_messages(tally),
        {guardian_id: share.contests for guardian_id, share in shares.items()},
        lagrange_coefficients,
    )

    spoiled: Dict[str, BallotDecryptionShare] = {}
    for ballot_id, ballot in tally.spoiled_ballots.items():
        spoiled[ballot_id] = BallotDecryptionShare(
            missing_guardian_id,
            public_key,
            ballot_id,
            _reconstruct_contests(
                missing_guardian_id,
                _ballot_messages(ballot),
                {
                    guardian_id: share.spoiled_ballots[ballot_id].contests
                    for guardian_id, share in shares.items()
                },
                lagrange_coefficients,
            ),
        )

    return TallyDecryptionShare(missing_guardian_id, public_key, contests, spoiled)


def decrypt_selection_with_decryption_shares(
    object_id: str,
    message: ElGamalCiphertext,
    shares: Mapping[str, GuardianShare],
    extended_base_hash: ElementModQ,
    dlog: DiscreteLog,
) -> PlaintextTallySelection:
    """
    Combine les partages de tous les gardiens et déchiffre la sélection

    Chaque preuve directe et chaque part compensée doit être valide, sinon la sélection
    entière est rejetée.

    Args:
        object_id: L'identifiant de la sélection
        message: Le chiffré accumulé
        shares: Par gardien, sa clé publique et son partage
        extended_base_hash: Le hachage de base étendu
        dlog: La table de logarithmes discrets de la session

    Returns:
        PlaintextTallySelection: Le décompte, g^décompte et les partages

    Raises:
        DecryptionError: Si un partage est invalide ou si le logarithme discret échoue
    """
    for guardian_id, (public_key, share) in shares.items():
        if not share.is_valid(message, public_key, extended_base_hash):
            raise DecryptionError(f"Partage invalide de {guardian_id} pour {object_id}")

    product = mult_p(*[share.share for _, share in shares.values()])
    try:
        tally = message.decrypt_known_product(product, dlog)
    except DiscreteLogError as e:
        raise DecryptionError(f"Déchiffrement impossible de {object_id}") from e

    return PlaintextTallySelection(
        object_id,
        tally,
        g_pow_p(tally),
        message,
        tuple(share for _, share in shares.values()),
    )


def _decrypt_contests(
    messages: Mapping[str, Mapping[str, ElGamalCiphertext]],
    shares: Mapping[str, Union[TallyDecryptionShare, BallotDecryptionShare]],
    extended_base_hash: ElementModQ,
    dlog: DiscreteLog,
) -> Dict[str, PlaintextTallyContest]:
    contests: Dict[str, PlaintextTallyContest] = {}
    for contest_id, selections in messages.items():
        plaintext: Dict[str, PlaintextTallySelection] = {}
        for selection_id, message in selections.items():
            try:
                selection_shares = {
                    guardian_id: (share.public_key, share.contests[contest_id][selection_id])
                    for guardian_id, share in shares.items()
                }
            except KeyError as e:
                raise DecryptionError(f"Partage manquant pour {selection_id}") from e
            plaintext[selection_id] = decrypt_selection_with_decryption_shares(
                selection_id, message, selection_shares, extended_base_hash, dlog
            )
        contests[contest_id] = PlaintextTallyContest(contest_id, plaintext)
    return contests


def decrypt_ballot(
    ballot: SubmittedBallot,
    shares: Mapping[str, BallotDecryptionShare],
    extended_base_hash: ElementModQ,
    dlog: DiscreteLog,
) -> Dict[str, PlaintextTallyContest]:
    """Déchiffre un bulletin SPOILED à partir des partages de tous les gardiens"""
    return _decrypt_contests(_ballot_messages(ballot), shares, extended_base_hash, dlog)


def decrypt_tally(
    tally: CiphertextTally,
    shares: Mapping[str, TallyDecryptionShare],
    extended_base_hash: ElementModQ,
    dlog: DiscreteLog,
) -> Tuple[Dict[str, PlaintextTallyContest], Dict[str, Dict[str, PlaintextTallyContest]]]:
    """
    Déchiffre le décompte et les bulletins SPOILED

    Args:
        tally: Le décompte chiffré
        shares: Le partage de chaque gardien, direct ou reconstitué
        extended_base_hash: Le hachage de base étendu
        dlog: La table de logarithmes discrets de la session

    Returns:
        Tuple: Les contests déchiffrées et, par bulletin SPOILED, ses contests déchiffrées

    Raises:
        DecryptionError: Si une sélection ne peut pas être déchiffrée
    """
    contests = _decrypt_contests(_tally_messages(tally), shares, extended_base_hash, dlog)

    spoiled: Dict[str, Dict[str, PlaintextTallyContest]] = {}
    for ballot_id, ballot in tally.spoiled_ballots.items():
        try:
            ballot_shares = {
                guardian_id: share.spoiled_ballots[ballot_id] for guardian_id, share in shares.items()
            }
        except KeyError as e:
            raise DecryptionError(f"Partage manquant pour le bulletin {ballot_id}") from e
        spoiled[ballot_id] = decrypt_ballot(ballot, ballot_shares, extended_base_hash, dlog)

    return contests, spoiled
