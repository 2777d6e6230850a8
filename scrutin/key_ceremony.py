import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Tuple

from scrutin.auxiliary import AuxiliaryChannel, AuxiliaryKeyPair, AuxiliaryPublicKey
from scrutin.elgamal import ElGamalKeyPair, elgamal_combine_public_keys
from scrutin.errors import InvalidElementError
from scrutin.group import ElementModP, ElementModQ, hex_to_q, rand_q
from scrutin.hash import hash_elems
from scrutin.polynomial import (
    ElectionPolynomial,
    compute_polynomial_coordinate,
    generate_polynomial,
    verify_polynomial_coordinate,
)
from scrutin.schnorr import SchnorrProof, make_schnorr_proof

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ElectionKeyPair:
    """Paire de clés d'élection d'un gardien, avec sa preuve et son polynôme secret"""

    key_pair: ElGamalKeyPair
    proof: SchnorrProof
    polynomial: ElectionPolynomial


@dataclass(frozen=True)
class PublicKeySet:
    """Clés publiques annoncées par un gardien au début de la cérémonie"""

    owner_id: str
    sequence_order: int
    auxiliary_public_key: str
    election_public_key: ElementModP
    election_public_key_proof: SchnorrProof

    def auxiliary(self) -> AuxiliaryPublicKey:
        return AuxiliaryPublicKey(self.owner_id, self.sequence_order, self.auxiliary_public_key)

    def is_valid(self) -> bool:
        return (
            self.sequence_order > 0
            and self.election_public_key_proof.public_key == self.election_public_key
            and self.election_public_key_proof.is_valid()
        )


@dataclass(frozen=True)
class ElectionPartialKeyBackup:
    """
    Sauvegarde partielle : P_owner(rang du destinataire), chiffrée pour le destinataire
    """

    owner_id: str
    designated_id: str
    designated_sequence_order: int
    encrypted_value: bytes
    coefficient_commitments: Tuple[ElementModP, ...]
    coefficient_proofs: Tuple[SchnorrProof, ...]


@dataclass(frozen=True)
class ElectionPartialKeyVerification:
    owner_id: str
    designated_id: str
    verifier_id: str
    verified: bool


@dataclass(frozen=True)
class ElectionPartialKeyChallenge:
    """Valeur en clair publiée par le propriétaire d'une sauvegarde contestée"""

    owner_id: str
    designated_id: str
    designated_sequence_order: int
    value: ElementModQ
    coefficient_commitments: Tuple[ElementModP, ...]
    coefficient_proofs: Tuple[SchnorrProof, ...]


@dataclass(frozen=True)
class ElectionJointKey:
    """Clé publique conjointe et hachage de tous les engagements des gardiens"""

    joint_public_key: ElementModP
    commitment_hash: ElementModQ


def generate_election_key_pair(quorum: int, nonce: Optional[ElementModQ] = None) -> ElectionKeyPair:
    """
    Génère la paire de clés d'élection d'un gardien

    Le secret est le terme constant d'un polynôme de degré quorum - 1.

    Args:
        quorum: Le quorum K de l'élection
        nonce: Graine optionnelle des coefficients (tests)

    Returns:
        ElectionKeyPair: La paire de clés, sa preuve de Schnorr et le polynôme
    """
    polynomial = generate_polynomial(quorum, nonce)
    key_pair = ElGamalKeyPair(polynomial.coefficients[0], polynomial.coefficient_commitments[0])
    proof = make_schnorr_proof(key_pair, rand_q())
    return ElectionKeyPair(key_pair, proof, polynomial)


def generate_election_partial_key_backup(
    owner_id: str,
    polynomial: ElectionPolynomial,
    auxiliary_public_key: AuxiliaryPublicKey,
    channel: AuxiliaryChannel,
) -> Optional[ElectionPartialKeyBackup]:
    """
    Évalue le polynôme au rang du destinataire et chiffre le résultat pour lui

    Args:
        owner_id: L'identifiant du gardien propriétaire du polynôme
        polynomial: Le polynôme secret
        auxiliary_public_key: La clé auxiliaire du destinataire
        channel: Le canal auxiliaire

    Returns:
        Optional[ElectionPartialKeyBackup]: La sauvegarde, ou None si le chiffrement échoue
    """
    value = compute_polynomial_coordinate(auxiliary_public_key.sequence_order, polynomial)
    encrypted_value = channel.encrypt(value.to_hex(), auxiliary_public_key.key)
    if encrypted_value is None:
        logger.warning(
            "Sauvegarde de %s pour %s non chiffrée", owner_id, auxiliary_public_key.owner_id
        )
        return None
    return ElectionPartialKeyBackup(
        owner_id,
        auxiliary_public_key.owner_id,
        auxiliary_public_key.sequence_order,
        encrypted_value,
        polynomial.coefficient_commitments,
        polynomial.coefficient_proofs,
    )


def _valid_coefficient_proofs(
    commitments: Tuple[ElementModP, ...], proofs: Tuple[SchnorrProof, ...]
) -> bool:
    if len(commitments) != len(proofs):
        return False
    return all(
        proof.public_key == commitment and proof.is_valid()
        for commitment, proof in zip(commitments, proofs)
    )


def verify_election_partial_key_backup(
    verifier_id: str,
    backup: ElectionPartialKeyBackup,
    auxiliary_key_pair: AuxiliaryKeyPair,
    channel: AuxiliaryChannel,
    designated_sequence_order: int,
) -> ElectionPartialKeyVerification:
    """
    Vérifie une sauvegarde reçue

    La sauvegarde est rejetée si elle ne se déchiffre pas, si une preuve de coefficient est
    invalide ou si g^valeur diffère de Π K_j^(i^j), i étant le rang du vérificateur et non celui
    inscrit dans la sauvegarde par son propriétaire.

    Args:
        verifier_id: L'identifiant du gardien vérificateur
        backup: La sauvegarde reçue
        auxiliary_key_pair: Les clés auxiliaires du vérificateur
        channel: Le canal auxiliaire
        designated_sequence_order: Le rang du vérificateur

    Returns:
        ElectionPartialKeyVerification: Le verdict
    """

    def verdict(verified: bool) -> ElectionPartialKeyVerification:
        return ElectionPartialKeyVerification(
            backup.owner_id, backup.designated_id, verifier_id, verified
        )

    if backup.designated_sequence_order != designated_sequence_order:
        logger.info(
            "Sauvegarde de %s émise pour le rang %d, vérificateur au rang %d",
            backup.owner_id,
            backup.designated_sequence_order,
            designated_sequence_order,
        )
        return verdict(False)

    decrypted_value = channel.decrypt(backup.encrypted_value, auxiliary_key_pair.secret_key)
    if decrypted_value is None:
        logger.info("Sauvegarde de %s indéchiffrable par %s", backup.owner_id, verifier_id)
        return verdict(False)

    try:
        value = hex_to_q(decrypted_value)
    except InvalidElementError:
        logger.info("Sauvegarde de %s mal formée", backup.owner_id)
        return verdict(False)

    if not _valid_coefficient_proofs(backup.coefficient_commitments, backup.coefficient_proofs):
        logger.info("Preuves de coefficients invalides pour %s", backup.owner_id)
        return verdict(False)

    verified = verify_polynomial_coordinate(
        value, designated_sequence_order, backup.coefficient_commitments
    )
    if not verified:
        logger.info("Sauvegarde de %s incohérente avec ses engagements", backup.owner_id)
    return verdict(verified)


def generate_election_partial_key_challenge(
    backup: ElectionPartialKeyBackup, polynomial: ElectionPolynomial
) -> ElectionPartialKeyChallenge:
    """Publie en clair la valeur d'une sauvegarde contestée"""
    return ElectionPartialKeyChallenge(
        backup.owner_id,
        backup.designated_id,
        backup.designated_sequence_order,
        compute_polynomial_coordinate(backup.designated_sequence_order, polynomial),
        backup.coefficient_commitments,
        backup.coefficient_proofs,
    )


def verify_election_partial_key_challenge(
    verifier_id: str, challenge: ElectionPartialKeyChallenge, designated_sequence_order: int
) -> ElectionPartialKeyVerification:
    """Vérifie publiquement une valeur contestée contre les engagements, au rang du destinataire"""
    verified = (
        challenge.designated_sequence_order == designated_sequence_order
        and _valid_coefficient_proofs(challenge.coefficient_commitments, challenge.coefficient_proofs)
        and verify_polynomial_coordinate(
            challenge.value, designated_sequence_order, challenge.coefficient_commitments
        )
    )
    return ElectionPartialKeyVerification(
        challenge.owner_id, challenge.designated_id, verifier_id, verified
    )


def combine_election_public_keys(
    public_key_sets: Iterable[PublicKeySet],
    coefficient_commitments: Optional[Mapping[str, Tuple[ElementModP, ...]]] = None,
) -> ElectionJointKey:
    """
    Combine les clés publiques des gardiens en clé conjointe

    Args:
        public_key_sets: Les clés annoncées par chaque gardien
        coefficient_commitments: Engagements K_ij de chaque gardien ; à défaut seuls les K_i0 sont hachés

    Returns:
        ElectionJointKey: Π K_i mod p et le hachage des engagements
    """
    ordered = sorted(public_key_sets, key=lambda s: s.sequence_order)
    joint_public_key = elgamal_combine_public_keys(s.election_public_key for s in ordered)
    if coefficient_commitments is None:
        commitment_hash = hash_elems([s.election_public_key for s in ordered])
    else:
        commitment_hash = hash_elems([list(coefficient_commitments[s.owner_id]) for s in ordered])
    return ElectionJointKey(joint_public_key, commitment_hash)
