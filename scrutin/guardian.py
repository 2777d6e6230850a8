import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from scrutin.auxiliary import AuxiliaryChannel, AuxiliaryKeyPair
from scrutin.chaum_pedersen import ChaumPedersenProof, make_chaum_pedersen
from scrutin.config import CeremonyDetails
from scrutin.elgamal import ElGamalCiphertext
from scrutin.errors import CeremonyError, InvalidElementError
from scrutin.group import ElementModP, ElementModQ, hex_to_q, rand_q
from scrutin.key_ceremony import (
    ElectionJointKey,
    ElectionKeyPair,
    ElectionPartialKeyBackup,
    ElectionPartialKeyChallenge,
    ElectionPartialKeyVerification,
    PublicKeySet,
    combine_election_public_keys,
    generate_election_key_pair,
    generate_election_partial_key_backup,
    generate_election_partial_key_challenge,
    verify_election_partial_key_backup,
    verify_election_partial_key_challenge,
)
from scrutin.polynomial import compute_commitment_product

logger = logging.getLogger(__name__)


class GuardianStatus(Enum):
    KEYS_GENERATED = "KeysGenerated"
    BACKUPS_SHARED = "BackupsShared"
    PENDING_VERIFICATION = "PendingVerification"
    BACKUPS_VERIFIED = "BackupsVerified"
    JOINT_KEY_COMBINED = "JointKeyCombined"


def _frozen(values: Mapping) -> Mapping:
    return MappingProxyType(dict(values))


def _with(values: Mapping, key: str, value) -> Mapping:
    updated = dict(values)
    updated[key] = value
    return MappingProxyType(updated)


def _without(values: Mapping, key: str) -> Mapping:
    updated = dict(values)
    updated.pop(key, None)
    return MappingProxyType(updated)


@dataclass(frozen=True)
class Guardian:
    """
    Instantané immuable de l'état d'un gardien pendant la cérémonie des clés

    Chaque transition retourne un nouvel instantané ; l'ancien reste valide et
    peut être rejoué ou audité. Seul le gardien détient sa clé secrète.

    Transitions :
        KeysGenerated -> BackupsShared -> PendingVerification -> BackupsVerified -> JointKeyCombined
    """

    object_id: str
    sequence_order: int
    ceremony_details: CeremonyDetails
    election_keys: ElectionKeyPair
    auxiliary_keys: AuxiliaryKeyPair
    status: GuardianStatus = GuardianStatus.KEYS_GENERATED
    # Clés publiques de tous les gardiens, y compris celles du gardien lui-même
    guardian_public_keys: Mapping[str, PublicKeySet] = field(default_factory=dict)
    # Sauvegardes à envoyer, par destinataire
    backups_to_share: Mapping[str, ElectionPartialKeyBackup] = field(default_factory=dict)
    # Sauvegardes reçues, par propriétaire
    received_backups: Mapping[str, ElectionPartialKeyBackup] = field(default_factory=dict)
    # Verdicts du gardien sur les sauvegardes reçues, par propriétaire
    backup_verifications: Mapping[str, ElectionPartialKeyVerification] = field(default_factory=dict)
    # Verdicts des autres gardiens sur nos sauvegardes, par destinataire
    shared_backup_verifications: Mapping[str, ElectionPartialKeyVerification] = field(default_factory=dict)
    # Valeurs publiées en clair lors d'une contestation, par propriétaire
    challenged_values: Mapping[str, ElementModQ] = field(default_factory=dict)
    joint_key: Optional[ElectionJointKey] = None

    @classmethod
    def create(
        cls,
        object_id: str,
        sequence_order: int,
        ceremony_details: CeremonyDetails,
        channel: AuxiliaryChannel,
        nonce: Optional[ElementModQ] = None,
    ) -> "Guardian":
        """
        Génère les clés d'élection et auxiliaires d'un gardien

        Args:
            object_id: L'identifiant du gardien
            sequence_order: Son rang, de 1 à N
            ceremony_details: Les paramètres N et K
            channel: Le canal auxiliaire qui génère les clés de transport
            nonce: Graine optionnelle du polynôme (tests)

        Returns:
            Guardian: L'instantané à l'état KeysGenerated
        """
        if not 0 < sequence_order <= ceremony_details.number_of_guardians:
            raise CeremonyError(f"Rang de gardien invalide : {sequence_order}")

        election_keys = generate_election_key_pair(ceremony_details.quorum, nonce)
        guardian = cls(
            object_id,
            sequence_order,
            ceremony_details,
            election_keys,
            channel.generate_key_pair(),
        )
        logger.info("Gardien %s : clés générées", object_id)
        return replace(
            guardian,
            guardian_public_keys=_frozen({object_id: guardian.share_public_keys()}),
        )

    def _require(self, *allowed: GuardianStatus) -> None:
        if self.status not in allowed:
            raise CeremonyError(
                f"Gardien {self.object_id} : opération impossible à l'état {self.status.value}"
            )

    # Annonce des clés publiques

    def share_public_keys(self) -> PublicKeySet:
        return PublicKeySet(
            self.object_id,
            self.sequence_order,
            self.auxiliary_keys.public_key,
            self.election_keys.key_pair.public_key,
            self.election_keys.proof,
        )

    def election_public_key(self) -> ElementModP:
        return self.election_keys.key_pair.public_key

    def receive_public_keys(self, public_key_set: PublicKeySet) -> "Guardian":
        """
        Enregistre les clés publiques d'un autre gardien

        Raises:
            CeremonyError: Si la preuve de la clé d'élection est invalide ou le rang déjà pris
        """
        self._require(GuardianStatus.KEYS_GENERATED)
        if not public_key_set.is_valid():
            raise CeremonyError(f"Clés publiques invalides pour {public_key_set.owner_id}")
        for owner_id, known in self.guardian_public_keys.items():
            if owner_id != public_key_set.owner_id and known.sequence_order == public_key_set.sequence_order:
                raise CeremonyError(f"Rang {known.sequence_order} déjà attribué à {owner_id}")
        return replace(
            self,
            guardian_public_keys=_with(
                self.guardian_public_keys, public_key_set.owner_id, public_key_set
            ),
        )

    def all_public_keys_received(self) -> bool:
        return len(self.guardian_public_keys) == self.ceremony_details.number_of_guardians

    # Sauvegardes partielles

    def generate_backups(self, channel: AuxiliaryChannel) -> "Guardian":
        """
        Calcule et chiffre une sauvegarde pour chaque autre gardien

        Raises:
            CeremonyError: S'il manque des clés publiques ou si le canal auxiliaire échoue
        """
        self._require(GuardianStatus.KEYS_GENERATED)
        if not self.all_public_keys_received():
            raise CeremonyError(f"Gardien {self.object_id} : clés publiques incomplètes")

        backups: Dict[str, ElectionPartialKeyBackup] = {}
        for owner_id, key_set in self.guardian_public_keys.items():
            if owner_id == self.object_id:
                continue
            backup = generate_election_partial_key_backup(
                self.object_id, self.election_keys.polynomial, key_set.auxiliary(), channel
            )
            if backup is None:
                raise CeremonyError(
                    f"Gardien {self.object_id} : sauvegarde pour {owner_id} impossible à chiffrer"
                )
            backups[owner_id] = backup
        logger.info("Gardien %s : %d sauvegardes générées", self.object_id, len(backups))
        return replace(self, status=GuardianStatus.BACKUPS_SHARED, backups_to_share=_frozen(backups))

    def share_backup(self, designated_id: str) -> ElectionPartialKeyBackup:
        try:
            return self.backups_to_share[designated_id]
        except KeyError:
            raise CeremonyError(f"Aucune sauvegarde pour {designated_id}") from None

    def reissue_backup(self, designated_id: str, channel: AuxiliaryChannel) -> "Guardian":
        """Republie la sauvegarde destinée à designated_id et oublie l'ancien verdict"""
        self._require(
            GuardianStatus.BACKUPS_SHARED,
            GuardianStatus.PENDING_VERIFICATION,
            GuardianStatus.BACKUPS_VERIFIED,
        )
        key_set = self.guardian_public_keys.get(designated_id)
        if key_set is None or designated_id == self.object_id:
            raise CeremonyError(f"Destinataire inconnu : {designated_id}")
        backup = generate_election_partial_key_backup(
            self.object_id, self.election_keys.polynomial, key_set.auxiliary(), channel
        )
        if backup is None:
            raise CeremonyError(
                f"Gardien {self.object_id} : sauvegarde pour {designated_id} impossible à chiffrer"
            )
        return replace(
            self,
            backups_to_share=_with(self.backups_to_share, designated_id, backup),
            shared_backup_verifications=_without(self.shared_backup_verifications, designated_id),
        )

    def receive_backup(self, backup: ElectionPartialKeyBackup) -> "Guardian":
        """
        Enregistre une sauvegarde reçue ; remplace toute version précédente et son verdict

        Raises:
            CeremonyError: Si la sauvegarde ne nous est pas destinée, porte un autre rang
                que le nôtre ou vient d'un inconnu
        """
        self._require(
            GuardianStatus.BACKUPS_SHARED,
            GuardianStatus.PENDING_VERIFICATION,
            GuardianStatus.BACKUPS_VERIFIED,
        )
        if backup.designated_id != self.object_id:
            raise CeremonyError(f"Sauvegarde destinée à {backup.designated_id}, pas à {self.object_id}")
        if backup.designated_sequence_order != self.sequence_order:
            raise CeremonyError(
                f"Sauvegarde de {backup.owner_id} émise pour le rang {backup.designated_sequence_order}, "
                f"{self.object_id} est au rang {self.sequence_order}"
            )
        if backup.owner_id not in self.guardian_public_keys or backup.owner_id == self.object_id:
            raise CeremonyError(f"Propriétaire de sauvegarde inconnu : {backup.owner_id}")
        return replace(
            self,
            status=GuardianStatus.PENDING_VERIFICATION,
            received_backups=_with(self.received_backups, backup.owner_id, backup),
            backup_verifications=_without(self.backup_verifications, backup.owner_id),
            challenged_values=_without(self.challenged_values, backup.owner_id),
        )

    def all_backups_received(self) -> bool:
        return len(self.received_backups) == self.ceremony_details.number_of_guardians - 1

    def verify_backups(self, channel: AuxiliaryChannel) -> "Guardian":
        """
        Vérifie toutes les sauvegardes reçues sans verdict

        L'instantané passe à BackupsVerified si toutes les sauvegardes attendues sont reçues
        et valides, sinon il reste PendingVerification : reprise ou abandon sont laissés à l'appelant.
        """
        self._require(
            GuardianStatus.BACKUPS_SHARED,
            GuardianStatus.PENDING_VERIFICATION,
            GuardianStatus.BACKUPS_VERIFIED,
        )
        verifications = dict(self.backup_verifications)
        for owner_id, backup in self.received_backups.items():
            if owner_id in verifications:
                continue
            verification = verify_election_partial_key_backup(
                self.object_id, backup, self.auxiliary_keys, channel, self.sequence_order
            )
            owner_key = self.guardian_public_keys[owner_id].election_public_key
            if verification.verified and backup.coefficient_commitments[0] != owner_key:
                logger.info("Sauvegarde de %s incohérente avec sa clé annoncée", owner_id)
                verification = replace(verification, verified=False)
            verifications[owner_id] = verification

        all_verified = self.all_backups_received() and all(v.verified for v in verifications.values())
        status = GuardianStatus.BACKUPS_VERIFIED if all_verified else GuardianStatus.PENDING_VERIFICATION
        if not all_verified:
            failing = sorted(o for o, v in verifications.items() if not v.verified)
            logger.info("Gardien %s : vérification en attente, échecs %s", self.object_id, failing)
        return replace(self, status=status, backup_verifications=_frozen(verifications))

    def share_verification(self, owner_id: str) -> ElectionPartialKeyVerification:
        try:
            return self.backup_verifications[owner_id]
        except KeyError:
            raise CeremonyError(f"Aucun verdict sur la sauvegarde de {owner_id}") from None

    def failed_verifications(self) -> List[ElectionPartialKeyVerification]:
        return [v for v in self.backup_verifications.values() if not v.verified]

    def receive_verification(self, verification: ElectionPartialKeyVerification) -> "Guardian":
        """Enregistre le verdict d'un destinataire sur une de nos sauvegardes"""
        if verification.owner_id != self.object_id:
            raise CeremonyError(f"Verdict destiné à {verification.owner_id}")
        return replace(
            self,
            shared_backup_verifications=_with(
                self.shared_backup_verifications, verification.designated_id, verification
            ),
        )

    def all_backups_verified(self) -> bool:
        """Toutes nos sauvegardes ont été acceptées par leurs destinataires"""
        expected = self.ceremony_details.number_of_guardians - 1
        return len(self.shared_backup_verifications) == expected and all(
            v.verified for v in self.shared_backup_verifications.values()
        )

    # Contestation

    def publish_challenge(self, designated_id: str) -> ElectionPartialKeyChallenge:
        """Publie en clair la valeur de la sauvegarde contestée par designated_id"""
        return generate_election_partial_key_challenge(
            self.share_backup(designated_id), self.election_keys.polynomial
        )

    def receive_challenge(self, challenge: ElectionPartialKeyChallenge) -> "Guardian":
        """
        Accepte la valeur publiée d'une sauvegarde contestée si elle est cohérente

        La valeur remplace alors la sauvegarde chiffrée pour les déchiffrements compensés.
        """
        self._require(GuardianStatus.PENDING_VERIFICATION, GuardianStatus.BACKUPS_VERIFIED)
        if challenge.designated_id != self.object_id:
            raise CeremonyError(f"Contestation destinée à {challenge.designated_id}")
        verification = verify_election_partial_key_challenge(
            self.object_id, challenge, self.sequence_order
        )
        owner_key = self.guardian_public_keys[challenge.owner_id].election_public_key
        if challenge.coefficient_commitments[0] != owner_key:
            verification = replace(verification, verified=False)
        if not verification.verified:
            logger.info("Contestation de %s rejetée", challenge.owner_id)
            return replace(
                self,
                backup_verifications=_with(self.backup_verifications, challenge.owner_id, verification),
            )

        verifications = _with(self.backup_verifications, challenge.owner_id, verification)
        all_verified = self.all_backups_received() and all(v.verified for v in verifications.values())
        return replace(
            self,
            status=GuardianStatus.BACKUPS_VERIFIED if all_verified else GuardianStatus.PENDING_VERIFICATION,
            backup_verifications=verifications,
            challenged_values=_with(self.challenged_values, challenge.owner_id, challenge.value),
        )

    # Clé conjointe

    def coefficient_commitments(self) -> Dict[str, Tuple[ElementModP, ...]]:
        commitments = {
            owner_id: backup.coefficient_commitments
            for owner_id, backup in self.received_backups.items()
        }
        commitments[self.object_id] = self.election_keys.polynomial.coefficient_commitments
        return commitments

    def combine_joint_key(self) -> "Guardian":
        """
        Calcule la clé publique conjointe

        Raises:
            CeremonyError: Si une sauvegarde n'est pas vérifiée dans un sens ou dans l'autre
        """
        self._require(GuardianStatus.BACKUPS_VERIFIED)
        if not self.all_backups_verified():
            raise CeremonyError(f"Gardien {self.object_id} : sauvegardes non acceptées par tous")
        joint_key = combine_election_public_keys(
            self.guardian_public_keys.values(), self.coefficient_commitments()
        )
        logger.info("Gardien %s : clé conjointe calculée", self.object_id)
        return replace(self, status=GuardianStatus.JOINT_KEY_COMBINED, joint_key=joint_key)

    # Déchiffrement

    def partially_decrypt(
        self,
        ciphertext: ElGamalCiphertext,
        extended_base_hash: ElementModQ,
        nonce_seed: Optional[ElementModQ] = None,
    ) -> Tuple[ElementModP, ChaumPedersenProof]:
        """
        Calcule le déchiffrement partiel α^s et sa preuve

        Args:
            ciphertext: Le chiffré à déchiffrer
            extended_base_hash: Le hachage de base étendu de l'élection
            nonce_seed: Graine optionnelle de la preuve

        Returns:
            Tuple[ElementModP, ChaumPedersenProof]: Le partage et sa preuve
        """
        self._require(GuardianStatus.JOINT_KEY_COMBINED)
        if nonce_seed is None:
            nonce_seed = rand_q()
        secret = self.election_keys.key_pair.secret_key
        partial = ciphertext.partial_decrypt(secret)
        proof = make_chaum_pedersen(ciphertext, secret, partial, nonce_seed, extended_base_hash)
        return partial, proof

    def _backup_coordinate(
        self, missing_guardian_id: str, channel: AuxiliaryChannel
    ) -> Optional[ElementModQ]:
        if missing_guardian_id in self.challenged_values:
            return self.challenged_values[missing_guardian_id]
        backup = self.received_backups.get(missing_guardian_id)
        if backup is None:
            logger.warning("Aucune sauvegarde de %s chez %s", missing_guardian_id, self.object_id)
            return None
        decrypted = channel.decrypt(backup.encrypted_value, self.auxiliary_keys.secret_key)
        if decrypted is None:
            return None
        try:
            return hex_to_q(decrypted)
        except InvalidElementError:
            logger.warning("Sauvegarde de %s illisible", missing_guardian_id)
            return None

    def compensate_decrypt(
        self,
        missing_guardian_id: str,
        ciphertext: ElGamalCiphertext,
        extended_base_hash: ElementModQ,
        channel: AuxiliaryChannel,
        nonce_seed: Optional[ElementModQ] = None,
    ) -> Optional[Tuple[ElementModP, ChaumPedersenProof]]:
        """
        Calcule la contribution compensée α^P_m(i) pour le gardien absent m

        Args:
            missing_guardian_id: Le gardien absent
            ciphertext: Le chiffré à déchiffrer
            extended_base_hash: Le hachage de base étendu
            channel: Le canal auxiliaire, pour déchiffrer la sauvegarde de m
            nonce_seed: Graine optionnelle de la preuve

        Returns:
            Optional[Tuple[ElementModP, ChaumPedersenProof]]: Le partage et sa preuve,
            ou None si la sauvegarde est inutilisable
        """
        self._require(GuardianStatus.JOINT_KEY_COMBINED)
        coordinate = self._backup_coordinate(missing_guardian_id, channel)
        if coordinate is None:
            return None
        if nonce_seed is None:
            nonce_seed = rand_q()
        partial = ciphertext.partial_decrypt(coordinate)
        proof = make_chaum_pedersen(ciphertext, coordinate, partial, nonce_seed, extended_base_hash)
        return partial, proof

    def recovery_public_key_for(self, missing_guardian_id: str) -> ElementModP:
        """
        Clé publique de recouvrement g^P_m(i) = Π K_mj^(i^j)

        Raises:
            CeremonyError: Si aucune sauvegarde de ce gardien n'a été reçue
        """
        backup = self.received_backups.get(missing_guardian_id)
        if backup is None:
            raise CeremonyError(f"Aucune sauvegarde de {missing_guardian_id}")
        return compute_commitment_product(self.sequence_order, backup.coefficient_commitments)
