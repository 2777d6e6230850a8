import logging
from typing import Dict, List, Optional, Tuple

from scrutin.auxiliary import AuxiliaryChannel
from scrutin.config import CeremonyDetails, load_settings
from scrutin.errors import CeremonyError
from scrutin.guardian import Guardian, GuardianStatus
from scrutin.key_ceremony import ElectionJointKey, ElectionPartialKeyVerification

logger = logging.getLogger(__name__)


class KeyCeremonyMediator:
    """
    Orchestre l'échange de clés et de sauvegardes entre gardiens

    Le médiateur ne relance jamais une étape de lui-même : les sauvegardes rejetées sont
    retournées à l'appelant, qui décide de les republier, de les contester ou d'abandonner.
    """

    def __init__(
        self,
        ceremony_details: CeremonyDetails,
        channel: AuxiliaryChannel,
        max_backup_attempts: Optional[int] = None,
    ):
        """
        Args:
            ceremony_details: Les paramètres N et K
            channel: Le canal auxiliaire utilisé par les gardiens
            max_backup_attempts: Nombre de publications d'une sauvegarde avant abandon, par défaut celui
                des réglages
        """
        self.ceremony_details = ceremony_details
        self.channel = channel
        self.max_backup_attempts = (
            max_backup_attempts if max_backup_attempts is not None else load_settings().max_backup_attempts
        )
        self.guardians: Dict[str, Guardian] = {}
        self._attempts: Dict[Tuple[str, str], int] = {}

    def reset(self, ceremony_details: CeremonyDetails) -> None:
        """Oublie tous les gardiens et repart de zéro"""
        self.ceremony_details = ceremony_details
        self.guardians = {}
        self._attempts = {}

    def guardian(self, guardian_id: str) -> Guardian:
        return self.guardians[guardian_id]

    def announce(self, guardian: Guardian) -> None:
        """
        Annonce un gardien à la cérémonie

        Raises:
            CeremonyError: Si le gardien est déjà annoncé ou s'il y en a déjà N
        """
        if guardian.object_id in self.guardians:
            raise CeremonyError(f"Gardien déjà annoncé : {guardian.object_id}")
        if len(self.guardians) >= self.ceremony_details.number_of_guardians:
            raise CeremonyError("Tous les gardiens sont déjà annoncés")
        if guardian.ceremony_details != self.ceremony_details:
            raise CeremonyError(f"Paramètres de cérémonie différents pour {guardian.object_id}")
        self.guardians[guardian.object_id] = guardian
        logger.info("Gardien annoncé : %s", guardian.object_id)

    def all_guardians_announced(self) -> bool:
        return len(self.guardians) == self.ceremony_details.number_of_guardians

    def _share_public_keys(self) -> None:
        key_sets = [g.share_public_keys() for g in self.guardians.values()]
        for guardian_id in list(self.guardians):
            guardian = self.guardians[guardian_id]
            for key_set in key_sets:
                if key_set.owner_id != guardian_id:
                    guardian = guardian.receive_public_keys(key_set)
            self.guardians[guardian_id] = guardian

    def orchestrate(self) -> None:
        """
        Échange les clés publiques puis distribue les sauvegardes partielles

        Raises:
            CeremonyError: Si tous les gardiens ne sont pas annoncés
        """
        if not self.all_guardians_announced():
            raise CeremonyError("Tous les gardiens ne sont pas annoncés")
        self._share_public_keys()

        for guardian_id in list(self.guardians):
            self.guardians[guardian_id] = self.guardians[guardian_id].generate_backups(self.channel)

        for owner in list(self.guardians.values()):
            for designated_id in owner.backups_to_share:
                self._deliver_backup(owner.object_id, designated_id)
        logger.info("Sauvegardes distribuées entre %d gardiens", len(self.guardians))

    def _deliver_backup(self, owner_id: str, designated_id: str) -> None:
        backup = self.guardians[owner_id].share_backup(designated_id)
        self.guardians[designated_id] = self.guardians[designated_id].receive_backup(backup)
        key = (owner_id, designated_id)
        self._attempts[key] = self._attempts.get(key, 0) + 1

    def verify(self) -> List[ElectionPartialKeyVerification]:
        """
        Fait vérifier les sauvegardes reçues et transmet les verdicts aux propriétaires

        Returns:
            List[ElectionPartialKeyVerification]: Les verdicts négatifs ; vide si tout est vérifié
        """
        verdicts: List[ElectionPartialKeyVerification] = []
        for guardian_id in list(self.guardians):
            guardian = self.guardians[guardian_id].verify_backups(self.channel)
            self.guardians[guardian_id] = guardian
            verdicts.extend(guardian.backup_verifications.values())

        for verdict in verdicts:
            owner = self.guardians[verdict.owner_id]
            self.guardians[verdict.owner_id] = owner.receive_verification(verdict)

        failures = [v for v in verdicts if not v.verified]
        if failures:
            logger.info("%d sauvegardes rejetées", len(failures))
        return failures

    def attempts(self, owner_id: str, designated_id: str) -> int:
        return self._attempts.get((owner_id, designated_id), 0)

    def reissue_backups(self, failures: List[ElectionPartialKeyVerification]) -> None:
        """
        Fait republier les sauvegardes rejetées, dans la limite du budget de tentatives

        Raises:
            CeremonyError: Si une sauvegarde a épuisé son budget ; la cérémonie est abandonnée
        """
        for failure in failures:
            if self.attempts(failure.owner_id, failure.designated_id) >= self.max_backup_attempts:
                logger.error(
                    "Cérémonie abandonnée : sauvegarde de %s pour %s rejetée %d fois",
                    failure.owner_id, failure.designated_id, self.max_backup_attempts,
                )
                raise CeremonyError(
                    f"Sauvegarde de {failure.owner_id} pour {failure.designated_id} rejetée trop souvent"
                )
            owner = self.guardians[failure.owner_id]
            self.guardians[failure.owner_id] = owner.reissue_backup(failure.designated_id, self.channel)
            self._deliver_backup(failure.owner_id, failure.designated_id)

    def challenge(self, failure: ElectionPartialKeyVerification) -> ElectionPartialKeyVerification:
        """
        Résout une sauvegarde rejetée par contestation publique

        Le propriétaire publie la valeur en clair ; le destinataire la vérifie contre les
        engagements publics et le verdict est transmis au propriétaire.

        Returns:
            ElectionPartialKeyVerification: Le nouveau verdict
        """
        challenge = self.guardians[failure.owner_id].publish_challenge(failure.designated_id)
        designated = self.guardians[failure.designated_id].receive_challenge(challenge)
        self.guardians[failure.designated_id] = designated
        verdict = designated.share_verification(failure.owner_id)
        self.guardians[failure.owner_id] = self.guardians[failure.owner_id].receive_verification(verdict)
        return verdict

    def all_backups_verified(self) -> bool:
        return self.all_guardians_announced() and all(
            g.status in (GuardianStatus.BACKUPS_VERIFIED, GuardianStatus.JOINT_KEY_COMBINED)
            and g.all_backups_verified()
            for g in self.guardians.values()
        )

    def publish_joint_key(self) -> Optional[ElectionJointKey]:
        """
        Fait calculer la clé conjointe par chaque gardien

        Returns:
            Optional[ElectionJointKey]: La clé conjointe, ou None si des sauvegardes restent à vérifier

        Raises:
            CeremonyError: Si les gardiens n'obtiennent pas la même clé
        """
        if not self.all_backups_verified():
            logger.info("Clé conjointe non publiée : vérifications en attente")
            return None

        for guardian_id in list(self.guardians):
            guardian = self.guardians[guardian_id]
            if guardian.status != GuardianStatus.JOINT_KEY_COMBINED:
                self.guardians[guardian_id] = guardian.combine_joint_key()

        joint_keys = {g.joint_key for g in self.guardians.values()}
        if len(joint_keys) != 1:
            raise CeremonyError("Les gardiens ne s'accordent pas sur la clé conjointe")
        joint_key = joint_keys.pop()
        logger.info("Clé conjointe publiée")
        return joint_key
