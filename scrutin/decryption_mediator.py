import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from scrutin.auxiliary import AuxiliaryChannel
from scrutin.context import CiphertextElectionContext
from scrutin.decryption import (
    compute_compensated_decryption_share,
    compute_decryption_share,
    compute_lagrange_coefficients_for_guardians,
    decrypt_tally,
    reconstruct_decryption_share,
)
from scrutin.decryption_share import CompensatedTallyDecryptionShare, TallyDecryptionShare
from scrutin.dlog import DiscreteLog
from scrutin.errors import DecryptionError, QuorumError
from scrutin.guardian import Guardian
from scrutin.key_ceremony import PublicKeySet
from scrutin.tally import CiphertextTally, PlaintextTally

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuardianState:
    """Classement d'un gardien pour une session de déchiffrement"""

    guardian_id: str
    sequence: int
    is_missing: bool


class DecryptionMediator:
    """
    Session de déchiffrement d'un décompte

    Les gardiens présents s'annoncent et publient leurs partages ; les partages des absents
    sont reconstitués à partir des contributions compensées des présents. L'état des gardiens
    est figé au premier besoin et ne change plus ensuite.
    """

    def __init__(
        self,
        context: CiphertextElectionContext,
        tally: CiphertextTally,
        dlog: Optional[DiscreteLog] = None,
    ):
        self.context = context
        self.tally = tally
        self.dlog = dlog if dlog is not None else DiscreteLog()
        self.available_guardians: Dict[str, Guardian] = {}
        self.tally_shares: Dict[str, TallyDecryptionShare] = {}
        self.compensated_shares: Dict[str, Dict[str, CompensatedTallyDecryptionShare]] = {}
        self._public_keys: Dict[str, PublicKeySet] = {}
        self._states: Optional[List[GuardianState]] = None

    def announce(self, guardian: Guardian) -> Optional[TallyDecryptionShare]:
        """
        Annonce un gardien présent et calcule ses partages

        Args:
            guardian: Le gardien, clé conjointe calculée

        Returns:
            Optional[TallyDecryptionShare]: Ses partages, ou None si une preuve est invalide

        Raises:
            DecryptionError: Si la session est déjà figée ou le gardien déjà annoncé
        """
        if self._states is not None:
            raise DecryptionError("Les gardiens de la session sont déjà classés")
        if guardian.object_id in self.available_guardians:
            raise DecryptionError(f"Gardien déjà annoncé : {guardian.object_id}")

        share = compute_decryption_share(guardian, self.tally, self.context)
        if share is None:
            logger.warning("Partages de %s rejetés", guardian.object_id)
            return None

        self.available_guardians[guardian.object_id] = guardian
        self.tally_shares[guardian.object_id] = share
        for owner_id, public_key_set in guardian.guardian_public_keys.items():
            self._public_keys.setdefault(owner_id, public_key_set)
        logger.info("Gardien %s annoncé au déchiffrement", guardian.object_id)
        return share

    def guardian_states(self) -> List[GuardianState]:
        """
        Classe les gardiens en présents et absents, une fois pour toute la session

        Raises:
            QuorumError: Si plus de N - K gardiens sont absents
        """
        if self._states is None:
            available = len(self.available_guardians)
            if available < self.context.quorum:
                logger.error(
                    "Déchiffrement impossible : %d gardiens présents sur %d, quorum %d",
                    available,
                    self.context.number_of_guardians,
                    self.context.quorum,
                )
                raise QuorumError(
                    f"{available} gardiens présents, quorum de {self.context.quorum} requis"
                )
            self._states = [
                GuardianState(
                    guardian_id,
                    public_key_set.sequence_order,
                    guardian_id not in self.available_guardians,
                )
                for guardian_id, public_key_set in sorted(
                    self._public_keys.items(), key=lambda item: item[1].sequence_order
                )
            ]
        return self._states

    def missing_guardians(self) -> List[str]:
        return [state.guardian_id for state in self.guardian_states() if state.is_missing]

    def compensate(self, missing_guardian_id: str, channel: AuxiliaryChannel) -> bool:
        """
        Collecte les contributions de chaque gardien présent pour un gardien absent

        Args:
            missing_guardian_id: Le gardien absent
            channel: Le canal auxiliaire des sauvegardes

        Returns:
            bool: True si chaque gardien présent a fourni sa contribution
        """
        if missing_guardian_id not in self.missing_guardians():
            raise DecryptionError(f"{missing_guardian_id} n'est pas un gardien absent")

        shares: Dict[str, CompensatedTallyDecryptionShare] = {}
        for guardian_id, guardian in self.available_guardians.items():
            share = compute_compensated_decryption_share(
                guardian, missing_guardian_id, self.tally, self.context, channel
            )
            if share is None:
                logger.warning("%s n'a pas pu compenser %s", guardian_id, missing_guardian_id)
                return False
            shares[guardian_id] = share

        self.compensated_shares[missing_guardian_id] = shares
        return True

    def _all_shares(self) -> Dict[str, TallyDecryptionShare]:
        shares = dict(self.tally_shares)
        missing = self.missing_guardians()
        if not missing:
            return shares

        lagrange_coefficients = compute_lagrange_coefficients_for_guardians(
            {state.guardian_id: state.sequence for state in self.guardian_states() if not state.is_missing}
        )
        for missing_guardian_id in missing:
            if missing_guardian_id not in self.compensated_shares:
                raise DecryptionError(f"Aucune compensation pour {missing_guardian_id}")
            shares[missing_guardian_id] = reconstruct_decryption_share(
                missing_guardian_id,
                self._public_keys[missing_guardian_id].election_public_key,
                self.tally,
                self.compensated_shares[missing_guardian_id],
                lagrange_coefficients,
            )
        return shares

    def get_plaintext_tally(self, channel: Optional[AuxiliaryChannel] = None) -> PlaintextTally:
        """
        Déchiffre le décompte et les bulletins SPOILED

        Args:
            channel: Si fourni, compense d'abord les gardiens absents pas encore compensés

        Returns:
            PlaintextTally: Le résultat déchiffré

        Raises:
            QuorumError: Si plus de N - K gardiens sont absents
            DecryptionError: Si un partage manque ou est invalide
        """
        if channel is not None:
            for missing_guardian_id in self.missing_guardians():
                if missing_guardian_id not in self.compensated_shares:
                    self.compensate(missing_guardian_id, channel)

        contests, spoiled = decrypt_tally(
            self.tally, self._all_shares(), self.context.crypto_extended_base_hash, self.dlog
        )
        logger.info(
            "Décompte %s déchiffré (%d gardiens absents)",
            self.tally.object_id,
            len(self.missing_guardians()),
        )
        return PlaintextTally(self.tally.object_id, contests, spoiled)
