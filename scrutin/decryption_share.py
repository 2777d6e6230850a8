import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from scrutin.chaum_pedersen import ChaumPedersenProof
from scrutin.elgamal import ElGamalCiphertext
from scrutin.group import ElementModP, ElementModQ

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CiphertextCompensatedDecryptionSelection:
    """
    Contribution d'un gardien présent au partage d'un gardien absent

    share = α^P_m(i), prouvé contre la clé de recouvrement g^P_m(i).
    """

    object_id: str
    guardian_id: str
    missing_guardian_id: str
    share: ElementModP
    recovery_key: ElementModP
    proof: ChaumPedersenProof

    def is_valid(self, message: ElGamalCiphertext, extended_base_hash: ElementModQ) -> bool:
        return self.proof.is_valid(message, self.recovery_key, self.share, extended_base_hash)


@dataclass(frozen=True)
class CiphertextDecryptionSelection:
    """
    Partage de déchiffrement d'une sélection pour un gardien

    Partage direct d'un gardien présent (avec proof), ou partage reconstitué d'un gardien
    absent (avec recovered_parts, une contribution par gardien présent).
    """

    object_id: str
    guardian_id: str
    share: ElementModP
    proof: Optional[ChaumPedersenProof] = None
    recovered_parts: Optional[Mapping[str, CiphertextCompensatedDecryptionSelection]] = None

    def __post_init__(self) -> None:
        if (self.proof is None) == (self.recovered_parts is None):
            raise ValueError("Un partage porte soit une preuve, soit des parts reconstituées")

    def is_valid(
        self,
        message: ElGamalCiphertext,
        election_public_key: ElementModP,
        extended_base_hash: ElementModQ,
    ) -> bool:
        """
        Vérifie la preuve du partage, ou chacune de ses parts reconstituées

        Args:
            message: Le chiffré déchiffré
            election_public_key: La clé publique du gardien (présent ou absent)
            extended_base_hash: Le hachage de base étendu

        Returns:
            bool: True si toutes les preuves sont valides
        """
        if self.proof is not None:
            if not self.proof.is_valid(message, election_public_key, self.share, extended_base_hash):
                logger.info("Preuve invalide : %s de %s", self.object_id, self.guardian_id)
                return False
            return True

        for guardian_id, part in self.recovered_parts.items():
            if not part.is_valid(message, extended_base_hash):
                logger.info(
                    "Part compensée invalide : %s de %s pour %s",
                    self.object_id,
                    guardian_id,
                    self.guardian_id,
                )
                return False
        return True


@dataclass(frozen=True)
class TallyDecryptionShare:
    """Partages d'un gardien pour tout le décompte : contest -> sélection -> partage"""

    guardian_id: str
    public_key: ElementModP
    contests: Mapping[str, Mapping[str, CiphertextDecryptionSelection]]
    spoiled_ballots: Mapping[str, "BallotDecryptionShare"]


@dataclass(frozen=True)
class CompensatedTallyDecryptionShare:
    """Contributions d'un gardien présent pour un gardien absent"""

    guardian_id: str
    missing_guardian_id: str
    public_key: ElementModP
    contests: Mapping[str, Mapping[str, CiphertextCompensatedDecryptionSelection]]
    spoiled_ballots: Mapping[str, "CompensatedBallotDecryptionShare"]


@dataclass(frozen=True)
class BallotDecryptionShare:
    """Partages d'un gardien pour un bulletin SPOILED"""

    guardian_id: str
    public_key: ElementModP
    ballot_id: str
    contests: Mapping[str, Mapping[str, CiphertextDecryptionSelection]]


@dataclass(frozen=True)
class CompensatedBallotDecryptionShare:
    guardian_id: str
    missing_guardian_id: str
    public_key: ElementModP
    ballot_id: str
    contests: Mapping[str, Mapping[str, CiphertextCompensatedDecryptionSelection]]
