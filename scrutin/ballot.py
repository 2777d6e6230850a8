import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from scrutin.chaum_pedersen import ConstantChaumPedersenProof, DisjunctiveChaumPedersenProof
from scrutin.elgamal import ElGamalCiphertext, elgamal_add
from scrutin.group import ElementModP, ElementModQ
from scrutin.hash import hash_elems

logger = logging.getLogger(__name__)


class BallotBoxState(Enum):
    """État d'un bulletin déposé dans l'urne"""

    CAST = "CAST"
    SPOILED = "SPOILED"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class CiphertextBallotSelection:
    """
    Sélection chiffrée d'une contest

    Le hachage porte sur l'identifiant, la graine et le chiffré, pas sur la preuve,
    qui peut être calculée plus tard.
    """

    object_id: str
    description_hash: ElementModQ
    ciphertext: ElGamalCiphertext
    crypto_hash: ElementModQ
    is_placeholder_selection: bool = False
    nonce: Optional[ElementModQ] = None
    proof: Optional[DisjunctiveChaumPedersenProof] = None

    def crypto_hash_with(self, seed_hash: ElementModQ) -> ElementModQ:
        return hash_elems(self.object_id, seed_hash, self.ciphertext.crypto_hash())

    def is_valid_encryption(
        self,
        seed_hash: ElementModQ,
        elgamal_public_key: ElementModP,
        crypto_extended_base_hash: ElementModQ,
    ) -> bool:
        """
        Vérifie le hachage et la preuve disjonctive de la sélection

        Args:
            seed_hash: Le hachage de description attendu
            elgamal_public_key: La clé publique de l'élection
            crypto_extended_base_hash: Le hachage de base étendu

        Returns:
            bool: True si la sélection est bien formée
        """
        if seed_hash != self.description_hash:
            logger.info("Hachage de sélection inattendu : %s", self.object_id)
            return False

        if self.crypto_hash_with(seed_hash) != self.crypto_hash:
            logger.info("Hachage cryptographique incohérent : %s", self.object_id)
            return False

        if self.proof is None:
            logger.info("Aucune preuve pour : %s", self.object_id)
            return False

        return self.proof.is_valid(self.ciphertext, elgamal_public_key, crypto_extended_base_hash)


@dataclass(frozen=True)
class CiphertextBallotContest:
    """Contest chiffrée : ses sélections, leur total chiffré et la preuve de ce total"""

    object_id: str
    description_hash: ElementModQ
    ballot_selections: Tuple[CiphertextBallotSelection, ...]
    crypto_hash: ElementModQ
    encrypted_total: ElGamalCiphertext
    nonce: Optional[ElementModQ] = None
    proof: Optional[ConstantChaumPedersenProof] = None

    def crypto_hash_with(self, seed_hash: ElementModQ) -> ElementModQ:
        return hash_elems(
            self.object_id, seed_hash, [s.crypto_hash for s in self.ballot_selections]
        )

    def elgamal_accumulate(self) -> ElGamalCiphertext:
        return elgamal_add(*(s.ciphertext for s in self.ballot_selections))

    def is_valid_encryption(
        self,
        seed_hash: ElementModQ,
        elgamal_public_key: ElementModP,
        crypto_extended_base_hash: ElementModQ,
    ) -> bool:
        """
        Vérifie le hachage de la contest et la preuve de son total

        Les preuves des sélections ne sont pas vérifiées ici.
        """
        if seed_hash != self.description_hash:
            logger.info("Hachage de contest inattendu : %s", self.object_id)
            return False

        if self.crypto_hash_with(seed_hash) != self.crypto_hash:
            logger.info("Hachage cryptographique incohérent : %s", self.object_id)
            return False

        if self.proof is None:
            logger.info("Aucune preuve pour : %s", self.object_id)
            return False

        accumulation = self.elgamal_accumulate()
        if accumulation != self.encrypted_total:
            logger.info("Total chiffré différent de l'accumulation : %s", self.object_id)
            return False

        return self.proof.is_valid(accumulation, elgamal_public_key, crypto_extended_base_hash)


@dataclass(frozen=True)
class CiphertextBallot:
    """Bulletin chiffré, chaîné au précédent par son code de suivi"""

    object_id: str
    ballot_style: str
    description_hash: ElementModQ
    previous_tracking_hash: ElementModQ
    contests: Tuple[CiphertextBallotContest, ...]
    tracking_hash: ElementModQ
    timestamp: int
    crypto_hash: ElementModQ
    nonce: Optional[ElementModQ] = None

    def crypto_hash_with(self, seed_hash: ElementModQ) -> ElementModQ:
        return hash_elems(self.object_id, seed_hash, [c.crypto_hash for c in self.contests])

    def is_valid_encryption(
        self,
        seed_hash: ElementModQ,
        elgamal_public_key: ElementModP,
        crypto_extended_base_hash: ElementModQ,
    ) -> bool:
        """
        Vérifie tout le bulletin : hachages, preuves des sélections et des contests

        Args:
            seed_hash: Le hachage du manifeste attendu
            elgamal_public_key: La clé publique de l'élection
            crypto_extended_base_hash: Le hachage de base étendu

        Returns:
            bool: True si toutes les vérifications passent
        """
        if seed_hash != self.description_hash:
            logger.info("Hachage de bulletin inattendu : %s", self.object_id)
            return False

        if self.crypto_hash_with(seed_hash) != self.crypto_hash:
            logger.info("Hachage cryptographique incohérent : %s", self.object_id)
            return False

        valid = True
        for contest in self.contests:
            for selection in contest.ballot_selections:
                valid = selection.is_valid_encryption(
                    selection.description_hash, elgamal_public_key, crypto_extended_base_hash
                ) and valid
            valid = contest.is_valid_encryption(
                contest.description_hash, elgamal_public_key, crypto_extended_base_hash
            ) and valid
        return valid


@dataclass(frozen=True)
class SubmittedBallot:
    """Bulletin chiffré accompagné de son état dans l'urne"""

    ballot: CiphertextBallot
    state: BallotBoxState

    @property
    def object_id(self) -> str:
        return self.ballot.object_id

    @property
    def contests(self) -> Tuple[CiphertextBallotContest, ...]:
        return self.ballot.contests
