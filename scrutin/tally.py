import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from scrutin.ballot import BallotBoxState, CiphertextBallotContest, SubmittedBallot
from scrutin.elgamal import ElGamalCiphertext, elgamal_add, elgamal_zero
from scrutin.encrypt import ContestDescription
from scrutin.group import ElementModP, ElementModQ
from scrutin.scheduler import Scheduler

logger = logging.getLogger(__name__)


@dataclass
class CiphertextTallySelection:
    """Accumulateur chiffré d'une sélection réelle"""

    object_id: str
    description_hash: ElementModQ
    ciphertext: ElGamalCiphertext = field(default_factory=elgamal_zero)

    def elgamal_accumulate(self, elements: Sequence[ElGamalCiphertext]) -> ElGamalCiphertext:
        """Ajoute les chiffrés à l'accumulateur et renvoie le nouveau total"""
        self.ciphertext = elgamal_add(self.ciphertext, *elements)
        return self.ciphertext


@dataclass
class CiphertextTallyContest:
    """Accumulateurs d'une contest, sans les sélections fictives"""

    object_id: str
    description_hash: ElementModQ
    tally_selections: Dict[str, CiphertextTallySelection]

    def accumulate_contest(self, contest_selections: Iterable) -> bool:
        """
        Accumule les sélections réelles d'une contest chiffrée

        Args:
            contest_selections: Les sélections chiffrées de la contest

        Returns:
            bool: False si les sélections ne correspondent pas aux sélections attendues
        """
        selections = {s.object_id: s for s in contest_selections if not s.is_placeholder_selection}
        if set(selections) != set(self.tally_selections):
            logger.warning("Sélections inattendues pour la contest %s", self.object_id)
            return False

        for object_id, selection in selections.items():
            self.tally_selections[object_id].elgamal_accumulate([selection.ciphertext])
        return True


def tally_contests_from(descriptions: Iterable[ContestDescription]) -> Dict[str, CiphertextTallyContest]:
    contests: Dict[str, CiphertextTallyContest] = {}
    for description in descriptions:
        contests[description.object_id] = CiphertextTallyContest(
            description.object_id,
            description.crypto_hash(),
            {
                s.object_id: CiphertextTallySelection(s.object_id, s.crypto_hash())
                for s in description.selections
            },
        )
    return contests


def _sum_contest(contests: Sequence[CiphertextBallotContest], selection_id: str) -> ElGamalCiphertext:
    ciphertexts = [
        s.ciphertext
        for c in contests
        for s in c.ballot_selections
        if s.object_id == selection_id
    ]
    return elgamal_add(elgamal_zero(), *ciphertexts)


class CiphertextTally:
    """
    Décompte chiffré : accumule homomorphiquement les bulletins déposés

    Les bulletins CAST sont additionnés ; les bulletins SPOILED sont conservés à part pour
    être déchiffrés individuellement. Un bulletin n'est compté qu'une fois.
    """

    def __init__(self, object_id: str, contest_descriptions: Sequence[ContestDescription]):
        self.object_id = object_id
        self.contest_descriptions = list(contest_descriptions)
        self.contests = tally_contests_from(self.contest_descriptions)
        self.cast_ballot_ids: Set[str] = set()
        self.spoiled_ballots: Dict[str, SubmittedBallot] = {}

    def __len__(self) -> int:
        return len(self.cast_ballot_ids) + len(self.spoiled_ballots)

    def contains(self, object_id: str) -> bool:
        return object_id in self.cast_ballot_ids or object_id in self.spoiled_ballots

    def _check(self, ballot: SubmittedBallot) -> bool:
        if ballot.state == BallotBoxState.UNKNOWN:
            logger.warning("Bulletin %s d'état inconnu refusé", ballot.object_id)
            return False
        if self.contains(ballot.object_id):
            logger.warning("Bulletin %s déjà compté", ballot.object_id)
            return False
        for contest in ballot.contests:
            if contest.object_id not in self.contests:
                logger.warning("Bulletin %s : contest inconnue %s", ballot.object_id, contest.object_id)
                return False
            expected = set(self.contests[contest.object_id].tally_selections)
            actual = {s.object_id for s in contest.ballot_selections if not s.is_placeholder_selection}
            if expected != actual:
                logger.warning("Bulletin %s : sélections inattendues", ballot.object_id)
                return False
        return True

    def append(self, ballot: SubmittedBallot) -> bool:
        """
        Ajoute un bulletin au décompte

        Args:
            ballot: Le bulletin déposé

        Returns:
            bool: True si le bulletin a été pris en compte
        """
        if not self._check(ballot):
            return False

        if ballot.state == BallotBoxState.SPOILED:
            self.spoiled_ballots[ballot.object_id] = ballot
            return True

        for contest in ballot.contests:
            self.contests[contest.object_id].accumulate_contest(contest.ballot_selections)
        self.cast_ballot_ids.add(ballot.object_id)
        return True

    def batch_append(self, ballots: Iterable[SubmittedBallot], scheduler: Optional[Scheduler] = None) -> bool:
        """
        Ajoute un lot de bulletins, les sommes par sélection étant calculées en parallèle

        Args:
            ballots: Les bulletins déposés
            scheduler: L'ordonnanceur ; un ordonnanceur par défaut sinon

        Returns:
            bool: True si tous les bulletins ont été pris en compte
        """
        accepted: List[SubmittedBallot] = []
        all_accepted = True
        seen: Set[str] = set()
        for ballot in ballots:
            if ballot.object_id in seen or not self._check(ballot):
                all_accepted = False
                continue
            seen.add(ballot.object_id)
            accepted.append(ballot)

        cast: List[SubmittedBallot] = []
        for ballot in accepted:
            if ballot.state == BallotBoxState.SPOILED:
                self.spoiled_ballots[ballot.object_id] = ballot
            else:
                cast.append(ballot)

        if scheduler is None:
            scheduler = Scheduler()

        for contest_id, contest in self.contests.items():
            ballot_contests = [
                c for b in cast for c in b.contests if c.object_id == contest_id
            ]
            selection_ids = list(contest.tally_selections)
            totals = scheduler.schedule(
                _sum_contest, [(ballot_contests, selection_id) for selection_id in selection_ids]
            )
            for selection_id, total in zip(selection_ids, totals):
                contest.tally_selections[selection_id].elgamal_accumulate([total])

        self.cast_ballot_ids.update(b.object_id for b in cast)
        return all_accepted

    def count(self) -> int:
        return len(self.cast_ballot_ids)


@dataclass(frozen=True)
class PlaintextTallySelection:
    """Décompte en clair d'une sélection, avec les partages qui l'ont produit"""

    object_id: str
    tally: int
    value: ElementModP
    message: ElGamalCiphertext
    shares: tuple = ()


@dataclass(frozen=True)
class PlaintextTallyContest:
    object_id: str
    selections: Mapping[str, PlaintextTallySelection]


@dataclass(frozen=True)
class PlaintextTally:
    """Résultat déchiffré : contests des bulletins CAST et bulletins SPOILED un à un"""

    object_id: str
    contests: Mapping[str, PlaintextTallyContest]
    spoiled_ballots: Mapping[str, Mapping[str, PlaintextTallyContest]] = field(default_factory=dict)
