from typing import Any, List, Union

from scrutin.errors import InvalidElementError
from scrutin.group import ElementModQ
from scrutin.hash import hash_elems


class Nonces:
    """
    Suite déterministe de nonces dérivés d'une graine et d'en-têtes optionnels

    Deux instances construites avec la même graine et les mêmes en-têtes produisent
    exactement la même suite, ce qui rend un chiffrement reproductible pour l'audit.
    """

    def __init__(self, seed: ElementModQ, *headers: Any):
        """
        Args:
            seed: La graine
            headers: En-têtes de contexte ; s'il y en a, la graine effective est H(seed, headers)
        """
        if headers:
            self.seed = hash_elems(seed, list(headers))
        else:
            self.seed = seed

    def get(self, index: int) -> ElementModQ:
        """
        Retourne le nonce d'indice index

        Raises:
            InvalidElementError: Si l'indice est négatif
        """
        if index < 0:
            raise InvalidElementError("Les indices de nonce doivent être positifs")
        return hash_elems(self.seed, index)

    def take(self, count: int) -> List[ElementModQ]:
        """Retourne les count premiers nonces"""
        return [self.get(i) for i in range(count)]

    def __getitem__(self, index: Union[int, slice]) -> Union[ElementModQ, List[ElementModQ]]:
        if isinstance(index, slice):
            if index.stop is None:
                raise InvalidElementError("Une tranche de nonces doit être bornée")
            start, stop, step = index.indices(index.stop)
            return [self.get(i) for i in range(start, stop, step)]
        return self.get(index)
