import logging
from typing import Dict, Optional

from scrutin.config import load_settings
from scrutin.errors import DiscreteLogError
from scrutin.group import G, P, ElementModP

logger = logging.getLogger(__name__)


class DiscreteLog:
    """
    Table bornée de logarithmes discrets en base g

    La table appartient à la session de dépouillement qui la crée ; elle est étendue
    à la demande jusqu'à max_exponent, jamais au-delà.
    """

    def __init__(self, max_exponent: Optional[int] = None):
        if max_exponent is None:
            max_exponent = load_settings().dlog_max_exponent
        if max_exponent < 0:
            raise DiscreteLogError("La borne de la table doit être positive")
        self.max_exponent = max_exponent
        self._table: Dict[int, int] = {1: 0}
        self._last_exponent = 0
        self._last_element = 1

    def __len__(self) -> int:
        return len(self._table)

    def precompute(self, up_to: int) -> None:
        """Remplit la table jusqu'à l'exposant up_to (borné par max_exponent)"""
        up_to = min(up_to, self.max_exponent)
        while self._last_exponent < up_to:
            self._last_exponent += 1
            self._last_element = (self._last_element * G) % P
            self._table[self._last_element] = self._last_exponent

    def discrete_log(self, element: ElementModP) -> int:
        """
        Retrouve m tel que g^m = element

        Args:
            element: g^m mod p avec 0 <= m <= max_exponent

        Returns:
            int: L'exposant m

        Raises:
            DiscreteLogError: Si m dépasse la borne de la table
        """
        target = element.elem
        if target in self._table:
            return self._table[target]

        # Étend la table pas à pas jusqu'à trouver la valeur
        while self._last_exponent < self.max_exponent:
            self._last_exponent += 1
            self._last_element = (self._last_element * G) % P
            self._table[self._last_element] = self._last_exponent
            if self._last_element == target:
                return self._last_exponent

        logger.error("Logarithme discret introuvable sous la borne %d", self.max_exponent)
        raise DiscreteLogError(f"Logarithme discret au-delà de {self.max_exponent}")
