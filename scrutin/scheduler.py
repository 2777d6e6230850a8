import logging
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Any, Callable, Iterable, List, Optional, Sequence

from scrutin.config import load_settings

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Répartit un même calcul sur plusieurs jeux d'arguments

    Les résultats sont rendus dans l'ordre des arguments, quel que soit l'ordre de fin
    des tâches. Une exception levée par une tâche est propagée à l'appelant.
    """

    def __init__(self, max_workers: Optional[int] = None):
        self.max_workers = max_workers if max_workers is not None else load_settings().scheduler_max_workers

    def _executor(self, with_processes: bool) -> Executor:
        if with_processes:
            return ProcessPoolExecutor(max_workers=self.max_workers)
        return ThreadPoolExecutor(max_workers=self.max_workers)

    def schedule(
        self,
        task: Callable[..., Any],
        arguments: Iterable[Sequence[Any]],
        with_processes: bool = False,
    ) -> List[Any]:
        """
        Exécute task(*args) pour chaque jeu d'arguments

        Args:
            task: La fonction à exécuter ; picklable si with_processes
            arguments: Les jeux d'arguments
            with_processes: Utilise des processus plutôt que des threads

        Returns:
            List[Any]: Les résultats, dans l'ordre des arguments
        """
        argument_list = [tuple(args) for args in arguments]
        if not argument_list:
            return []

        logger.debug("Ordonnancement de %d tâches", len(argument_list))
        with self._executor(with_processes) as executor:
            futures = [executor.submit(task, *args) for args in argument_list]
            return [future.result() for future in futures]
