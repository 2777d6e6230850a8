import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator

ENV_PREFIX = "SCRUTIN_"


class CeremonyDetails(BaseModel):
    """Paramètres de seuil de l'élection : N gardiens, quorum K"""

    model_config = {"frozen": True}

    number_of_guardians: int = Field(..., ge=1, description="Nombre total de gardiens (N)")
    quorum: int = Field(..., ge=1, description="Nombre minimal de gardiens pour déchiffrer (K)")

    @model_validator(mode="after")
    def check_quorum(self) -> "CeremonyDetails":
        if self.quorum > self.number_of_guardians:
            raise ValueError("Le quorum ne peut pas dépasser le nombre de gardiens")
        return self

    @property
    def max_missing(self) -> int:
        return self.number_of_guardians - self.quorum


class ScrutinSettings(BaseModel):
    """Réglages d'exécution du noyau"""

    model_config = {"frozen": True}

    rsa_key_size: int = Field(4096, ge=1024, description="Taille des clés RSA du canal auxiliaire")
    miller_rabin_iterations: int = Field(40, ge=1, description="Itérations du test de primalité")
    dlog_max_exponent: int = Field(100_000, ge=1, description="Plus grand décompte retrouvable par logarithme discret")
    max_backup_attempts: int = Field(3, ge=1, description="Nombre de publications d'une sauvegarde avant abandon")
    scheduler_max_workers: Optional[int] = Field(None, ge=1, description="Nombre de workers de l'ordonnanceur")
    log_level: str = Field("INFO", description="Niveau de journalisation")


def load_settings(**overrides: Any) -> ScrutinSettings:
    """
    Construit les réglages à partir des variables d'environnement SCRUTIN_*

    Args:
        overrides: Valeurs explicites, prioritaires sur l'environnement

    Returns:
        ScrutinSettings: Les réglages validés

    Raises:
        pydantic.ValidationError: Si une valeur est invalide
    """
    values: Dict[str, Any] = {}
    for name in ScrutinSettings.model_fields:
        raw = os.environ.get(ENV_PREFIX + name.upper())
        if raw is not None:
            values[name] = raw
    values.update(overrides)
    return ScrutinSettings(**values)

