from enum import Enum


class ProofUsage(Enum):
    """Étape du protocole ayant produit une preuve"""

    Unknown = "Unknown"
    SecretValue = "Prove knowledge of secret value"
    SelectionLimit = "Prove value within selection's limit"
    SelectionValue = "Prove selection's value (0 or 1)"
