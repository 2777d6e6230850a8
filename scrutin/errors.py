class ScrutinError(Exception):
    """Exception de base du noyau cryptographique"""
    pass


class InvalidElementError(ScrutinError, ValueError):
    """Élément de groupe hors bornes ou entrée mal formée, rejeté à la construction"""
    pass


class DiscreteLogError(ScrutinError, ValueError):
    """Valeur absente de la table de logarithmes discrets bornée"""
    pass


class CeremonyError(ScrutinError):
    """Transition illégale ou échec définitif de la cérémonie des clés"""
    pass


class QuorumError(ScrutinError):
    """Moins de K gardiens disponibles pour le déchiffrement"""
    pass


class DecryptionError(ScrutinError):
    """Un partage ou une preuve de déchiffrement est invalide ou manquant"""
    pass
