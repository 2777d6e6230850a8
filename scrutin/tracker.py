from scrutin.group import ElementModQ
from scrutin.hash import hash_elems


def get_hash_for_device(uuid: int, location: str) -> ElementModQ:
    """
    Graine du code de suivi d'un appareil de chiffrement

    Args:
        uuid: Identifiant unique de l'appareil
        location: Emplacement de l'appareil

    Returns:
        ElementModQ: H(uuid, location)
    """
    return hash_elems(uuid, location)


def get_first_tracker_seed(crypto_extended_base_hash: ElementModQ, device_hash: ElementModQ) -> ElementModQ:
    """Code initial de la chaîne : H0 = H(Q̄, hachage de l'appareil)"""
    return hash_elems(crypto_extended_base_hash, device_hash)


def get_rotating_tracker_hash(
    prev_hash: ElementModQ, timestamp: int, ballot_hash: ElementModQ
) -> ElementModQ:
    """
    Code de suivi suivant : code_n = H(code_{n-1}, horodatage, hachage du bulletin)

    Args:
        prev_hash: Le code précédent de la chaîne
        timestamp: L'horodatage du bulletin, en secondes
        ballot_hash: Le hachage du bulletin chiffré

    Returns:
        ElementModQ: Le nouveau code
    """
    return hash_elems(prev_hash, timestamp, ballot_hash)
