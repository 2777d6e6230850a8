from typing import Any, Sequence

from Crypto.Hash import SHA256

from scrutin.group import ElementModP, ElementModQ, Q_MINUS_ONE


def _token(x: Any) -> str:
    # L'ordre des tests compte : str est aussi une Sequence
    if x is None:
        return "null"
    if isinstance(x, (ElementModP, ElementModQ)):
        return x.to_hex()
    if callable(getattr(x, "crypto_hash", None)):
        return x.crypto_hash().to_hex()
    if isinstance(x, str):
        return x
    if isinstance(x, Sequence):
        return hash_elems(*x).to_hex() if len(x) > 0 else "null"
    return str(x)


def hash_elems(*a: Any) -> ElementModQ:
    """
    Hache une suite d'éléments hétérogènes avec SHA-256

    Chaque élément est converti en jeton texte suivi de "|" : hexadécimal pour les éléments
    de groupe, "null" pour None ou une séquence vide, hachage récursif pour les séquences,
    str() sinon. Le flux commence par "|" ; sans argument il vaut "|null|", comme pour None.

    Args:
        a: Les éléments à hacher, dans l'ordre

    Returns:
        ElementModQ: L'empreinte interprétée en entier non signé, réduite modulo Q - 1
    """
    h = SHA256.new(b"|")
    if not a:
        h.update(b"null|")
    for x in a:
        h.update((_token(x) + "|").encode("utf-8"))
    return ElementModQ(int.from_bytes(h.digest(), byteorder="big") % Q_MINUS_ONE)
