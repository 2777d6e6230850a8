from scrutin.group import Q_MINUS_ONE, ElementModP, ElementModQ
from scrutin.hash import hash_elems


def test_hash_is_deterministic():
    """Mêmes entrées, même empreinte ; empreinte dans [0, Q - 1)"""
    a = hash_elems("scrutin", 12, ElementModQ(5), ElementModP(7))
    b = hash_elems("scrutin", 12, ElementModQ(5), ElementModP(7))
    assert a == b
    assert 0 <= a.elem < Q_MINUS_ONE


def test_hash_depends_on_order_and_content():
    assert hash_elems("a", "b") != hash_elems("b", "a")
    assert hash_elems("a") != hash_elems("a", "")
    assert hash_elems(1) != hash_elems(2)


def test_elements_hash_as_hex():
    """Un élément de groupe est haché via son hexadécimal : même valeur, même jeton"""
    assert hash_elems(ElementModQ(10)) == hash_elems("0A")
    assert hash_elems(ElementModQ(10)) == hash_elems(ElementModP(10))


def test_empty_input_hashes_as_null():
    """Sans argument, None et séquence vide donnent tous le jeton "null" """
    assert hash_elems() == hash_elems(None)
    assert hash_elems([]) == hash_elems(None)
    assert hash_elems(()) == hash_elems("null")
    assert hash_elems(None) != hash_elems("")
    assert hash_elems("a", []) == hash_elems("a", None)


def test_nested_sequences_hash_recursively():
    """Une séquence imbriquée est remplacée par le hachage de son contenu"""
    inner = hash_elems("x", "y")
    assert hash_elems("a", ["x", "y"]) == hash_elems("a", inner)
    assert hash_elems(["x", "y"]) == hash_elems(("x", "y"))


def test_objects_with_crypto_hash():
    """Les objets exposant crypto_hash() sont hachés via cette empreinte"""

    class Hashable:
        def crypto_hash(self) -> ElementModQ:
            return ElementModQ(99)

    assert hash_elems(Hashable()) == hash_elems(ElementModQ(99))
