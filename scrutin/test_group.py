import pytest

from scrutin.errors import InvalidElementError
from scrutin.group import (
    G,
    ONE_MOD_P,
    P,
    Q,
    R,
    ZERO_MOD_Q,
    ElementModP,
    ElementModQ,
    a_minus_b_q,
    a_plus_bc_q,
    add_q,
    div_p,
    div_q,
    g_pow_p,
    hex_to_q,
    int_to_p,
    int_to_q,
    int_to_p_unchecked,
    int_to_q_unchecked,
    is_prime,
    mult_inv_p,
    mult_p,
    mult_q,
    negate_q,
    pow_p,
    pow_q,
    rand_q,
    rand_range_q,
    validate_params,
)


def test_group_parameters():
    """Les paramètres du groupe sont cohérents : p - 1 = q * r et g d'ordre q"""
    assert validate_params()
    assert P - 1 == Q * R
    assert Q.bit_length() == 256
    assert pow(G, Q, P) == 1
    assert is_prime(Q)


def test_validate_params_rejects_bad_generator():
    assert not validate_params(P, Q, 1)
    assert not validate_params(P, Q, P)
    assert not validate_params(23, 7, 2)


def test_is_prime_small_values():
    assert [n for n in range(30) if is_prime(n)] == [2, 3, 5, 7, 11, 13, 17, 19, 23, 29]
    assert not is_prime(561)  # nombre de Carmichael


def test_elements_reject_out_of_range():
    """La construction rejette les valeurs hors bornes"""
    with pytest.raises(InvalidElementError):
        int_to_q(Q)
    with pytest.raises(InvalidElementError):
        int_to_q(-1)
    with pytest.raises(InvalidElementError):
        int_to_p(P)
    with pytest.raises(InvalidElementError):
        ElementModQ("12")
    assert int_to_q_unchecked(Q + 5) == ElementModQ(5)
    assert int_to_p_unchecked(P + 2) == ElementModP(2)


def test_elements_compare_by_value():
    assert ElementModQ(42) == int_to_q(42)
    assert len({ElementModQ(1), ElementModQ(1), ElementModQ(2)}) == 2
    assert ElementModQ(3) != ElementModP(3)


def test_to_hex_is_uppercase_and_even_length():
    assert ElementModQ(0).to_hex() == "00"
    assert ElementModQ(10).to_hex() == "0A"
    assert ElementModQ(255).to_hex() == "FF"
    assert ElementModQ(256).to_hex() == "0100"
    assert str(ElementModP(0xABC)) == "0ABC"


def test_hex_to_q():
    assert hex_to_q("0A") == ElementModQ(10)
    with pytest.raises(InvalidElementError):
        hex_to_q("pas-hexa")
    with pytest.raises(InvalidElementError):
        hex_to_q(format(Q, "X"))


def test_arithmetic_mod_q():
    a, b = rand_q(), rand_q()
    assert add_q(a, b) == int_to_q((a.elem + b.elem) % Q)
    assert a_minus_b_q(add_q(a, b), b) == a
    assert add_q(a, negate_q(a)) == ZERO_MOD_Q
    assert a_plus_bc_q(1, 2, 3) == ElementModQ(7)
    assert mult_q(a, b) == int_to_q(a.elem * b.elem % Q)
    assert pow_q(2, 10) == ElementModQ(1024)
    assert add_q() == ZERO_MOD_Q


def test_div_q_inverts_multiplication():
    a, b = rand_range_q(1), rand_range_q(1)
    assert mult_q(div_q(a, b), b) == a
    with pytest.raises(InvalidElementError):
        div_q(a, 0)


def test_arithmetic_mod_p():
    x = g_pow_p(rand_q())
    assert mult_p(x, mult_inv_p(x)) == ONE_MOD_P
    assert div_p(x, x) == ONE_MOD_P
    assert g_pow_p(ZERO_MOD_Q) == ONE_MOD_P
    assert pow_p(G, 2) == mult_p(G, G)
    with pytest.raises(InvalidElementError):
        mult_inv_p(ElementModP(0))


def test_valid_residue():
    """Seuls les éléments du sous-groupe d'ordre q sont des résidus valides"""
    assert g_pow_p(rand_q()).is_valid_residue()
    assert not ElementModP(0).is_valid_residue()
    # P - 1 est d'ordre 2, hors du sous-groupe d'ordre q
    assert not ElementModP(P - 1).is_valid_residue()


def test_rand_range_q_bounds():
    for _ in range(20):
        assert rand_range_q(Q - 2).elem in (Q - 2, Q - 1)
    with pytest.raises(InvalidElementError):
        rand_range_q(Q)
