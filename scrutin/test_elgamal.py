import pytest

from scrutin.dlog import DiscreteLog
from scrutin.elgamal import (
    elgamal_add,
    elgamal_combine_public_keys,
    elgamal_encrypt,
    elgamal_keypair_from_secret,
    elgamal_keypair_random,
    elgamal_zero,
)
from scrutin.errors import DiscreteLogError, InvalidElementError
from scrutin.group import ONE_MOD_Q, ZERO_MOD_Q, ElementModQ, g_pow_p, mult_p, rand_range_q


@pytest.fixture
def dlog() -> DiscreteLog:
    return DiscreteLog(max_exponent=1000)


def test_keypair_invariant():
    """public_key = g^secret_key"""
    keypair = elgamal_keypair_random()
    assert keypair.public_key == g_pow_p(keypair.secret_key)
    assert keypair.public_key.is_valid_residue()


def test_keypair_rejects_trivial_secret():
    with pytest.raises(InvalidElementError):
        elgamal_keypair_from_secret(ZERO_MOD_Q)
    with pytest.raises(InvalidElementError):
        elgamal_keypair_from_secret(ONE_MOD_Q)


def test_encrypt_decrypt(dlog):
    keypair = elgamal_keypair_random()
    for message in (0, 1, 7, 42):
        nonce = rand_range_q(1)
        ciphertext = elgamal_encrypt(message, nonce, keypair.public_key)
        assert ciphertext.decrypt(keypair.secret_key, dlog) == message
        assert ciphertext.decrypt_known_nonce(keypair.public_key, nonce, dlog) == message
        assert ciphertext.is_valid_residue()


def test_encrypt_rejects_zero_nonce_and_negative_message():
    keypair = elgamal_keypair_random()
    assert elgamal_encrypt(1, ZERO_MOD_Q, keypair.public_key) is None
    with pytest.raises(InvalidElementError):
        elgamal_encrypt(-1, rand_range_q(1), keypair.public_key)


def test_homomorphic_addition(dlog):
    """Le produit des chiffrés chiffre la somme des messages"""
    keypair = elgamal_keypair_random()
    messages = [1, 0, 1, 1, 0]
    ciphertexts = [elgamal_encrypt(m, rand_range_q(1), keypair.public_key) for m in messages]
    total = elgamal_add(*ciphertexts)
    assert total.decrypt(keypair.secret_key, dlog) == sum(messages)
    assert elgamal_add(elgamal_zero(), ciphertexts[0]) == ciphertexts[0]
    with pytest.raises(InvalidElementError):
        elgamal_add()


def test_partial_decryptions_combine(dlog):
    """Avec une clé conjointe, le produit des déchiffrements partiels déchiffre"""
    keypairs = [elgamal_keypair_random() for _ in range(3)]
    joint_key = elgamal_combine_public_keys(k.public_key for k in keypairs)
    ciphertext = elgamal_encrypt(5, rand_range_q(1), joint_key)
    product = mult_p(*[ciphertext.partial_decrypt(k.secret_key) for k in keypairs])
    assert ciphertext.decrypt_known_product(product, dlog) == 5


def test_discrete_log_is_bounded():
    dlog = DiscreteLog(max_exponent=10)
    assert dlog.discrete_log(g_pow_p(ElementModQ(10))) == 10
    assert len(dlog) == 11
    with pytest.raises(DiscreteLogError):
        dlog.discrete_log(g_pow_p(ElementModQ(11)))


def test_discrete_log_precompute():
    dlog = DiscreteLog(max_exponent=50)
    dlog.precompute(100)
    assert len(dlog) == 51
    assert dlog.discrete_log(g_pow_p(ElementModQ(37))) == 37
    with pytest.raises(DiscreteLogError):
        DiscreteLog(max_exponent=-1)
