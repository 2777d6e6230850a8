import pytest

from scrutin.auxiliary import RsaAuxiliaryChannel
from scrutin.group import rand_q


def test_rsa_channel_round_trip(channel):
    """Une valeur de Z_q en hexadécimal passe par le canal sans altération"""
    keys = channel.generate_key_pair()
    value = rand_q().to_hex()
    encrypted = channel.encrypt(value, keys.public_key)
    assert isinstance(encrypted, bytes)
    assert channel.decrypt(encrypted, keys.secret_key) == value


def test_rsa_channel_failures_return_none(channel, new_guardians):
    """Aucune exception ne traverse le canal : mauvaise clé, chiffré altéré, clé illisible"""
    owner, other = new_guardians[0].auxiliary_keys, new_guardians[1].auxiliary_keys
    encrypted = channel.encrypt("0A", owner.public_key)
    assert channel.decrypt(encrypted, other.secret_key) is None
    tampered = bytes([encrypted[0] ^ 1]) + encrypted[1:]
    assert channel.decrypt(tampered, owner.secret_key) is None
    assert channel.encrypt("0A", "pas une clé") is None
    assert channel.encrypt("X" * 1000, owner.public_key) is None


def test_rsa_channel_rejects_small_keys():
    with pytest.raises(ValueError):
        RsaAuxiliaryChannel(key_size=512)
