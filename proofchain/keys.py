#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# Deterministic keypairs from (namespace, identifier, shared secret).
#
# - nothing secret is stored: the private key is re-derived on demand
# - same inputs always give the same Stellar account
#
import os
from hashlib import sha256
from collections import namedtuple
from stellar_sdk import Keypair
from .constants import NAMESPACES, NS_ORG, DEMO_MASTER_TOKEN
from .exceptions import MissingSecretError


class DerivedKey(namedtuple('DerivedKey', 'address signing_key')):
    # address: G... account id
    # signing_key: raw 32-byte ed25519 seed; don't persist it
    __slots__ = ()

    def keypair(self):
        return Keypair.from_raw_ed25519_seed(self.signing_key)

    def __repr__(self):
        return '<DerivedKey %s>' % self.address


def get_master_token(explicit=None, demo=False):
    # Find the shared secret: caller's value, then environment.
    # - demo constant is only allowed when asked for explicitly
    token = explicit or os.environ.get('MASTER_TOKEN')
    if token:
        return token
    if demo:
        return DEMO_MASTER_TOKEN

    raise MissingSecretError("MASTER_TOKEN is required for key derivation")

def normalize_identifier(namespace, identifier):
    # organizations are named by humans: ignore case and outer whitespace
    # - user/github ids are used as-is (numeric ids become strings)
    if namespace not in NAMESPACES:
        raise ValueError(f"Unknown namespace: {namespace}")

    ident = str(identifier) if identifier is not None else ''
    if namespace == NS_ORG:
        ident = ident.strip().lower()

    if not ident:
        raise ValueError("Identifier is required")

    return ident

def seed_string(namespace, identifier, shared_secret):
    return f'{namespace}:{normalize_identifier(namespace, identifier)}:{shared_secret}'

def derive(namespace, identifier, shared_secret):
    # Pure function: sha256 of the seed string is the ed25519 seed.
    if not shared_secret:
        raise MissingSecretError("Shared secret is required for key derivation")

    seed = sha256(seed_string(namespace, identifier, shared_secret).encode('utf-8')).digest()
    assert len(seed) == 32

    kp = Keypair.from_raw_ed25519_seed(seed)

    return DerivedKey(kp.public_key, seed)

def derive_address(namespace, identifier, shared_secret):
    return derive(namespace, identifier, shared_secret).address

# EOF
