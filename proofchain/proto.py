#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# proto.py
#
# Higher-level API used by the surrounding web app: addresses, issuing,
# and reading back badges. Everything that touches the ledger is async.
#
import os
from .constants import *
from .keys import get_master_token, derive
from .horizon import HorizonLedger
from .scanner import BadgeScanner
from .issuance import BadgeIssuer
from .exceptions import LedgerNotFoundError
from .utils import is_address


class ProofChain:
    #
    # Call methods on this instance to get work done.
    #
    def __init__(self, ledger=None, master_token=None, demo=False,
                    contract_ref=None, network_passphrase=TESTNET_PASSPHRASE):
        self.ledger = ledger or HorizonLedger()
        self._master_token = master_token
        self.demo = demo
        contract_ref = contract_ref or os.environ.get('CERTIFICATE_CONTRACT_ID', CONTRACT_REF)
        self.scanner = BadgeScanner(self.ledger, contract_ref=contract_ref)
        self.issuer = BadgeIssuer(self.ledger, network_passphrase=network_passphrase)

    def __repr__(self):
        return '<%s via %r>' % (self.__class__.__name__, self.ledger)

    @property
    def master_token(self):
        # looked up on each use; scanning by address needs no secret
        return get_master_token(self._master_token, demo=self.demo)

    def derive_key(self, namespace, identifier):
        return derive(namespace, identifier, self.master_token)

    def derive_address(self, namespace, identifier):
        return self.derive_key(namespace, identifier).address

    def resolve_issuer(self, address_or_identifier):
        # a G... address is used as-is, anything else is an org name
        if is_address(address_or_identifier):
            return address_or_identifier
        return self.derive_address(NS_ORG, address_or_identifier)

    async def issue_badge(self, issuer_identifier, recipient_address, event_id, event_name,
                            metadata=None, namespace=NS_ORG):
        key = self.derive_key(namespace, issuer_identifier)
        return await self.issuer.issue(key, recipient_address, event_id, event_name, extra=metadata)

    async def get_badges_for_issuer(self, issuer_address_or_identifier, known_events=None):
        addr = self.resolve_issuer(issuer_address_or_identifier)
        return await self.scanner.scan_issued(addr, known_events)

    async def get_badges_for_recipient(self, recipient_address):
        return await self.scanner.scan_received(recipient_address)

    async def get_badge_counts(self, issuer_address_or_identifier, known_events=None):
        addr = self.resolve_issuer(issuer_address_or_identifier)
        return await self.scanner.count_by_event(addr, known_events)

    async def get_badges_for_event(self, issuer_address_or_identifier, event_id):
        addr = self.resolve_issuer(issuer_address_or_identifier)
        return await self.scanner.badges_for_event(addr, event_id)

    async def verify_badge(self, tx_hash):
        return await self.scanner.verify_badge(tx_hash)

    async def get_xlm_balance(self, address):
        # native balance as text; unfunded accounts have "0"
        try:
            acct = await self.ledger.load_account(address)
        except LedgerNotFoundError:
            return '0'

        for b in acct.balances:
            if b.get('asset_type') == 'native':
                return b.get('balance', '0')

        return '0'

# EOF
