#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# issuance.py
#
# Emit a badge: one-stroop payment from issuer to recipient, with the
# compact memo, plus the metadata as data entries on the issuer account.
#
# No retries here. Ledger errors (bad sequence, no balance, unfunded
# destination) go back to the caller as-is. Two issues at once for the
# same issuer are ordered by the ledger's sequence numbers, nothing else.
#
import base64, logging
from stellar_sdk import Account, Asset, Keypair, TransactionBuilder
from .constants import *
from .exceptions import LedgerError
from .keys import DerivedKey
from .memo import CertificateMetadata, encode, compact_memo
from .utils import is_address

logger = logging.getLogger(__name__)


class BadgeIssuer:

    def __init__(self, ledger, network_passphrase=TESTNET_PASSPHRASE, base_fee=BASE_FEE,
                        max_entries_per_txn=MAX_DATA_ENTRIES_PER_TXN,
                        max_chunk_bytes=DATA_VALUE_LIMIT):
        assert 1 <= max_entries_per_txn <= MAX_DATA_ENTRIES_PER_TXN
        self.ledger = ledger
        self.network_passphrase = network_passphrase
        self.base_fee = base_fee
        self.max_entries_per_txn = max_entries_per_txn
        self.max_chunk_bytes = max_chunk_bytes

    def _builder(self, account):
        return TransactionBuilder(source_account=account,
                                    network_passphrase=self.network_passphrase,
                                    base_fee=self.base_fee)

    def build_envelopes(self, keypair, sequence, recipient, metadata):
        # Signed envelopes, in submit order. First one holds the payment.
        # - chunks that don't fit go in data-only follow-ups
        # - build() bumps the sequence number, so follow-ups chain properly
        account = Account(keypair.public_key, sequence)
        chunks = encode(metadata, self.max_chunk_bytes)

        rv = []
        first = True
        while first or chunks:
            here, chunks = chunks[:self.max_entries_per_txn], chunks[self.max_entries_per_txn:]

            tb = self._builder(account)
            if first:
                tb.add_text_memo(compact_memo(metadata.event_id))
                tb.append_payment_op(destination=recipient, asset=Asset.native(),
                                        amount=MARKER_AMOUNT)

            for ch in here:
                tb.append_manage_data_op(data_name=ch.key, data_value=base64.b64decode(ch.value))

            env = tb.set_timeout(TX_TIMEOUT).build()
            env.sign(keypair)
            rv.append(env)
            first = False

        return rv

    async def issue(self, issuer_key, recipient_address, event_id, event_name, extra=None):
        # Returns hash of the payment transaction.
        if isinstance(issuer_key, DerivedKey):
            kp = issuer_key.keypair()
        else:
            assert isinstance(issuer_key, Keypair)
            kp = issuer_key

        if not is_address(recipient_address):
            raise ValueError(f"Not a Stellar address: {recipient_address}")
        if not event_id:
            raise ValueError("event_id is required")

        metadata = CertificateMetadata.from_extra(event_id, event_name, extra)

        # source account must exist: not-found propagates
        account = await self.ledger.load_account(kp.public_key)

        envelopes = self.build_envelopes(kp, account.sequence, recipient_address, metadata)

        tx_hash = None
        for env in envelopes:
            try:
                got = await self.ledger.submit(env.to_xdr())
            except LedgerError as exc:
                if tx_hash:
                    # badge exists; caller must not issue it again
                    logger.warning("Badge %s issued, but follow-up data txn failed: %s",
                                        tx_hash, exc)
                    exc.payment_hash = tx_hash
                raise
            tx_hash = tx_hash or got

        logger.info("Issued badge for event %s to %s: %s (%d txn)",
                        event_id, recipient_address, tx_hash, len(envelopes))

        return tx_hash

# EOF
