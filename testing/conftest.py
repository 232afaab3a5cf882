#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
import pytest, asyncio, base64
from hashlib import sha256
from decimal import Decimal
from datetime import datetime, timedelta

from stellar_sdk import TransactionEnvelope, TextMemo, Keypair, ManageData
from stellar_sdk import Payment as PaymentOp
from stellar_sdk.exceptions import BadSignatureError

from proofchain.constants import TESTNET_PASSPHRASE, STROOPS
from proofchain.exceptions import LedgerError, LedgerNotFoundError, SubmissionError
from proofchain.horizon import AccountInfo, Payment, TxnInfo, Effect
from proofchain.keys import derive_address

SECRET = 'test-master-token'

def pytest_addoption(parser):
    parser.addoption("--horizon", action="store", type=str,
                     default=None, help="Horizon server URL for live ledger tests")

def pytest_configure(config):
    config.addinivalue_line("markers", "network: needs a live Horizon server (--horizon URL)")

def amount_str(v):
    return '%.7f' % Decimal(str(v))


class FakeLedger:
    #
    # In-memory ledger with the same async API as HorizonLedger.
    # Applies real signed XDR envelopes, so issuance can be checked end-to-end.
    #
    FUNDER = derive_address('org', 'friendbot', 'not-a-secret')

    def __init__(self, network_passphrase=TESTNET_PASSPHRASE):
        self.network_passphrase = network_passphrase
        self.accounts = {}
        self.payments = []      # oldest first, like the ledger
        self.txns = {}
        self.effects = {}
        self.submitted = []
        self.queries = []
        self.fail_transactions = set()
        self.delays = {}
        self._count = 0

    def _tick(self):
        self._count += 1
        when = datetime(2024, 3, 1) + timedelta(minutes=self._count)
        return sha256(b'txn%d' % self._count).hexdigest(), when.strftime('%Y-%m-%dT%H:%M:%SZ')

    def _record(self, source, dest, amount, memo, memo_type, op_type='payment'):
        tx_hash, when = self._tick()
        self.txns[tx_hash] = TxnInfo(tx_hash, memo, memo_type if memo else 'none', True, when)
        self.effects[tx_hash] = []
        self.payments.append(Payment(str(len(self.payments)+1), op_type, source, dest,
                                        amount_str(amount), 'native', tx_hash, when))
        return tx_hash

    def fund(self, address, xlm='10000'):
        self.accounts[address] = dict(sequence=(len(self.accounts)+1) << 32,
                                        balance=Decimal(xlm), data={})
        self._record(self.FUNDER, address, xlm, None, None, op_type='create_account')

    def add_payment(self, source, dest, amount, memo=None, memo_type='text', data=None):
        # craft history directly, e.g. badges from older issuing code
        tx_hash = self._record(source, dest, amount, memo, memo_type)
        for name, value in (data or {}).items():
            self.effects[tx_hash].append(Effect('data_created', name,
                                            base64.b64encode(value).decode('ascii')))
        return tx_hash

    async def _pause(self, tx_hash):
        await asyncio.sleep(self.delays.get(tx_hash, 0))

    async def load_account(self, address):
        acct = self.accounts.get(address)
        if acct is None:
            raise LedgerNotFoundError(f"Not found: /accounts/{address}")
        return AccountInfo(address, acct['sequence'],
                            [dict(asset_type='native', balance=amount_str(acct['balance']))])

    async def payments_for_account(self, address, order='desc', limit=200):
        self.queries.append((address, order, limit))
        if address not in self.accounts:
            raise LedgerNotFoundError(f"Not found: /accounts/{address}/payments")
        rv = [p for p in self.payments if address in (p.source, p.destination)]
        if order == 'desc':
            rv.reverse()
        return rv[0:limit]

    async def get_transaction(self, tx_hash):
        await self._pause(tx_hash)
        if tx_hash in self.fail_transactions:
            raise LedgerError(f"500 on /transactions/{tx_hash}: boom", 500)
        if tx_hash not in self.txns:
            raise LedgerNotFoundError(f"Not found: /transactions/{tx_hash}")
        return self.txns[tx_hash]

    async def get_effects(self, tx_hash):
        await self._pause(tx_hash)
        return list(self.effects.get(tx_hash, []))

    async def submit(self, envelope_xdr):
        self.submitted.append(envelope_xdr)

        env = TransactionEnvelope.from_xdr(envelope_xdr, self.network_passphrase)
        tx = env.transaction
        src = tx.source.account_id
        acct = self.accounts.get(src)

        def reject(tx_code, op_codes=None):
            codes = dict(transaction=tx_code)
            if op_codes:
                codes['operations'] = op_codes
            raise SubmissionError(f'Transaction Failed: {tx_code}', 400, codes)

        if acct is None:
            reject('tx_no_source_account')

        signer = Keypair.from_public_key(src)
        for sig in env.signatures:
            try:
                signer.verify(env.hash(), sig.signature)
                break
            except BadSignatureError:
                continue
        else:
            reject('tx_bad_auth')

        if tx.sequence != acct['sequence'] + 1:
            reject('tx_bad_seq')

        spend = Decimal(tx.fee) / STROOPS
        for op in tx.operations:
            if isinstance(op, PaymentOp):
                if op.destination.account_id not in self.accounts:
                    reject('tx_failed', ['op_no_destination'])
                spend += Decimal(str(op.amount))

        if acct['balance'] < spend:
            reject('tx_insufficient_balance')

        # apply
        acct['sequence'] = tx.sequence
        acct['balance'] -= Decimal(tx.fee) / STROOPS

        memo = tx.memo.memo_text.decode('utf-8') if isinstance(tx.memo, TextMemo) else None
        _, when = self._tick()
        tx_hash = env.hash_hex()
        self.txns[tx_hash] = TxnInfo(tx_hash, memo, 'text' if memo else 'none', True, when)
        self.effects[tx_hash] = effects = []

        for op in tx.operations:
            if isinstance(op, PaymentOp):
                dest = op.destination.account_id
                amt = Decimal(str(op.amount))
                acct['balance'] -= amt
                self.accounts[dest]['balance'] += amt
                self.payments.append(Payment(str(len(self.payments)+1), 'payment', src, dest,
                                                amount_str(amt), 'native', tx_hash, when))
                effects.append(Effect('account_debited', None, None))
            elif isinstance(op, ManageData):
                kind = 'data_updated' if op.data_name in acct['data'] else 'data_created'
                acct['data'][op.data_name] = op.data_value
                effects.append(Effect(kind, op.data_name,
                                        base64.b64encode(op.data_value).decode('ascii')))

        return tx_hash


@pytest.fixture
def ledger():
    return FakeLedger()

@pytest.fixture
def secret():
    return SECRET

@pytest.fixture
def addr():
    # stable, valid test addresses by name
    return lambda name: derive_address('user', name, SECRET)

@pytest.fixture(scope='session')
def horizon_url(request):
    # some tests require "--horizon URL" arg on pytest cmd line
    rv = request.config.getoption("--horizon")
    if rv is None:
        raise pytest.skip("need --horizon URL for this test")
    return rv

# EOF
