#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# Building and submitting badge transactions.
#
import pytest, asyncio
from decimal import Decimal
from stellar_sdk import ManageData, TextMemo
from stellar_sdk import Payment as PaymentOp
from proofchain.constants import *
from proofchain.exceptions import LedgerNotFoundError, SubmissionError
from proofchain.issuance import BadgeIssuer
from proofchain.keys import derive
from proofchain.memo import CertificateMetadata, encode
from proofchain.scanner import BadgeScanner

BIG = CertificateMetadata('evt-12345678', 'Spring Hackathon', 'Winner',
                            'x' * 300, 'https://example.com/badges/winner.png')

@pytest.fixture
def org(secret):
    return derive('org', 'Acme Inc', secret)

def test_envelope(org, addr):
    rcpt = addr('alice')
    md = CertificateMetadata('evt-12345678', 'Spring Hackathon')

    envs = BadgeIssuer(None).build_envelopes(org.keypair(), 100, rcpt, md)
    assert len(envs) == 1

    tx = envs[0].transaction
    assert tx.sequence == 101
    assert tx.source.account_id == org.address
    assert isinstance(tx.memo, TextMemo)
    assert tx.memo.memo_text == b'CERT:evt-1234'

    pay, data = tx.operations
    assert isinstance(pay, PaymentOp)
    assert pay.destination.account_id == rcpt
    assert Decimal(str(pay.amount)) == Decimal(MARKER_AMOUNT)

    assert isinstance(data, ManageData)
    assert data.data_name == 'cert_meta_evt-1234'
    assert data.data_value == b'{"eventId":"evt-12345678","eventName":"Spring Hackathon"}'

    assert len(envs[0].signatures) == 1

def test_follow_ups(org, addr):
    # more chunks than fit in one txn go out in data-only txns after it
    n = len(encode(BIG))
    assert n > 4

    envs = BadgeIssuer(None, max_entries_per_txn=2).build_envelopes(
                                    org.keypair(), 500, addr('alice'), BIG)
    assert len(envs) == (n + 1) // 2
    assert [e.transaction.sequence for e in envs] == list(range(501, 501 + len(envs)))

    first = envs[0].transaction
    assert isinstance(first.operations[0], PaymentOp)
    assert isinstance(first.memo, TextMemo)

    names = []
    for e in envs:
        ops = e.transaction.operations
        names.extend(op.data_name for op in ops if isinstance(op, ManageData))
        if e is not envs[0]:
            assert all(isinstance(op, ManageData) for op in ops)
    assert names == [f'cert_meta_evt-1234_{i}' for i in range(n)]

def test_issue_and_scan(ledger, org, addr):
    rcpt = addr('alice')
    ledger.fund(org.address)
    ledger.fund(rcpt)

    bi = BadgeIssuer(ledger)
    tx_hash = asyncio.run(bi.issue(org, rcpt, 'evt-12345678', 'Spring Hackathon',
                                    extra=dict(title='Winner', imageUrl='https://x.io/w.png')))
    assert tx_hash in ledger.txns

    b, = asyncio.run(BadgeScanner(ledger).scan_received(rcpt))
    assert b.transaction_ref == tx_hash
    assert b.issuer_address == org.address
    assert b.recipient_address == rcpt
    assert b.event_id in ('evt-12345678', 'evt-1234')
    assert b.event_title == 'Spring Hackathon'
    assert b.title == 'Winner'
    assert b.image_url == 'https://x.io/w.png'

    # again, sequence moves on
    asyncio.run(bi.issue(org.keypair(), rcpt, 'evt-99999999', 'Other'))
    assert len(asyncio.run(BadgeScanner(ledger).scan_issued(org.address))) == 2

def test_issue_big(ledger, org, addr):
    rcpt = addr('alice')
    ledger.fund(org.address)
    ledger.fund(rcpt)

    bi = BadgeIssuer(ledger, max_entries_per_txn=2)
    tx_hash = asyncio.run(bi.issue(org, rcpt, BIG.event_id, BIG.event_name,
                                    extra=dict(title=BIG.title, description=BIG.description)))
    assert len(ledger.submitted) > 1

    # only the payment txn's entries are read back: degraded, still a badge
    b, = asyncio.run(BadgeScanner(ledger).scan_received(rcpt))
    assert b.transaction_ref == tx_hash
    assert b.event_id == 'evt-1234'
    assert b.event_title == 'Spring Hackathon'

def test_follow_up_fails(ledger, org, addr, caplog):
    # payment went through, later data txn rejected: hash must not be lost
    rcpt = addr('alice')
    ledger.fund(org.address)
    ledger.fund(rcpt)

    real_submit = ledger.submit
    async def flaky_submit(xdr):
        if len(ledger.submitted) >= 1:
            ledger.submitted.append(xdr)
            raise SubmissionError('Transaction Failed: tx_bad_seq', 400,
                                    dict(transaction='tx_bad_seq'))
        return await real_submit(xdr)
    ledger.submit = flaky_submit

    bi = BadgeIssuer(ledger, max_entries_per_txn=2)
    with pytest.raises(SubmissionError) as ee:
        asyncio.run(bi.issue(org, rcpt, BIG.event_id, BIG.event_name,
                                extra=dict(description=BIG.description)))

    paid = ee.value.payment_hash
    assert paid in ledger.txns
    assert len(ledger.submitted) == 2
    assert paid in caplog.text

    b, = asyncio.run(BadgeScanner(ledger).scan_received(rcpt))
    assert b.transaction_ref == paid

    # failure on the payment txn itself: nothing was issued
    ledger.submit = real_submit
    with pytest.raises(SubmissionError) as ee:
        asyncio.run(bi.issue(org, addr('ghost'), 'e1', 'E'))
    assert ee.value.payment_hash is None

def test_unfunded_issuer(ledger, org, addr):
    ledger.fund(addr('alice'))
    with pytest.raises(LedgerNotFoundError):
        asyncio.run(BadgeIssuer(ledger).issue(org, addr('alice'), 'e1', 'E'))
    assert ledger.submitted == []

def test_errors_surface(ledger, org, addr):
    ledger.fund(org.address)
    bi = BadgeIssuer(ledger)

    # recipient has no account
    with pytest.raises(SubmissionError) as ee:
        asyncio.run(bi.issue(org, addr('ghost'), 'e1', 'E'))
    assert ee.value.result_codes['operations'] == ['op_no_destination']

    # stale sequence: no retry
    ledger.fund(addr('alice'))
    stale = ledger.accounts[org.address]['sequence'] - 1
    real_load = ledger.load_account

    async def load_stale(a):
        return (await real_load(a))._replace(sequence=stale)

    ledger.load_account = load_stale
    ledger.submitted.clear()
    with pytest.raises(SubmissionError) as ee:
        asyncio.run(bi.issue(org, addr('alice'), 'e1', 'E'))
    assert ee.value.result_codes['transaction'] == 'tx_bad_seq'
    assert len(ledger.submitted) == 1

@pytest.mark.parametrize('rcpt, event_id', [
    ('not-an-address', 'e1'),
    (None, 'e1'),
    ('GOOD', ''),
])
def test_bad_args(ledger, org, addr, rcpt, event_id):
    if rcpt == 'GOOD':
        rcpt = addr('alice')
    with pytest.raises(ValueError):
        asyncio.run(BadgeIssuer(ledger).issue(org, rcpt, event_id, 'E'))

# EOF
