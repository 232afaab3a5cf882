#!/usr/bin/env python
#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# To use this, install with:
#
#   pip install --editable '.[cli]'
#
# That will create the command "proofchain" in your path.
#
#
import click, sys, json, asyncio, logging
from functools import wraps

from proofchain.constants import *
from proofchain.exceptions import ProofChainError, MissingSecretError
from proofchain.keys import get_master_token, derive_address
from proofchain.memo import CertificateMetadata, encode, compact_memo
from proofchain.horizon import HorizonLedger, friendbot_fund
from proofchain.proto import ProofChain
from proofchain.utils import short_addr
from proofchain import __version__

# dict of options that apply to all commands
global global_opts
global_opts = dict()

# Cleanup display (supress traceback) for user-feedback exceptions
_sys_excepthook = sys.excepthook
def my_hook(ty, val, tb):
    if issubclass(ty, ProofChainError):
        print("FATAL: %s" % val, file=sys.stderr)
    else:
        return _sys_excepthook(ty, val, tb)
sys.excepthook=my_hook

def fail(msg):
    # show message and stop
    click.echo(f"FAILURE: {msg}", err=True)
    sys.exit(1)

def get_chain():
    # Build the API object from global options
    # - secret is only looked up when an org name must be turned into an address
    ledger = HorizonLedger(global_opts.get('horizon'))
    passphrase = PUBLIC_PASSPHRASE if global_opts.get('mainnet') else TESTNET_PASSPHRASE

    return ProofChain(ledger, master_token=global_opts.get('master_token'),
                        demo=global_opts.get('demo', False),
                        network_passphrase=passphrase)

def run(coro):
    return asyncio.run(coro)

def load_events(fp):
    # JSON list of {"id": ..., "title": ...}
    if fp is None:
        return None
    try:
        rv = json.load(fp)
    except ValueError as exc:
        fail(f"Events file is not JSON: {exc}")
    if not isinstance(rv, list):
        fail("Events file must hold a JSON list")
    return rv

def dump_badges(badges, as_json=False):
    if as_json:
        click.echo(json.dumps([b._asdict() for b in badges], indent=2))
        return

    if not badges:
        click.echo("(no badges)")
        return

    click.echo('%-20s | %-16s | %-15s | %s' % ('Date', 'Event', 'Recipient', 'Title'))
    click.echo(('-'*20) + '-+-' + ('-'*16) + '-+-' + ('-'*15) + '-+-------------')
    for b in badges:
        click.echo('%-20s | %-16s | %-15s | %s' % ((b.date_issued or '')[0:19], b.event_id[0:16],
                                        short_addr(b.recipient_address), b.event_title))

def display_errors(f):
    # clean-up display of errors from ledger
    @wraps(f)
    def wrapper(*args, **kws):
        try:
            return f(*args, **kws)
        except ProofChainError as exc:
            click.echo("\n%s\n" % str(exc.args[0]), err=True)
            if getattr(exc, "payment_hash", None):
                click.echo(f"Badge was issued anyway: {exc.payment_hash}", err=True)
            sys.exit(1)
    return wrapper

# Accept any prefix of a command name.
#
# from <https://click.palletsprojects.com/en/8.0.x/advanced/?#command-aliases>
class AliasedGroup(click.Group):
    def get_command(self, ctx, cmd_name):
        rv = click.Group.get_command(self, ctx, cmd_name)
        if rv is not None:
            return rv
        matches = [x for x in self.list_commands(ctx)
                   if x.startswith(cmd_name)]
        if not matches:
            return None
        elif len(matches) == 1:
            return click.Group.get_command(self, ctx, matches[0])
        ctx.fail(f"Abiguous command. Pick one of: {' | '.join(sorted(matches))}")

    def resolve_command(self, ctx, args):
        # always return the full command name
        _, cmd, args = super().resolve_command(ctx, args)
        return cmd.name, cmd, args


#
# Options we want for all commands
#
@click.group(cls=AliasedGroup)
@click.option('--horizon', '-H', default=None, envvar='HORIZON_URL', metavar="URL",
                    help="Horizon server to use (default: public testnet)")
@click.option('--master-token', '-t', default=None, envvar='MASTER_TOKEN', metavar="SECRET",
                    help="Shared secret for address derivation")
@click.option('--demo', is_flag=True,
                    help="Allow the demo secret if none is set. Testing only!")
@click.option('--mainnet', is_flag=True,
                    help="Sign for the public network instead of testnet.")
@click.option('--verbose', '-v', is_flag=True,
                    help="Show traffic with Horizon.")
@click.option('--debug', '-d', is_flag=True,
                    help="Show library log messages.")
@click.option('--pdb', is_flag=True,
                    help="Prepare patient for surgery to remove bugs.")
@click.version_option(version=__version__)
def main(**kws):
    '''
    Issue and inspect ProofChain badges on the Stellar ledger.

    You can use "rec", or "r" for "received": any distinct prefix for all commands.
    '''
    # implement PDB option here
    if kws.pop('pdb', False):
        import pdb, sys
        def doit(ex_cls, ex, tb):
            pdb.pm()
        sys.excepthook = doit

    if kws.pop('verbose', False):
        import proofchain.horizon as hh
        hh.VERBOSE = True

    logging.basicConfig(level=logging.DEBUG if kws.pop('debug', False) else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    if kws.get('demo'):
        click.echo("WARNING: Demo secret allowed! Testing purposes only!!", err=True)

    # global options, mostly not considered here
    global global_opts
    global_opts.update(kws)


@main.command('address')
@click.argument('namespace', type=click.Choice(NAMESPACES))
@click.argument('identifier', type=str)
@click.option('--qr', '-q', is_flag=True, help="Also show as QR code")
@click.option('--outfile', '-o', metavar="filename.png",
                        help="Save QR as SVG or PNG (depends on extension)", default=None,
                        type=click.File('wb'))
def show_address(namespace, identifier, qr, outfile):
    "Show the derived Stellar address for an org, user or GitHub id"
    try:
        token = get_master_token(global_opts.get('master_token'), demo=global_opts.get('demo', False))
        addr = derive_address(namespace, identifier, token)
    except MissingSecretError as exc:
        fail(f"{exc}. Set MASTER_TOKEN or use --demo for testing.")
    except ValueError as exc:
        fail(str(exc))

    click.echo(addr)

    if not (qr or outfile):
        return

    import pyqrcode
    # addresses are base32: uppercase letters and digits only
    q = pyqrcode.create(addr, error='L', mode='alphanumeric')

    if not outfile:
        print(q.terminal(quiet_zone=2))
    else:
        if outfile.name.lower().endswith('.svg'):
            q.svg(outfile, scale=4)
        else:
            q.png(outfile, scale=4)

        click.echo(f"Wrote {outfile.tell():,} bytes to: {outfile.name}", err=1)

@main.command('issue')
@click.argument('issuer', type=str, metavar="ORG-NAME")
@click.argument('recipient', type=str, metavar="G...ADDRESS")
@click.argument('event_id', type=str)
@click.argument('event_name', type=str)
@click.option('--title', default=None, help="Badge title")
@click.option('--description', default=None, help="Badge description")
@click.option('--image-url', default=None, help="Badge image URL")
@display_errors
def issue_badge(issuer, recipient, event_id, event_name, title, description, image_url):
    "Issue a badge from an organization to a recipient address"
    chain = get_chain()

    extra = dict(title=title, description=description, image_url=image_url)
    try:
        tx_hash = run(chain.issue_badge(issuer, recipient, event_id, event_name, metadata=extra))
    except ValueError as exc:
        fail(str(exc))

    click.echo(tx_hash)

@main.command('issued')
@click.argument('issuer', type=str, metavar="ORG-NAME|G...ADDRESS")
@click.option('--events', '-e', type=click.File('rt'), default=None, metavar="events.json",
                    help="Event catalog, to show full event ids")
@click.option('--json', 'as_json', is_flag=True, help="JSON output")
@display_errors
def list_issued(issuer, events, as_json):
    "List badges issued by an organization (recent history only)"
    chain = get_chain()
    known = load_events(events)

    addr = chain.resolve_issuer(issuer)
    report = run(chain.scanner.scan_issued_report(addr, known))

    dump_badges(report.badges, as_json)
    for sk in report.skipped:
        click.echo(f"Skipped {sk.transaction_hash}: {sk.reason}", err=True)

@main.command('received')
@click.argument('address', type=str, metavar="G...ADDRESS")
@click.option('--json', 'as_json', is_flag=True, help="JSON output")
@display_errors
def list_received(address, as_json):
    "List badges received by an address"
    chain = get_chain()
    report = run(chain.scanner.scan_received_report(address))

    if not report.found and not as_json:
        click.echo("Account not found on ledger (not funded yet?)", err=True)

    dump_badges(report.badges, as_json)
    for sk in report.skipped:
        click.echo(f"Skipped {sk.transaction_hash}: {sk.reason}", err=True)

@main.command('counts')
@click.argument('issuer', type=str, metavar="ORG-NAME|G...ADDRESS")
@click.option('--events', '-e', type=click.File('rt'), default=None, metavar="events.json",
                    help="Event catalog, to count by full event ids")
@display_errors
def badge_counts(issuer, events):
    "Count badges issued per event"
    chain = get_chain()
    counts = run(chain.get_badge_counts(issuer, load_events(events)))

    if not counts:
        click.echo("(no badges)")
    for eid, n in sorted(counts.items(), key=lambda kv: -kv[1]):
        click.echo(f'{n:6,}  {eid}')

@main.command('event')
@click.argument('issuer', type=str, metavar="ORG-NAME|G...ADDRESS")
@click.argument('event_id', type=str)
@click.option('--json', 'as_json', is_flag=True, help="JSON output")
@display_errors
def list_event(issuer, event_id, as_json):
    "List badges an organization issued for one event"
    chain = get_chain()
    dump_badges(run(chain.get_badges_for_event(issuer, event_id)), as_json)

@main.command('verify')
@click.argument('tx_hash', type=str, metavar="TXN-HASH")
@display_errors
def verify_badge(tx_hash):
    "Check a badge transaction exists and succeeded"
    chain = get_chain()

    if not run(chain.verify_badge(tx_hash)):
        fail("Transaction not found, or it failed.")

    click.echo("Badge transaction is on the ledger.")

@main.command('balance')
@click.argument('who', type=str, metavar="ORG-NAME|G...ADDRESS")
@click.option('--usd', '-u', is_flag=True, help="Also show value in USD")
@display_errors
def show_balance(who, usd):
    "Show XLM balance of an address (or an organization)"
    from proofchain.price import PriceService, format_xlm, format_usd

    chain = get_chain()
    addr = chain.resolve_issuer(who)
    bal = run(chain.get_xlm_balance(addr))

    line = f'{addr} | {format_xlm(bal)}'
    if usd:
        line += f' | {format_usd(PriceService().xlm_to_usd(bal))}'
    click.echo(line)

@main.command('fund')
@click.argument('who', type=str, metavar="ORG-NAME|G...ADDRESS")
@display_errors
def fund_account(who):
    "Fund an address on testnet, using friendbot"
    if global_opts.get('mainnet'):
        fail("Friendbot is for testnet only")

    chain = get_chain()
    addr = chain.resolve_issuer(who)
    tx_hash = friendbot_fund(addr)

    click.echo(f"Funded {addr}\n{tx_hash}")

@main.command('price')
@click.argument('amount', type=float, required=False, default=1.0)
def show_price(amount):
    "Show value of some XLM in USD"
    from proofchain.price import PriceService, format_xlm, format_usd

    ps = PriceService()
    click.echo(f'{format_xlm(amount)} = {format_usd(ps.xlm_to_usd(amount))}')

@main.command('encode')
@click.argument('event_id', type=str)
@click.option('--name', default=None, help="Event name")
@click.option('--title', default=None, help="Badge title")
@click.option('--description', default=None, help="Badge description")
@click.option('--image-url', default=None, help="Badge image URL")
@click.option('--chunk-size', '-c', type=click.IntRange(min=1, max=DATA_VALUE_LIMIT),
                    default=DATA_VALUE_LIMIT, help="Max bytes per data entry")
def encode_memo(event_id, name, title, description, image_url, chunk_size):
    "Show the memo and data entries a badge would carry (offline)"
    meta = CertificateMetadata(event_id, name, title, description, image_url)

    try:
        click.echo(f'memo: {compact_memo(event_id)}')
        for ch in encode(meta, chunk_size):
            click.echo(f'{ch.key} = {ch.value}')
    except ValueError as exc:
        fail(str(exc))


if __name__ == '__main__':
    main()

# EOF
