"""
Command-Line Interface for address proofs

Key setup, powers-of-tau ceremonies, accumulator trees, proving and
verification from the shell.
"""

import json
import sys
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.table import Table

from address_zk import __version__
from address_zk.inputs import build_inputs, identifier_tree, load_tree, locker_tree, save_tree
from address_zk.logging_config import setup_logging
from address_zk.zk_protocol.circuits import CircuitType, build_circuit, get_circuit_spec
from address_zk.zk_protocol.exceptions import AddressZKError
from address_zk.zk_protocol.settings import load_settings
from address_zk.zk_protocol.snark import (
    KeyStore,
    MembershipPolicy,
    PowersOfTau,
    SetupManager,
    ceremony_power,
    prove,
    verify_detailed,
)
from address_zk.zk_protocol.types import Proof

CIRCUIT_CHOICES = [t.value for t in CircuitType]


def _fail(message: str) -> None:
    click.echo(click.style(f"✗ {message}", fg="red"), err=True)
    sys.exit(1)


def _ok(message: str) -> None:
    click.echo(click.style(f"✓ {message}", fg="green"))


def _keystore(ctx) -> KeyStore:
    return KeyStore.from_settings(ctx.obj["settings"])


def _circuit(circuit_type: str, depth):
    spec = get_circuit_spec(circuit_type)
    return build_circuit(circuit_type, depth if spec.takes_depth else None)


@click.group()
@click.version_option(version=__version__)
@click.option(
    '--keys-dir',
    type=click.Path(file_okay=False),
    help='Key store directory (default: ADDRESS_ZK_KEYS_DIR or ~/.address_zk/keys)'
)
@click.option(
    '--allow-test-keys',
    is_flag=True,
    default=None,
    help='Accept keys from the single-party test setup'
)
@click.option(
    '--log-level',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    default='WARNING',
    help='Log level for structured logs on stderr (default: WARNING)'
)
@click.pass_context
def main(ctx, keys_dir, allow_test_keys, log_level):
    """
    Zero-knowledge address proofs

    Prove facts about a postal identifier (membership, structure, selected
    fields, same owner across versions, locker access) without revealing it.

    ⚠️  DRAFT - requires crypto review before production use
    """
    try:
        settings = load_settings(keys_dir=keys_dir, allow_test_keys=allow_test_keys or None)
    except AddressZKError as e:
        _fail(str(e))
    setup_logging(level=log_level, json_format=False)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# ============================================================================
# KEY SETUP
# ============================================================================


@main.command()
@click.argument('circuit_type', type=click.Choice(CIRCUIT_CHOICES))
@click.option('--depth', type=int, default=None, help='Tree depth (membership and locker)')
@click.option('--key-version', type=int, default=None, help='Key version (default: next free)')
@click.option(
    '--phase1',
    type=click.Path(exists=True, dir_okay=False),
    help='Contributed powers-of-tau file for a multi-party setup'
)
@click.option(
    '--participant',
    multiple=True,
    help='Circuit-phase contributor name (repeatable; needs --phase1)'
)
@click.option('--test', 'test_setup', is_flag=True, help='Single-party test setup (NOT for production)')
@click.pass_context
def setup(ctx, circuit_type, depth, key_version, phase1, participant, test_setup):
    """
    Generate and store proving/verification keys for a circuit.

    Examples:

        # Test keys for the version circuit
        address-zk setup version --test

        # Multi-party keys from a contributed powers-of-tau file
        address-zk setup membership --depth 16 --phase1 pot.ptau \\
            --participant alice --participant bob
    """
    if test_setup == bool(phase1):
        _fail("choose exactly one of --test or --phase1")
    if phase1 and not participant:
        _fail("--phase1 needs at least one --participant")

    try:
        circuit = _circuit(circuit_type, depth)
        store = _keystore(ctx)
        if key_version is None:
            key_version = (store.latest_version(circuit.circuit_type, circuit.shape) or 0) + 1
        manager = SetupManager(keystore=store)
        if test_setup:
            keys = manager.setup_for_testing(circuit, version=key_version)
        else:
            ptau = PowersOfTau.from_bytes(Path(phase1).read_bytes())
            keys = manager.run_ceremony(
                circuit, (), list(participant), version=key_version, phase1=ptau
            )
    except AddressZKError as e:
        _fail(str(e))

    provenance = keys.provenance
    _ok(f"Keys stored: {keys.key_id}")
    click.echo(f"  mode: {provenance.mode}")
    click.echo(f"  vk sha256: {keys.verification_key.fingerprint()}")
    if not provenance.production_ready:
        click.echo(click.style("  ⚠️  not production ready", fg="yellow"))


# ============================================================================
# CEREMONY
# ============================================================================


@main.group()
def ceremony():
    """Powers-of-tau (phase 1) ceremony files."""


@ceremony.command('new')
@click.argument('output', type=click.Path(dir_okay=False))
@click.option('--power', type=int, default=None, help='log2 of the largest supported circuit')
@click.option(
    '--for-circuit',
    type=click.Choice(CIRCUIT_CHOICES),
    default=None,
    help='Size the file for this circuit instead of --power'
)
@click.option('--depth', type=int, default=None, help='Tree depth for --for-circuit')
def ceremony_new(output, power, for_circuit, depth):
    """Start a fresh powers-of-tau file."""
    try:
        if for_circuit is not None:
            power = ceremony_power(_circuit(for_circuit, depth))
        if power is None:
            _fail("give --power or --for-circuit")
        ptau = PowersOfTau.new(power)
    except AddressZKError as e:
        _fail(str(e))
    Path(output).write_bytes(ptau.to_bytes())
    _ok(f"Created powers of tau (2^{power}) at {output}")


@ceremony.command('contribute')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--name', required=True, help='Participant name recorded in the transcript')
def ceremony_contribute(path, name):
    """Add a contribution; the secret is discarded immediately."""
    try:
        ptau = PowersOfTau.from_bytes(Path(path).read_bytes())
        contribution = ptau.contribute(name)
    except AddressZKError as e:
        _fail(str(e))
    Path(path).write_bytes(ptau.to_bytes())
    _ok(f"Contribution #{len(ptau.contributions)} by {name}")
    click.echo(f"  transcript: {contribution.transcript_hash}")


@ceremony.command('verify')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
def ceremony_verify(path):
    """Check every contribution in a powers-of-tau file."""
    try:
        ptau = PowersOfTau.from_bytes(Path(path).read_bytes())
        ptau.verify()
    except AddressZKError as e:
        _fail(f"Verification failed: {e}")
    _ok(f"{len(ptau.contributions)} contribution(s) verified")
    for contribution in ptau.contributions:
        click.echo(f"  {contribution.participant}: {contribution.transcript_hash}")


# ============================================================================
# TREES
# ============================================================================


@main.group()
def tree():
    """Accumulator trees of identifiers or lockers."""


@tree.command('build')
@click.argument('output', type=click.Path(dir_okay=False))
@click.option('--depth', type=int, required=True, help='Tree depth')
@click.option('--pid', 'pids', multiple=True, help='Identifier to include (repeatable)')
@click.option('--locker', 'lockers', multiple=True, help='Locker id to include (repeatable)')
def tree_build(output, depth, pids, lockers):
    """Build a tree and save its ordered leaves."""
    if bool(pids) == bool(lockers):
        _fail("give either --pid or --locker values")
    try:
        if pids:
            built, kind = identifier_tree(pids, depth), "identifier"
        else:
            built, kind = locker_tree(lockers, depth), "locker"
    except AddressZKError as e:
        _fail(str(e))
    save_tree(built, output, kind=kind)
    _ok(f"{built.size} {kind} leaves, depth {built.depth}")
    click.echo(f"  root: {built.root}")


@tree.command('root')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
def tree_root(path):
    """Print the root of a saved tree."""
    try:
        loaded = load_tree(path)
    except AddressZKError as e:
        _fail(str(e))
    click.echo(str(loaded.root))


# ============================================================================
# PROVING AND VERIFICATION
# ============================================================================


@main.command('prove')
@click.argument('circuit_type', type=click.Choice(CIRCUIT_CHOICES))
@click.argument('inputs_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--tree', 'tree_file', type=click.Path(exists=True, dir_okay=False),
              help='Saved tree (membership and locker)')
@click.option('--key-version', type=int, default=None, help='Key version (default: latest)')
@click.option('--output', type=click.Path(dir_okay=False), required=True, help='Proof JSON file')
@click.pass_context
def prove_command(ctx, circuit_type, inputs_file, tree_file, key_version, output):
    """
    Generate a proof from a YAML/JSON inputs file.

    Examples:

        address-zk prove structure inputs.yaml --output proof.json
        address-zk prove membership me.yaml --tree set.json --output proof.json
    """
    try:
        with open(inputs_file, "r") as f:
            spec = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        _fail(f"cannot read inputs: {e}")
    if not isinstance(spec, dict):
        _fail("inputs file must contain a mapping")

    try:
        loaded_tree = load_tree(tree_file) if tree_file else None
        depth = loaded_tree.depth if loaded_tree is not None else None
        circuit = _circuit(circuit_type, depth)
        store = _keystore(ctx)
        if key_version is None:
            key_id = store.current_key_id(circuit)
        else:
            key_id = circuit.key_id(key_version)
        proving_key = store.load_proving_key(key_id)
        inputs = build_inputs(circuit_type, spec, loaded_tree)
        proof = prove(circuit, inputs, proving_key)
    except AddressZKError as e:
        _fail(f"{type(e).__name__}: {e}")

    Path(output).write_text(proof.to_json())
    _ok(f"Proof written to {output} ({proof.key_id})")


@main.command('verify')
@click.argument('proof_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--root-tree', type=click.Path(exists=True, dir_okay=False),
              help='Accept only roots of this saved tree')
@click.option('--max-age', type=int, default=None,
              help='Membership freshness window in seconds (default from settings)')
@click.option('--json', 'as_json', is_flag=True, help='Print the result as JSON')
@click.pass_context
def verify_command(ctx, proof_file, root_tree, max_age, as_json):
    """Verify a proof JSON file against the stored verification key."""
    settings = ctx.obj["settings"]
    try:
        proof = Proof.from_json(Path(proof_file).read_text())
        vk = _keystore(ctx).load_verification_key(proof.key_id)
        known_root = load_tree(root_tree).is_known_root if root_tree else None
        policy = MembershipPolicy(
            max_age_seconds=max_age or settings.membership_max_age,
            is_known_root=known_root,
        )
        result = verify_detailed(proof, vk, policy=policy)
    except AddressZKError as e:
        _fail(f"{type(e).__name__}: {e}")

    if as_json:
        click.echo(json.dumps(result.to_dict(), sort_keys=True))
    elif result.valid:
        _ok(f"Proof valid ({proof.key_id})")
    else:
        click.echo(click.style(f"✗ Proof rejected: {result.error}", fg="red"))
    if not result.valid:
        sys.exit(1)


# ============================================================================
# KEYS
# ============================================================================


@main.group()
def keys():
    """Inspect the key store."""


@keys.command('list')
@click.pass_context
def keys_list(ctx):
    """List stored keys with their provenance."""
    manifests = _keystore(ctx).list_keys()
    if not manifests:
        click.echo("No keys stored.")
        return
    table = Table(title="Stored keys")
    table.add_column("Key id", no_wrap=True)
    table.add_column("Mode", no_wrap=True)
    table.add_column("Participants")
    table.add_column("VK sha256")
    for manifest in manifests:
        provenance = manifest.get("provenance", {})
        participants = provenance.get("phase2_participants") or []
        table.add_row(
            manifest.get("key_id", "?"),
            provenance.get("mode", "?"),
            ", ".join(participants) or "-",
            manifest.get("vk_sha256", "")[:16],
        )
    Console().print(table)


if __name__ == "__main__":
    main()
