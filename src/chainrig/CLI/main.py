# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""
Command Line Interface for chainrig.
"""
import functools
import sys

import click

from ..MANAGERS.chain_orchestrator import ChainOrchestrator
from ..MODELS.container import ContainerType
from ..UTILS.logger import set_level
from ..UTILS.settings import load_settings
from ..errors import ChainrigError


def handle_errors(f):
    """
    Turns core errors into ``Error: ...`` and exit status 1.
    """
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ChainrigError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    return wrapper


def get_orchestrator(ctx) -> ChainOrchestrator:
    """
    Builds the orchestrator on first use so ``--help`` never touches the engine.
    """
    obj = ctx.find_root().obj
    if 'orchestrator' not in obj:
        obj['orchestrator'] = ChainOrchestrator(obj['settings'])
    return obj['orchestrator']


@click.group()
@click.option('--env-file', default=None, help='Dotenv file with CHAINRIG_* settings')
@click.option('--log-level', default=None, help='Log level (DEBUG, INFO, WARNING, ERROR)')
@click.pass_context
def cli(ctx, env_file, log_level):
    """
    chainrig - run blockchain nodes and the services that link to them.
    """
    ctx.ensure_object(dict)
    if 'settings' not in ctx.obj:
        ctx.obj['settings'] = load_settings(env_file=env_file, log_level=log_level)
    set_level(ctx.obj['settings'].log_level)


# Chains

@cli.group()
def chains():
    """Create and operate chains."""


@chains.command('new')
@click.argument('name')
@click.option('--type', '-t', 'chain_type', default='simplechain', help='Chain type template')
@click.option('--init-dir', default=None, help='Host directory for the chain files')
@click.option('--publish', '-p', is_flag=True, help='Publish all exposed ports')
@click.pass_context
@handle_errors
def chains_new(ctx, name, chain_type, init_dir, publish):
    """Create and start a new chain."""
    chain = get_orchestrator(ctx).create_chain(name, chain_type, init_dir=init_dir,
                                               publish_all_ports=publish)
    click.echo(f"Chain {chain.name} is {chain.state.value}.")
    if chain.artifacts:
        click.echo(f"Validator address: {chain.artifacts.validator_address}")
        if not chain.artifacts.key_imported:
            click.echo("Warning: validator key was not imported into the keys service.")


@chains.command('start')
@click.argument('name')
@click.option('--publish', '-p', is_flag=True, help='Publish all exposed ports')
@click.pass_context
@handle_errors
def chains_start(ctx, name, publish):
    """Start an existing chain."""
    get_orchestrator(ctx).chains.start(name, publish_all_ports=publish)
    click.echo(f"Chain {name} started.")


@chains.command('stop')
@click.argument('name')
@click.option('--force', '-f', is_flag=True, help='Do not wait for a graceful shutdown')
@click.pass_context
@handle_errors
def chains_stop(ctx, name, force):
    """Stop a running chain."""
    get_orchestrator(ctx).chains.stop(name, force=force)
    click.echo(f"Chain {name} stopped.")


@chains.command('kill')
@click.argument('name')
@click.option('--dir', '-r', 'home_dir', is_flag=True, help='Also remove the host directory')
@click.pass_context
@handle_errors
def chains_kill(ctx, name, home_dir):
    """Kill a chain and remove it with its data container."""
    get_orchestrator(ctx).chains.kill(name, remove_home_dir=home_dir)
    click.echo(f"Chain {name} killed.")


@chains.command('rm')
@click.argument('name')
@click.option('--data', '-x', is_flag=True, help='Also remove the data container')
@click.option('--dir', '-r', 'home_dir', is_flag=True, help='Also remove the host directory')
@click.option('--force', '-f', is_flag=True, help='Stop without waiting')
@click.pass_context
@handle_errors
def chains_rm(ctx, name, data, home_dir, force):
    """Remove a chain."""
    get_orchestrator(ctx).chains.remove(name, remove_data_volume=data,
                                        remove_home_dir=home_dir, force=force)
    click.echo(f"Chain {name} removed.")


@chains.command('exec')
@click.argument('name')
@click.argument('args', nargs=-1, required=True)
@click.pass_context
@handle_errors
def chains_exec(ctx, name, args):
    """Run a command inside a chain container."""
    click.echo(get_orchestrator(ctx).diagnostics.exec_chain(name, list(args)), nl=False)


@chains.command('logs')
@click.argument('name')
@click.option('--follow', '-f', is_flag=True, help='Follow log output')
@click.option('--tail', '-t', default='all', help='Number of lines to show')
@click.pass_context
@handle_errors
def chains_logs(ctx, name, follow, tail):
    """Show chain logs."""
    orchestrator = get_orchestrator(ctx)
    orchestrator.diagnostics.logs(orchestrator.handle(ContainerType.CHAIN, name),
                                  follow=follow, tail=tail)


@chains.command('inspect')
@click.argument('name')
@click.argument('fields', nargs=-1)
@click.pass_context
@handle_errors
def chains_inspect(ctx, name, fields):
    """Show chain container metadata."""
    orchestrator = get_orchestrator(ctx)
    orchestrator.diagnostics.inspect(orchestrator.handle(ContainerType.CHAIN, name), list(fields))


@chains.command('cat')
@click.argument('name')
@click.argument('kind', type=click.Choice(['config', 'genesis']))
@click.pass_context
@handle_errors
def chains_cat(ctx, name, kind):
    """Print a chain's config or genesis file."""
    click.echo(get_orchestrator(ctx).diagnostics.cat_chain(name, kind), nl=False)


@chains.command('ls')
@click.pass_context
@handle_errors
def chains_ls(ctx):
    """List chains"""
    lifecycle = get_orchestrator(ctx).chains
    click.echo(f"{'CHAIN':25} {'STATE':10}")
    click.echo("-" * 35)
    for name in lifecycle.list():
        click.echo(f"{name:25} {lifecycle.state(name).value:10}")


# Services

@cli.group()
def services():
    """Start and operate services."""


@services.command('start')
@click.argument('name')
@click.option('--chain', '-c', 'chain_name', default='', help='Chain that $chain links refer to')
@click.option('--dry-run', is_flag=True, help='Only print the start order')
@click.pass_context
@handle_errors
def services_start(ctx, name, chain_name, dry_run):
    """Start a service and its dependencies."""
    orchestrator = get_orchestrator(ctx)
    if dry_run:
        click.echo(" -> ".join(orchestrator.walker.order(name)))
        return
    result = orchestrator.start_service(name, chain_name)
    for service in result.started:
        links = ", ".join(f"{link.container} as {link.alias}" for link in result.links_for(service))
        click.echo(f"{service:15} running {('(' + links + ')') if links else ''}".rstrip())


@services.command('stop')
@click.argument('names', nargs=-1, required=True)
@click.option('--force', '-f', is_flag=True, help='Do not wait for a graceful shutdown')
@click.pass_context
@handle_errors
def services_stop(ctx, names, force):
    """Stop running services."""
    orchestrator = get_orchestrator(ctx)
    for name in names:
        orchestrator.services.stop(name, force=force)
    click.echo("Services stopped.")


@services.command('rm')
@click.argument('names', nargs=-1, required=True)
@click.option('--data', '-x', is_flag=True, help='Also remove data containers')
@click.pass_context
@handle_errors
def services_rm(ctx, names, data):
    """Kill and remove services."""
    get_orchestrator(ctx).kill_service(list(names), remove=True, remove_data=data)
    click.echo("Services removed.")


@services.command('exec')
@click.argument('name')
@click.argument('args', nargs=-1, required=True)
@click.pass_context
@handle_errors
def services_exec(ctx, name, args):
    """Run a command inside a service container."""
    click.echo(get_orchestrator(ctx).diagnostics.exec_service(name, list(args)), nl=False)


@services.command('logs')
@click.argument('name')
@click.option('--follow', '-f', is_flag=True, help='Follow log output')
@click.option('--tail', '-t', default='all', help='Number of lines to show')
@click.pass_context
@handle_errors
def services_logs(ctx, name, follow, tail):
    """Show service logs."""
    orchestrator = get_orchestrator(ctx)
    orchestrator.diagnostics.logs(orchestrator.handle(ContainerType.SERVICE, name),
                                  follow=follow, tail=tail)


@services.command('inspect')
@click.argument('name')
@click.argument('fields', nargs=-1)
@click.pass_context
@handle_errors
def services_inspect(ctx, name, fields):
    """Show service container metadata."""
    orchestrator = get_orchestrator(ctx)
    orchestrator.diagnostics.inspect(orchestrator.handle(ContainerType.SERVICE, name), list(fields))


@services.command('ls')
@click.pass_context
@handle_errors
def services_ls(ctx):
    """List service status"""
    orchestrator = get_orchestrator(ctx)
    existing = set(orchestrator.services.list())
    click.echo(f"{'SERVICE':15} {'STATUS':10}")
    click.echo("-" * 25)
    for name in orchestrator.definitions.service_names():
        state = orchestrator.handle(ContainerType.SERVICE, name).state() if name in existing else "absent"
        click.echo(f"{name:15} {state:10}")


# Keys

@cli.group()
def keys():
    """Inspect the keys service."""


@keys.command('ls')
@click.pass_context
@handle_errors
def keys_ls(ctx):
    """List imported key addresses."""
    for address in get_orchestrator(ctx).keys.list_addresses():
        click.echo(address)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
