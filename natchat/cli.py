"""
natchat CLI - run an introducer or chat as a peer.
"""

import asyncio
import logging
import sys
import threading
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import Config, get_config
from .exceptions import NatChatError
from .introducer import Introducer
from .peer import (
    ChatReceived,
    DebugLine,
    Notice,
    Peer,
    PeerEvent,
    PeerJoined,
    PublicEndpoint,
)

console = Console()


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler()]
    )


def run_async(coro):
    """Run an async function."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        return loop.run_until_complete(coro)


def render_event(event: PeerEvent) -> None:
    """Display sink: print peer events to the terminal."""
    if isinstance(event, ChatReceived):
        who = f"[bold]{escape(event.name)}[/bold]: " if event.name else ""
        console.print(f"[dim]\\[{event.sender}][/dim] {who}{escape(event.text)}")
    elif isinstance(event, PeerJoined):
        console.print(f"[green]+ New peer in room:[/green] {escape(event.name)} [cyan]{escape(event.endpoint)}[/cyan]")
    elif isinstance(event, PublicEndpoint):
        console.print(f"[dim]Your public endpoint as seen by the introducer:[/dim] [cyan]{escape(event.endpoint)}[/cyan]")
    elif isinstance(event, DebugLine):
        console.print(f"[dim]\\[RECV {event.sender}] {escape(event.line)}[/dim]")
    elif isinstance(event, Notice):
        console.print(f"[yellow]{escape(event.text)}[/yellow]")


def _load_config(ctx) -> Config:
    data_dir = ctx.obj.get('data_dir')
    return get_config(Path(data_dir) if data_dir else None)


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--data-dir', type=click.Path(), help='Configuration directory')
@click.pass_context
def main(ctx, verbose, data_dir):
    """natchat - peer-to-peer UDP chat through NAT"""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['data_dir'] = data_dir
    setup_logging(verbose)


@main.command()
@click.option('--listen', '-l', help='UDP listen address, e.g. :3478')
@click.option('--save', is_flag=True, help='Save the effective settings to the config file')
@click.pass_context
def introducer(ctx, listen: Optional[str], save: bool):
    """Run the rendezvous introducer."""

    config = _load_config(ctx)
    if listen:
        config.introducer.listen = listen
    if save:
        config.save()

    async def serve():
        server = Introducer(listen=config.introducer.listen)
        try:
            endpoint = await server.start()
            console.print(f"\n[bold blue]Introducer running on[/bold blue] [cyan]{endpoint}[/cyan]")
            console.print("   Press Ctrl+C to stop\n")
            await server.serve_forever()
        finally:
            await server.stop()

    try:
        run_async(serve())
    except NatChatError as e:
        console.print(f"[red]Introducer error: {escape(e.message)}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Introducer stopped[/dim]")


@main.command()
@click.option('--name', '-n', help='Display name (defaults to peer-NNNN)')
@click.option('--room', '-r', help='Room to join')
@click.option('--introducer', '-i', 'introducer_addr', help='Introducer ip:port')
@click.option('--manual', '-m', help='Peer ip:port to connect to directly')
@click.option('--listen', '-l', help='UDP listen address, e.g. :50000')
@click.option('--save', is_flag=True, help='Save the effective settings to the config file')
@click.pass_context
def peer(
    ctx,
    name: Optional[str],
    room: Optional[str],
    introducer_addr: Optional[str],
    manual: Optional[str],
    listen: Optional[str],
    save: bool,
):
    """Join a room and chat. Commands: /peers, /quit"""

    config = _load_config(ctx)
    settings = config.peer
    if name:
        settings.name = name
    if room:
        settings.room = room
    if introducer_addr:
        settings.introducer = introducer_addr
    if manual:
        settings.manual = manual
    if listen:
        settings.listen = listen
    if save:
        config.save()

    node = Peer(
        name=settings.name,
        room=settings.room,
        listen=settings.listen,
        introducer=settings.introducer,
        manual=settings.manual,
        punch_config=config.punch,
        sink=render_event,
    )

    try:
        run_async(_run_peer(node))
    except NatChatError as e:
        console.print(f"[red]Peer error: {escape(e.message)}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Bye[/dim]")


async def _run_peer(node: Peer) -> None:
    """Start the peer, chat until the user quits, then leave and stop."""
    try:
        endpoint = await node.start()
        console.print(f"\n[bold blue]Peer {escape(node.name)} running on[/bold blue] [cyan]{endpoint}[/cyan]")
        if node.introducer:
            console.print(f"   Room: {escape(node.room)} via {node.introducer}")
        console.print("   Type a message and press Enter. Commands: /peers, /quit\n")

        await _chat_loop(node)
    finally:
        await node.leave()
        await node.stop()


async def _read_line(prompt: str) -> str:
    """
    Read one terminal line without tying up the event loop.

    The blocking read runs in a daemon thread, so a cancelled prompt
    (Ctrl+C) neither waits for Enter nor keeps the process alive.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def deliver(line, error):
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(line)

    def read():
        line, error = None, None
        try:
            line = console.input(prompt)
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(deliver, line, error)
        except RuntimeError:
            # loop already closed; nobody is waiting for this line
            return

    threading.Thread(target=read, name="natchat-input", daemon=True).start()
    return await future


async def _chat_loop(node: Peer) -> None:
    """Read lines from the terminal until /quit or end of input."""
    while True:
        try:
            text = await _read_line("> ")
        except EOFError:
            return

        if text == "/quit":
            return
        if text == "/peers":
            _print_peers(node)
        else:
            await node.send(text)

        node.raise_if_failed()


def _print_peers(node: Peer) -> None:
    peers = node.peers()
    if not peers:
        console.print("[dim](none)[/dim]")
        return
    for endpoint in peers:
        punching = "[green]punching[/green]" if node.puncher.is_punching(endpoint) else ""
        console.print(f"  - [cyan]{endpoint}[/cyan] {punching}")


@main.group('config')
def config_group():
    """Configuration commands."""
    pass


@config_group.command('show')
@click.pass_context
def config_show(ctx):
    """Show the effective configuration."""

    config = _load_config(ctx)

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="dim")
    table.add_column("Value")

    table.add_row("Config file", str(config.config_path))
    table.add_row("Saved", "yes" if config.config_path.exists() else "[dim]no[/dim]")
    for section, values in config.to_dict().items():
        for key, value in values.items():
            shown = "[dim]-[/dim]" if value is None else escape(str(value))
            table.add_row(f"{section}.{key}", shown)

    console.print(table)


if __name__ == '__main__':
    main()
