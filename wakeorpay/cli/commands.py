"""CLI commands for wakeorpay."""

import asyncio
import sys
import threading
from datetime import date, time

import typer
from rich.console import Console
from rich.table import Table

from wakeorpay import __version__, __logo__

app = typer.Typer(
    name="wakeorpay",
    help=f"{__logo__} wakeorpay - Wake up or the emergency contact gets a text",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} wakeorpay v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
    log_level: str = typer.Option(None, "--log-level", help="Loguru level (default: $LOG_LEVEL or INFO)"),
):
    """wakeorpay - alarm clock with QR wake-up verification."""
    from wakeorpay.logging_config import setup_logging

    setup_logging(log_level)


# ============================================================================
# Shared helpers
# ============================================================================


def _load_storage():
    from wakeorpay.alarm.storage import AlarmStorage
    from wakeorpay.config.loader import load_config

    config = load_config()
    return config, AlarmStorage(config.data_path)


def _parse_days(days: str | None):
    from wakeorpay.alarm.models import Weekday

    if not days:
        return set()
    names = {d.name[:3].lower(): d for d in Weekday}
    result = set()
    for part in days.split(","):
        key = part.strip().lower()[:3]
        if key not in names:
            console.print(f"[red]Unknown weekday: {part}[/red]")
            raise typer.Exit(1)
        result.add(names[key])
    return result


def _start_stdin_reader(runtime) -> None:
    """Feed each line typed on stdin to the machine as a scanned stop code."""
    from wakeorpay.session.events import WakeEvent, WakeEventKind

    def read_lines():
        for line in sys.stdin:
            runtime.router.submit_threadsafe(WakeEvent(WakeEventKind.STOP_CODE_SCANNED, code=line.strip()))

    threading.Thread(target=read_lines, name="stop-code-reader", daemon=True).start()


def _print_result(snapshot) -> None:
    from wakeorpay.session.models import SessionState

    if snapshot.state == SessionState.SUCCESS:
        elapsed = snapshot.elapsed_to_stop.total_seconds() if snapshot.elapsed_to_stop else 0
        console.print(f"[green]✓ Good morning! Alarm stopped after {elapsed:.0f}s[/green]")
    elif snapshot.state == SessionState.FAILURE:
        console.print("[red]✗ Time is up. Your emergency contact is being notified.[/red]")


# ============================================================================
# Setup
# ============================================================================


@app.command()
def onboard(
    contact: str = typer.Option("", "--contact", "-c", help="Emergency contact phone number"),
):
    """Initialize wakeorpay configuration and data directory."""
    from wakeorpay.config.loader import get_config_path, load_config, save_config
    from wakeorpay.config.schema import Config
    from wakeorpay.utils.helpers import ensure_dir

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    config = Config()
    if config_path.exists():
        # relay registrations are keyed by device id
        config.escalation.device_id = load_config().escalation.device_id
    config.escalation.emergency_contact = contact
    save_config(config)
    console.print(f"[green]✓[/green] Created config at {config_path}")

    data_dir = ensure_dir(config.data_path)
    console.print(f"[green]✓[/green] Data directory at {data_dir}")

    console.print(f"\n{__logo__} wakeorpay is ready!")
    console.print("\nNext steps:")
    if not contact:
        console.print("  1. Set [cyan]escalation.emergencyContact[/cyan] in ~/.wakeorpay/config.json")
    console.print('  2. Add an alarm: [cyan]wakeorpay alarms add 06:30 --title "Gym"[/cyan]')
    console.print("  3. Print the code from [cyan]wakeorpay stop-code[/cyan] as a QR and put it far from bed")


@app.command()
def status():
    """Show configuration and any interrupted ringing session."""
    from wakeorpay.config.loader import load_config
    from wakeorpay.errors import RecordCorruptError
    from wakeorpay.session.record import SessionRecordStore

    config = load_config()
    console.print(f"{__logo__} wakeorpay v{__version__}")
    console.print(f"Data dir: {config.data_path}")
    console.print(f"Grace window: {config.verification.grace_window_seconds:.0f}s")
    escalation = "[green]on[/green]" if config.escalation_active() else "[dim]off[/dim]"
    console.print(f"Escalation: {escalation} (relay deadline {config.escalation.sms_window_seconds:.0f}s)")

    try:
        record = SessionRecordStore(config.data_path).read()
    except RecordCorruptError as e:
        console.print(f"[yellow]Recovery record unreadable: {e}[/yellow]")
        return
    if record:
        console.print(f"Ringing since {record.started_at.isoformat()} (alarm {record.alarm_id})")
    else:
        console.print("No alarm ringing")


@app.command("stop-code")
def stop_code(
    token: str = typer.Argument(None, help="Alarm-specific token (default: the universal token)"),
):
    """Print the string to encode in the stop QR code."""
    from wakeorpay.config.loader import load_config
    from wakeorpay.verification.stop_code import make_stop_code

    config = load_config()
    console.print(make_stop_code(
        token or config.verification.universal_token,
        scheme=config.verification.stop_code_scheme,
    ))


# ============================================================================
# Alarm Commands
# ============================================================================


alarms_app = typer.Typer(help="Manage alarms")
app.add_typer(alarms_app, name="alarms")


@alarms_app.command("list")
def alarms_list():
    """List alarms."""
    from wakeorpay.utils.helpers import local_now

    _, storage = _load_storage()
    alarms = storage.load_all()

    if not alarms:
        console.print("No alarms.")
        return

    now = local_now()
    table = Table(title="Alarms")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Time")
    table.add_column("Repeat")
    table.add_column("QR")
    table.add_column("Status")
    table.add_column("Next Ring")

    for alarm in sorted(alarms, key=lambda a: a.time_of_day):
        next_fire = alarm.next_fire_time(now)
        status = "[green]enabled[/green]" if alarm.enabled else "[dim]disabled[/dim]"
        table.add_row(
            alarm.id,
            alarm.title,
            alarm.time_label,
            alarm.repeat_label,
            alarm.expected_stop_token if alarm.qr_required else "-",
            status,
            next_fire.strftime("%a %H:%M") if next_fire else "",
        )

    console.print(table)


@alarms_app.command("add")
def alarms_add(
    at: str = typer.Argument(..., help="Time of day, HH:MM"),
    title: str = typer.Option("Alarm", "--title", "-t"),
    days: str = typer.Option(None, "--days", "-d", help="Repeat days, e.g. 'mon,tue,fri'"),
    sound: str = typer.Option(None, "--sound", help="Sound name"),
    volume: float = typer.Option(None, "--volume", min=0.0, max=1.0),
    token: str = typer.Option(None, "--token", help="Require this stop-code token instead of the universal one"),
    no_qr: bool = typer.Option(False, "--no-qr", help="Allow stopping without a QR scan"),
):
    """Add an alarm."""
    from pydantic import ValidationError

    from wakeorpay.alarm.models import AlarmDefinition

    config, storage = _load_storage()

    try:
        alarm = AlarmDefinition(
            title=title,
            time_of_day=time.fromisoformat(at),
            repeat_days=_parse_days(days),
            sound_name=sound or config.sound.default_sound,
            volume=config.sound.default_volume if volume is None else volume,
            qr_required=not no_qr,
            expected_stop_token=token or config.verification.universal_token,
        )
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Invalid alarm: {e}[/red]")
        raise typer.Exit(1)

    storage.upsert(alarm)
    console.print(f"[green]✓[/green] Added alarm '{alarm.title}' at {alarm.time_label} ({alarm.id})")


@alarms_app.command("remove")
def alarms_remove(
    alarm_id: str = typer.Argument(..., help="Alarm ID to remove"),
):
    """Remove an alarm."""
    _, storage = _load_storage()

    if storage.delete(alarm_id):
        console.print(f"[green]✓[/green] Removed alarm {alarm_id}")
    else:
        console.print(f"[red]Alarm {alarm_id} not found[/red]")


@alarms_app.command("toggle")
def alarms_toggle(
    alarm_id: str = typer.Argument(..., help="Alarm ID"),
):
    """Enable or disable an alarm."""
    _, storage = _load_storage()

    alarm = storage.toggle(alarm_id)
    if alarm is None:
        console.print(f"[red]Alarm {alarm_id} not found[/red]")
        raise typer.Exit(1)
    state = "enabled" if alarm.enabled else "disabled"
    console.print(f"[green]✓[/green] Alarm '{alarm.title}' {state}")


# ============================================================================
# Ringing
# ============================================================================


@app.command()
def ring(
    alarm_id: str = typer.Argument(..., help="Alarm to ring now (test trigger)"),
):
    """Ring an alarm now and wait for its stop code on stdin."""
    from wakeorpay.config.loader import load_config
    from wakeorpay.runtime import build_runtime
    from wakeorpay.session.models import SessionState

    runtime = build_runtime(load_config())
    alarm = runtime.alarms.get(alarm_id)
    if alarm is None:
        console.print(f"[red]Alarm {alarm_id} not found[/red]")
        raise typer.Exit(1)

    async def ring_once() -> None:
        finished = asyncio.Event()
        last = {}

        def on_change(snapshot):
            if snapshot.state.is_terminal:
                last["snapshot"] = snapshot
                finished.set()

        runtime.machine.subscribe(on_change)
        await runtime.start()
        runtime.scheduler.cancel_all()
        if runtime.machine.state != SessionState.ACTIVE:
            runtime.router.on_manual_test_trigger(alarm)

        console.print(f"{__logo__} [bold]{alarm.title}[/bold] is ringing. Type or scan the stop code:")
        _start_stdin_reader(runtime)
        try:
            await finished.wait()
            _print_result(last["snapshot"])
            runtime.machine.acknowledge()
        finally:
            await runtime.stop()

    asyncio.run(ring_once())


@app.command()
def run():
    """Run the alarm clock: ring scheduled alarms, read stop codes from stdin."""
    from wakeorpay.config.loader import load_config
    from wakeorpay.runtime import build_runtime
    from wakeorpay.session.models import SessionState

    runtime = build_runtime(load_config())

    async def main_loop() -> None:
        def on_change(snapshot):
            if snapshot.state.is_terminal and not snapshot.acknowledged:
                _print_result(snapshot)
                runtime.machine.acknowledge()
            elif snapshot.state == SessionState.ACTIVE:
                console.print(f"{__logo__} [bold]{snapshot.alarm_title}[/bold] is ringing! Scan the stop code.")

        runtime.machine.subscribe(on_change)
        await runtime.start()
        _start_stdin_reader(runtime)
        try:
            while True:
                await asyncio.sleep(3600)
        finally:
            await runtime.stop()

    try:
        asyncio.run(main_loop())
    except KeyboardInterrupt:
        console.print("\nGoodbye!")


# ============================================================================
# History
# ============================================================================


@app.command()
def history(
    limit: int = typer.Option(10, "--limit", "-n", help="Entries to show"),
):
    """Show recent wake-ups and statistics."""
    from wakeorpay.config.loader import load_config
    from wakeorpay.history.store import WakeUpHistoryStore

    store = WakeUpHistoryStore(load_config().data_path)
    entries = store.recent(limit)

    if not entries:
        console.print("No wake-ups recorded yet.")
        return

    table = Table(title="Wake-up History")
    table.add_column("Date")
    table.add_column("Alarm")
    table.add_column("Result")
    table.add_column("Time to stop")

    for entry in entries:
        result = "[green]scanned[/green]" if entry.qr_code_scanned else "[red]missed[/red]"
        took = entry.time_to_wake_up_label if entry.qr_code_scanned else "-"
        table.add_row(entry.date.strftime("%Y-%m-%d %H:%M"), entry.alarm_title, result, took)

    console.print(table)

    stats = store.statistics(date.today())
    console.print(
        f"Streak: {stats.current_streak} days (best {stats.longest_streak}) | "
        f"Success rate: {stats.success_rate_label} | "
        f"Avg time to stop: {stats.average_time_to_wake_up:.0f}s"
    )


if __name__ == "__main__":
    app()
