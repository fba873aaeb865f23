import asyncio
import subprocess
from typing import Annotated
from uuid import UUID

from rich import print
from rich.table import Table
import typer

from metricspulse.core.config import settings

app = typer.Typer()


async def init_db_task() -> None:
    """Create every table on the configured database."""
    from metricspulse.core.db import dispose_db, init_db

    print("[yellow]Creating database tables[/yellow]")
    try:
        await init_db()
    finally:
        await dispose_db()
    print("[green]Database tables created[/green]")


async def create_workspace_task(user_id: UUID, name: str) -> UUID:
    """
    Create the workspace for a user, or return the existing one.

    Returns:
        UUID: The workspace ID.
    """
    from metricspulse.core.db import AsyncSessionLocal
    from metricspulse.core.db.crud import workspace_db

    async with AsyncSessionLocal() as session:
        async with session.begin():
            if existing := await workspace_db.get_by_user_id(session, user_id):
                print(f"[yellow]Workspace already exists:[/yellow] {existing.id}")
                return existing.id
            workspace = await workspace_db.create(
                session, {"user_id": user_id, "name": name}, commit_self=False
            )
            print(f"[green]Workspace created:[/green] {workspace.id}")
            return workspace.id


async def connect_stripe_task(
    workspace_id: UUID, access_token: str, account_id: str | None
) -> None:
    """Store or replace the workspace's Stripe connection."""
    from metricspulse.core.db import AsyncSessionLocal
    from metricspulse.core.db.crud import connection_db, workspace_db

    async with AsyncSessionLocal() as session:
        async with session.begin():
            if not await workspace_db.get_by_id(session, workspace_id):
                print(f"[red]Error: Workspace {workspace_id} not found[/red]")
                raise typer.Exit(1)
            await connection_db.connect(
                session,
                workspace_id=workspace_id,
                access_token=access_token,
                provider_account_id=account_id,
                commit_self=False,
            )
    print(f"[green]Stripe connected for workspace[/green] {workspace_id}")


async def recalculate_task(workspace_id: UUID) -> None:
    """Recalculate one workspace's metrics and print the stored snapshots."""
    from metricspulse.apps.metrics.services import metrics_recalculator
    from metricspulse.core.exceptions.types import AppException

    try:
        snapshots = await metrics_recalculator.recalculate(workspace_id)
    except AppException as e:
        print(f"[red]Recalculation failed:[/red] {e.message}")
        raise typer.Exit(1)

    table = Table(title=f"Metrics for {workspace_id}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_column("Recorded at")
    for snapshot in snapshots:
        table.add_row(
            snapshot.metric_name.value,
            str(snapshot.value),
            snapshot.recorded_at.isoformat(),
        )
    print(table)


async def recalculate_all_task() -> None:
    from metricspulse.infrastructure.scheduler import recalculate_all_workspaces

    result = await recalculate_all_workspaces()
    print(
        f"[green]Recalculation complete:[/green] {len(result.succeeded)} succeeded, "
        f"{len(result.failed)} failed"
    )
    for workspace_id, error in result.failed.items():
        print(f"[red]  ✗ {workspace_id}:[/red] {error}")


@app.command()
def initdb():
    """
    Create the database tables for every model.

    Existing tables are left untouched.
    """
    asyncio.run(init_db_task())


@app.command()
def createworkspace(
    user_id: Annotated[UUID, typer.Option(help="ID of the owning user")],
    name: Annotated[str, typer.Option(help="Workspace name")] = "My Workspace",
):
    """
    Create a workspace for a user.

    Examples:
        python manage.py createworkspace --user-id 5b0f... --name "Acme"
    """
    asyncio.run(create_workspace_task(user_id, name))


@app.command()
def connectstripe(
    workspace_id: Annotated[UUID, typer.Argument(help="Workspace to connect")],
    access_token: Annotated[
        str,
        typer.Option(
            prompt=True, hide_input=True, help="Stripe secret key of the account"
        ),
    ],
    account_id: Annotated[
        str | None, typer.Option(help="Stripe Connect account ID (acct_...)")
    ] = None,
):
    """
    Store a Stripe connection for a workspace, replacing any existing one.
    """
    asyncio.run(connect_stripe_task(workspace_id, access_token, account_id))


@app.command()
def recalculate(
    workspace_id: Annotated[
        UUID | None,
        typer.Argument(help="Workspace to recalculate. Omit to recalculate all."),
    ] = None,
):
    """
    Recalculate metrics now, bypassing the per-workspace throttle.

    Examples:
        python manage.py recalculate 5b0f...
        python manage.py recalculate
    """
    if workspace_id is None:
        asyncio.run(recalculate_all_task())
    else:
        asyncio.run(recalculate_task(workspace_id))


@app.command()
def runserver():
    try:
        server_command = (
            "uvicorn metricspulse.main:app --host 127.0.0.1 --port 8000 --reload"
            if settings.DEBUG
            else "uvicorn metricspulse.main:app --host 0.0.0.0 --port 8000"
        )
        print(f"Running FastAPI server: {server_command}")
        subprocess.run(server_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise


@app.callback()
def main(ctx: typer.Context):
    print(f"Executing the command: {ctx.invoked_subcommand}")


if __name__ == "__main__":
    app()
