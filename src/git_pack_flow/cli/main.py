"""Main CLI interface for git-pack-flow."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from git_pack_flow import __version__
from git_pack_flow.core.errors import MergeConflictError, PackFlowError
from git_pack_flow.core.session import SyncSession
from git_pack_flow.core.tracing import configure_logging
from git_pack_flow.models.command import Command, LoadCommand, SaveCommand

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)

USAGE_EXIT_CODE = 1


class FlowGroup(click.Group):
    """Command group that exits with status 1 on usage errors."""

    def main(
        self,
        args=None,
        prog_name=None,
        complete_var=None,
        standalone_mode=True,
        **extra,
    ):
        if not standalone_mode:
            return super().main(
                args, prog_name, complete_var, standalone_mode=False, **extra
            )
        try:
            rv = super().main(
                args, prog_name, complete_var, standalone_mode=False, **extra
            )
        except click.UsageError as e:
            e.show()
            sys.exit(USAGE_EXIT_CODE)
        except click.ClickException as e:
            e.show()
            sys.exit(e.exit_code)
        except click.Abort:
            click.echo("Aborted!", err=True)
            sys.exit(1)
        sys.exit(rv if isinstance(rv, int) else 0)


def run_command(repo_path: Path, command: Command):
    """Open a session on ``repo_path`` and run ``command``, or exit with error."""
    try:
        session = SyncSession.open(repo_path)
        return session.run(command)
    except MergeConflictError as e:
        err_console.print(f"[red]⚠️  {escape(str(e))}[/red]")
        err_console.print("Resolve the conflicts, then 'git add' and 'git commit'.")
        err_console.print("Use 'git merge --abort' to give up on this merge.")
        raise click.Abort() from e
    except PackFlowError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise click.Abort() from e


@click.group(
    cls=FlowGroup,
    invoke_without_command=True,
    no_args_is_help=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("-d", "--debug", is_flag=True, help="Trace session steps and git calls")
@click.option(
    "-C",
    "repo_path",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    help="Run as if started in this directory",
)
@click.version_option(version=__version__, prog_name="git-pack-flow")
@click.pass_context
def main(ctx: click.Context, debug: bool, repo_path: Path):
    """git-pack-flow - share branches as git bundles over any channel.

    \b
    Author:    git-pack-flow save $OUTBOX
    Reviewer:  git-pack-flow load $INBOX/feature--login__20240101T120000Z.bundle
    """
    configure_logging(debug)
    ctx.obj = {"repo_path": repo_path}
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help(), err=True)
        ctx.exit(USAGE_EXIT_CODE)


@main.command()
@click.argument("output_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option("--trunk", help="Branch the saved range starts from (default: main)")
@click.pass_obj
def save(obj: dict, output_dir: Path, trunk: Optional[str]):
    """Save the current branch's new commits as a bundle in OUTPUT_DIR.

    On the trunk branch itself the whole history is saved.
    """
    change_set = run_command(
        obj["repo_path"], SaveCommand(output_dir=output_dir, trunk=trunk)
    )
    console.print(f"[bold]Branch:[/bold] {escape(change_set.branch)}")
    console.print(f"[bold]Commits:[/bold] {len(change_set.commits)}")
    console.print(f"[green]✅ Saved {escape(str(change_set.path))}[/green]")


@main.command()
@click.argument("artifact", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--verify-signatures/--no-verify-signatures",
    default=None,
    help="Check every imported commit with 'git verify-commit' before merging",
)
@click.pass_obj
def load(obj: dict, artifact: Path, verify_signatures: Optional[bool]):
    """Load a bundle ARTIFACT and merge it into its branch.

    The branch is created from the current checkout if it does not exist.
    """
    branch = run_command(
        obj["repo_path"],
        LoadCommand(artifact=artifact, verify_signatures=verify_signatures),
    )
    console.print(f"[bold]Branch:[/bold] {escape(branch)}")
    console.print(f"[green]✅ Loaded {escape(branch)}[/green]")


if __name__ == "__main__":
    main()
