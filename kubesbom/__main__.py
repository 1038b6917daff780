import typer

from kubesbom.__version__ import __version__
from kubesbom.commands import sbom
from kubesbom.commands import scan
from kubesbom.core.logging import setup_logging

app = typer.Typer(
    help='kubesbom: scan a Kubernetes cluster inventory and build its SBOM.',
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)

app.command(name='scan')(scan.main)
app.command(name='sbom')(sbom.main)


def _print_version(value: bool):
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main(
    debug: bool = typer.Option(False, '--debug', help='Enable debug logging'),
    version: bool = typer.Option(
        False, '--version', callback=_print_version, is_eager=True,
        help='Show the version and exit',
    ),
):
    """
    kubesbom CLI.
    """
    level = 'DEBUG' if debug else 'INFO'
    setup_logging(level=level)


if __name__ == '__main__':
    app()
