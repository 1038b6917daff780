"""Trivy installation utilities."""
import shutil

from rich.console import Console
from rich.panel import Panel

from kubesbom.core.exceptions import TrivyNotFoundError


def check_trivy_installed(binary: str = 'trivy', console: Console | None = None) -> str:
    """
    Resolve the trivy binary on the PATH.
    If it is missing, print an installation guide and raise TrivyNotFoundError.
    """
    console = console or Console(stderr=True)

    resolved = shutil.which(binary)
    if resolved:
        return resolved

    console.print()
    console.print(
        Panel(
            '[bold]Trivy Not Found[/]\n\n'
            'Scanning requires [bold blue]Trivy[/] to analyze images and configs.\n'
            'Official Repository: [link=https://github.com/aquasecurity/trivy][blue]https://github.com/aquasecurity/trivy[/link]\n\n'
            'Please install it using one of the following methods:\n\n'
            '[bold]Option 1: Using the install script (Linux/macOS)[/]\n'
            '  [blue]curl -sfL https://raw.githubusercontent.com/aquasecurity/trivy/main/contrib/install.sh | sh -s -- -b /usr/local/bin[/]\n\n'
            '[bold]Option 2: Using Homebrew (macOS)[/]\n'
            '  [blue]brew install trivy[/]\n\n'
            'After installation, ensure [bold]trivy[/] is in your [bold]PATH[/] '
            'or set [bold]KUBESBOM_TRIVY_PATH[/].\n'
            'The [bold]sbom[/] command works without Trivy.',
            title='[bold red]Dependency Missing[/]',
            title_align='left',
            border_style='red',
            padding=(1, 2),
        ),
    )
    raise TrivyNotFoundError(f"trivy binary not found: {binary}")
