import asyncio
import logging
from dataclasses import asdict
from typing import Any, Dict

import click
from rich.console import Console

from vigia.__version__ import __version__
from vigia.config import Config, load_config
from vigia.core.auditor import Auditor
from vigia.core.intelligence import run_intelligence
from vigia.core.model import AuditResult, IntelligenceReport
from vigia.errors import VigiaError

console = Console()


def configure_logging(config: Config) -> None:
    logging.basicConfig(
        filename=config.log_file,
        level=getattr(logging, config.log_level.upper(), logging.DEBUG),
        filemode="w",
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def report_to_dict(result: AuditResult, report: IntelligenceReport) -> Dict[str, Any]:
    return {
        "result": asdict(result),
        "intelligence": asdict(report),
    }


@click.command()
@click.version_option(__version__, prog_name="vigia")
@click.argument("paths", nargs=-1, type=click.Path(exists=True))
@click.option("--no-transitive", is_flag=True, help="Only audit declared dependencies")
@click.option("--json", "as_json", is_flag=True, help="Print the audit and intelligence report as JSON")
def main(paths, no_transitive, as_json):
    """Audit project dependencies for known vulnerabilities.

    PATHS are manifest files or a single project directory (default: the
    current directory).
    """
    config = load_config()
    configure_logging(config)
    paths = paths or (".",)

    if not as_json:
        from vigia.app import VigiaApp

        VigiaApp(paths=paths, include_transitive=not no_transitive, config=config).run()
        return

    try:
        result = asyncio.run(Auditor(config).audit_paths(paths, not no_transitive))
    except VigiaError as e:
        logging.error(f"Audit failed: {e}")
        raise click.ClickException(str(e))

    console.print_json(data=report_to_dict(result, run_intelligence(result.dependencies)))


# Development mode
if __name__ == "__main__":
    main()
