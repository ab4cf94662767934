"""
Alembic runner for the marketplace schema.

No alembic.ini is shipped; the script location and URL are filled in from this
package and the database settings.

    python -m src.db.run_migrations upgrade head
    python -m src.db.run_migrations downgrade -1
    python -m src.db.run_migrations current
    python -m src.db.run_migrations stamp head
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List

from alembic import command
from alembic.config import Config

from src.db.config import get_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

# command name -> (alembic function, default arguments)
_COMMANDS: Dict[str, tuple[Callable[..., None], List[str]]] = {
    "upgrade": (command.upgrade, ["head"]),
    "downgrade": (command.downgrade, ["-1"]),
    "stamp": (command.stamp, ["head"]),
    "current": (command.current, []),
    "heads": (command.heads, []),
    "history": (command.history, []),
}


def build_config() -> Config:
    """Alembic config pointing at the bundled migrations and the configured database."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # env.py swaps in the async URL for online runs
    cfg.set_main_option("sqlalchemy.url", get_settings().sync_database_url)
    return cfg


# PUBLIC_INTERFACE
def main(argv: List[str] | None = None) -> None:
    """Run one Alembic command, e.g. ["upgrade", "head"]."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        sys.exit(f"usage: python -m src.db.run_migrations {{{','.join(_COMMANDS)}}} [revision]")

    name, rest = args[0], args[1:]
    if name not in _COMMANDS:
        sys.exit(f"Unsupported Alembic command: {name}")

    func, defaults = _COMMANDS[name]
    logger.info("alembic %s %s", name, " ".join(rest or defaults))
    func(build_config(), *(rest or defaults))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
