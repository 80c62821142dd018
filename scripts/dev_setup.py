"""Write development settings to .env, then create and seed the studio database."""
from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path
from typing import Dict

from dotenv import dotenv_values

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

DEFAULT_ENV_PATH = REPO_ROOT / ".env"
BACKUP_SUFFIX = ".bak"


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Create or update a .env file with the settings the studio needs for local "
            "development and initialize the SQLite library."
        )
    )
    parser.add_argument("--flask-app", default="wsgi.py", help="Entry point used by Flask (default: wsgi.py)")
    parser.add_argument(
        "--secret-key",
        help="Secret key for Flask sessions. If omitted, the current value in .env is preserved.",
    )
    parser.add_argument("--openai-api-key", help="API key for the AI tools (optional).")
    parser.add_argument("--database-url", help="Override DATABASE_URL (optional).")
    parser.add_argument("--log-level", help="LOG_LEVEL for the studio loggers (optional).")
    parser.add_argument(
        "--env-path",
        type=Path,
        default=DEFAULT_ENV_PATH,
        help="Path to the .env file that should be created/updated.",
    )
    parser.add_argument("--skip-db", action="store_true", help="Only update the .env file.")
    parser.add_argument(
        "--no-seed",
        action="store_true",
        help="Create the tables but leave the library empty instead of adding the starter project.",
    )
    return parser.parse_args(argv)


def read_env(path: Path) -> Dict[str, str]:
    if not path.exists():
        return {}
    return {key: value for key, value in dotenv_values(path).items() if value is not None}


def write_env(path: Path, values: Dict[str, str]) -> None:
    if path.exists():
        backup = shutil.copy(path, path.with_name(path.name + BACKUP_SUFFIX))
        print(f"Previous settings kept in {Path(backup).name}.")
    body = "".join(f"{key}={value}\n" for key, value in values.items())
    path.write_text(body, encoding="utf-8")
    print(f"Wrote {len(values)} settings to {path}.")


def update_env_file(args: argparse.Namespace) -> Dict[str, str]:
    env_data = read_env(args.env_path)
    env_updates = {"FLASK_APP": args.flask_app, "SEED_ON_STARTUP": "false" if args.no_seed else "true"}
    optional = {
        "SECRET_KEY": args.secret_key,
        "OPENAI_API_KEY": args.openai_api_key,
        "DATABASE_URL": args.database_url,
        "LOG_LEVEL": args.log_level,
    }
    env_updates.update({key: value for key, value in optional.items() if value})

    env_data.update(env_updates)
    write_env(args.env_path, env_data)
    return env_data


def initialize_database(*, seed: bool = True) -> bool:
    # Imported here so the studio config reads the .env written above.
    from studio import create_app, get_document_store

    app = create_app()
    with app.app_context():
        store = get_document_store()
        seeded = store.backing.seed_if_empty() if seed else False
        if seeded:
            store.reload()
        print(f"Library ready: {len(store.projects)} projects, {len(store.assets)} assets.")
    return seeded


def main(argv=None) -> None:
    args = parse_args(argv)
    env_values = update_env_file(args)

    if not args.skip_db:
        initialize_database(seed=not args.no_seed)
    else:
        print("Database initialization skipped.")

    print("\nSetup complete! Summary:")
    for key in sorted(env_values):
        value = env_values[key]
        if key in {"SECRET_KEY", "OPENAI_API_KEY"} and value:
            value = value[:4] + "..."
        print(f"  {key}={value}")


if __name__ == "__main__":
    main()
