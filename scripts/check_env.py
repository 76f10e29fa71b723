from pathlib import Path

from dotenv import dotenv_values
from pydantic import ValidationError

from src.main.config import get_settings

PLACEHOLDER_PREFIX = "change-me"


def _keys(path: Path) -> set[str]:
    if not path.is_file():
        raise FileNotFoundError(path)
    return {key for key in dotenv_values(path) if key}


def check_env_file(env_path: Path = Path(".env")) -> None:
    """
    Checks that .env declares every key of .env.example, that no secret is
    left at its placeholder value, and that the settings load.
    """
    try:
        missing_keys = _keys(Path(".env.example")) - _keys(env_path)
    except FileNotFoundError as e:
        print(f"File not found: {e}")
        raise SystemExit(1)

    if missing_keys:
        print(f"Missing keys in {env_path}: {', '.join(sorted(missing_keys))}")
        raise SystemExit(1)

    values = dotenv_values(env_path)
    placeholders = sorted(
        key
        for key in ("TRACKING_TOKEN_SECRET_KEY", "ADMIN_API_KEY")
        if (values.get(key) or "").startswith(PLACEHOLDER_PREFIX)
    )
    if placeholders:
        print(f"Placeholder secrets in {env_path}: {', '.join(placeholders)}")
        raise SystemExit(1)

    try:
        get_settings()
    except ValidationError as e:
        print(f"Invalid settings:\n{e}")
        raise SystemExit(1)

    print(f"All required keys are present in {env_path}.")


if __name__ == "__main__":
    check_env_file()
