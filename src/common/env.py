"""Loading of local .env files with python-dotenv.

Entrypoints (the API module, scripts, the test conftest) call load_env()
before reading any configuration. Variables already exported in the shell win
over values from the file unless override=True.

The file is taken from, in order: the env_file argument, the LEAVE_ENV_FILE
variable, or the nearest .env found walking up from the working directory.
"""

import os
from typing import Optional

from dotenv import find_dotenv, load_dotenv

ENV_FILE_VAR = "LEAVE_ENV_FILE"


def resolve_env_file(env_file: Optional[str] = None) -> Optional[str]:
    """Return the .env path that load_env() would use, or None."""
    path = env_file or os.getenv(ENV_FILE_VAR) or find_dotenv(usecwd=True)
    if not path or not os.path.isfile(path):
        return None
    return path


def load_env(env_file: Optional[str] = None, override: bool = False) -> bool:
    """Load variables from a .env file into os.environ.

    Returns:
        True if a file was found and read, False otherwise.
    """
    path = resolve_env_file(env_file)
    if path is None:
        return False
    load_dotenv(dotenv_path=path, override=override)
    return True
