import os
from typing import Optional

from dotenv import load_dotenv

from distributor.errors import MissingEnvironmentVariableException

load_dotenv()


def env_var(accessor: str, default: Optional[str] = None) -> str:
    """
    Attempt to fetch an environment variable and throw
    an error if not found and no default is given
    """
    var = os.environ.get(accessor, default)
    if not var:
        raise MissingEnvironmentVariableException(accessor)
    return var


class PATHS:
    DB = env_var("DISTRIBUTOR_DB_PATH", "reports/distributor-db.json")
    REPORTS = env_var("DISTRIBUTOR_REPORTS_PATH", "reports")


STORE_TIMEOUT_SECONDS = float(env_var("STORE_TIMEOUT_SECONDS", "10"))


# chain access is only needed for reconciliation, so these are read lazily
def rpc_url() -> str:
    return env_var("RPC_URL")


def distributor_address() -> str:
    return env_var("MERKLE_DISTRIBUTOR_CONTRACT")
