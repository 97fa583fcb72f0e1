"""HTTP transport helpers shared by RPC and routing clients."""

import requests
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

TRANSIENT_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)


def retrying(attempts: int) -> Retrying:
    """Retry policy for one network call.

    Only transport failures (connection reset, timeout) are retried, never
    HTTP or protocol errors. attempts=1 disables retrying.
    """
    return Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )


def build_session(user_agent: str = "chainhopper") -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})
    return session
