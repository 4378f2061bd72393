"""Runtime configuration for the explorer."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional

from .input_convert import to_number

ENV_BASE_URL = "GPD_EXPLORER_BASE_URL"
ENV_TIMEOUT = "GPD_EXPLORER_TIMEOUT"


@dataclass(frozen=True)
class ExplorerConfig:
    """Settings for the service client and the user-facing actions.

    Parameters
    ----------
    base_url : str
        Root URL of the model/dataset service.
    timeout_s : float
        Per-request HTTP timeout in seconds.
    download_filename : str
        File name handed to the exporter by Download.
    cancel_superseded : bool
        Cancel an in-flight resolution when a newer one of the same kind is
        issued. Stale results are discarded either way.
    error_message : str
        Message shown when a dataset fetch fails.
    """

    base_url: str = "http://localhost:5000/"
    timeout_s: float = 30.0
    download_filename: str = "model.csv"
    cancel_superseded: bool = True
    error_message: str = "Error: Data not found"

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url must not be empty")
        if not self.base_url.endswith("/"):
            object.__setattr__(self, "base_url", self.base_url + "/")
        timeout = to_number(self.timeout_s, name="timeout_s")
        if timeout <= 0:
            raise ValueError("timeout_s must be > 0")
        object.__setattr__(self, "timeout_s", timeout)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: object) -> ExplorerConfig:
        """Build a config from ``GPD_EXPLORER_*`` variables plus explicit overrides."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        if env.get(ENV_BASE_URL):
            values["base_url"] = env[ENV_BASE_URL]
        if env.get(ENV_TIMEOUT):
            values["timeout_s"] = env[ENV_TIMEOUT]
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]
