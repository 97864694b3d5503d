"""Runtime settings, read from the environment after loading an optional .env.

Recognised variables:
    MONOCTL_HOME            node home (default ~/.monod)
    MONOCTL_NETWORK         default network (default Localnet)
    MONOCTL_FETCH_TIMEOUT   fetch timeout in seconds (default 30)
    MONOCTL_LOG_LEVEL       DEBUG, INFO, WARNING, ERROR or CRITICAL
    MONOCTL_COMET_RPC       CometBFT RPC endpoint for `status`
    MONOCTL_COSMOS_REST     Cosmos REST endpoint for `status`
    MONOCTL_EVM_RPC         EVM JSON-RPC endpoint for `status`

Command-line flags override every value here.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import load_dotenv

from monoctl.errors import ConfigError
from monoctl.net.fetcher import DEFAULT_TIMEOUT


DEFAULT_HOME = "~/.monod"
DEFAULT_NETWORK = "Localnet"
DEFAULT_COMET_RPC = "http://localhost:26657"
DEFAULT_COSMOS_REST = "http://localhost:1317"
DEFAULT_EVM_RPC = "http://localhost:8545"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    home: Path
    network: str = DEFAULT_NETWORK
    fetch_timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"
    comet_rpc: str = DEFAULT_COMET_RPC
    cosmos_rest: str = DEFAULT_COSMOS_REST
    evm_rpc: str = DEFAULT_EVM_RPC

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Union[str, Path]] = None,
    ) -> Settings:
        """Build settings from ``env`` (default: the process environment).

        When reading the process environment, a ``.env`` file is loaded
        first; variables already set in the environment win over it.
        Raises ConfigError for an invalid timeout or log level.
        """
        if env is None:
            load_dotenv(dotenv_path)
            env = os.environ

        home = Path(env.get("MONOCTL_HOME") or DEFAULT_HOME).expanduser()

        raw_timeout = env.get("MONOCTL_FETCH_TIMEOUT") or str(DEFAULT_TIMEOUT)
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise ConfigError(f"MONOCTL_FETCH_TIMEOUT must be a number, got {raw_timeout!r}") from None
        if timeout <= 0:
            raise ConfigError(f"MONOCTL_FETCH_TIMEOUT must be positive, got {raw_timeout!r}")

        log_level = (env.get("MONOCTL_LOG_LEVEL") or "INFO").upper()
        if log_level not in _LOG_LEVELS:
            raise ConfigError(
                f"MONOCTL_LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got {log_level!r}"
            )

        return cls(
            home=home,
            network=env.get("MONOCTL_NETWORK") or DEFAULT_NETWORK,
            fetch_timeout=timeout,
            log_level=log_level,
            comet_rpc=env.get("MONOCTL_COMET_RPC") or DEFAULT_COMET_RPC,
            cosmos_rest=env.get("MONOCTL_COSMOS_REST") or DEFAULT_COSMOS_REST,
            evm_rpc=env.get("MONOCTL_EVM_RPC") or DEFAULT_EVM_RPC,
        )
