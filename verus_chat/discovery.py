"""
Locating and reading daemon config files.

Config files are plain `key=value` text. Their location depends on the
operating system and on the kind of chain: the primary chain and its testnet
live under the Komodo data directory, PBaaS chains under the Verus data
directory in a folder named after their hex chain-string.
"""

import os
import sys
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from loguru import logger
from pydantic import ValidationError

from verus_chat.errors import (
    ConfigIOError,
    ConfigNotFoundError,
    ConfigParseError,
    ConfigPermissionError,
)
from verus_chat.models import BlockchainDescriptor, ChainKind, Credentials

REQUIRED_KEYS = ("rpcuser", "rpcpassword", "rpcport")


class ConfigLocator:
    """
    Computes candidate config paths for a chain and finds the first that exists.

    Attributes:
        platform (str): A `sys.platform` style value.
        home (Path): The user's home directory.
        environ (Mapping[str, str]): Environment, consulted for APPDATA on
                                     Windows.
    """

    def __init__(
        self,
        platform: Optional[str] = None,
        home: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.platform = platform or sys.platform
        self.home = home or Path.home()
        self.environ = os.environ if environ is None else environ

    def _komodo_dir(self) -> Path:
        if self.platform.startswith("win"):
            return self._appdata() / "Komodo"
        if self.platform == "darwin":
            return self.home / "Library" / "Application Support" / "Komodo"
        return self.home / ".komodo"

    def _verus_dirs(self) -> List[Path]:
        if self.platform.startswith("win"):
            return [self._appdata() / "Verus"]
        if self.platform == "darwin":
            return [self.home / "Library" / "Application Support" / "Verus"]
        return [self.home / ".verus"]

    def _appdata(self) -> Path:
        appdata = self.environ.get("APPDATA")
        if appdata:
            return Path(appdata)
        return self.home / "AppData" / "Roaming"

    def candidate_paths(self, descriptor: BlockchainDescriptor) -> List[Path]:
        """
        Lists the places a chain's config may live, in priority order.

        Args:
            descriptor (BlockchainDescriptor): The chain to look for.

        Returns:
            List[Path]: Candidate config file paths; the first existing one wins.
        """
        if descriptor.kind is ChainKind.PRIMARY:
            paths = [self._komodo_dir() / "VRSC" / descriptor.config_name]
            paths.extend(
                verus_dir / "VRSC" / descriptor.config_name
                for verus_dir in self._verus_dirs()
            )
            return paths

        if descriptor.kind is ChainKind.TESTNET:
            return [self._komodo_dir() / "vrsctest" / descriptor.config_name]

        chain_hex = descriptor.chain_hex or ""
        paths = [
            verus_dir / "pbaas" / chain_hex / descriptor.config_name
            for verus_dir in self._verus_dirs()
        ]
        if self.platform == "darwin":
            # Older installs used an upper-case folder name
            paths.extend(
                verus_dir / "PBAAS" / chain_hex / descriptor.config_name
                for verus_dir in self._verus_dirs()
            )
        return paths

    def locate(self, descriptor: BlockchainDescriptor) -> Path:
        """
        Finds the config file for a chain.

        Raises:
            ConfigNotFoundError: If no candidate path holds a file.
            ConfigPermissionError: A candidate's directory may not be searched.
            ConfigIOError: Checking a candidate failed for another OS-level
                           reason.
        """
        for path in self.candidate_paths(descriptor):
            try:
                found = path.is_file()
            except PermissionError as exc:
                raise ConfigPermissionError(
                    f"Permission denied checking {path}", path
                ) from exc
            except OSError as exc:
                raise ConfigIOError(f"Failed to check {path}: {exc}", path) from exc
            if found:
                logger.debug(f"Found config for {descriptor.id} at {path}")
                return path
        raise ConfigNotFoundError(f"No config file found for {descriptor.name}")


def config_path_in_folder(folder: Path, descriptor: BlockchainDescriptor) -> Path:
    """Path of a chain's config directly inside a user-chosen folder."""
    return Path(folder) / descriptor.config_name


def parse_config_text(text: str) -> Dict[str, str]:
    """
    Parses `key=value` lines, ignoring blank lines and `#` comments.

    Later duplicates override earlier ones, as the daemon itself does.
    """
    values: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip()
    return values


def parse_config_file(path: Path) -> Credentials:
    """
    Reads RPC credentials from a daemon config file.

    Args:
        path (Path): Config file to read.

    Returns:
        Credentials: The parsed user, password and port.

    Raises:
        ConfigNotFoundError: The file does not exist.
        ConfigPermissionError: The file may not be read.
        ConfigIOError: Reading failed for another OS-level reason.
        ConfigParseError: A required key is missing or invalid.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigNotFoundError(f"Config file {path} does not exist", path) from exc
    except PermissionError as exc:
        raise ConfigPermissionError(f"Permission denied reading {path}", path) from exc
    except UnicodeDecodeError as exc:
        raise ConfigParseError(f"Config file {path} is not valid text", path) from exc
    except OSError as exc:
        raise ConfigIOError(f"Failed to read {path}: {exc}", path) from exc

    values = parse_config_text(text)
    missing = [key for key in REQUIRED_KEYS if not values.get(key)]
    if missing:
        raise ConfigParseError(
            f"Config file {path} is missing {', '.join(missing)}", path
        )

    try:
        return Credentials(
            rpc_user=values["rpcuser"],
            rpc_pass=values["rpcpassword"],
            rpc_port=values["rpcport"],
        )
    except ValidationError as exc:
        raise ConfigParseError(
            f"Config file {path} has an invalid rpcport: {values['rpcport']!r}",
            path,
        ) from exc
