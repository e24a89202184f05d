from typing import *
import json
import logging
import os
from pathlib import Path

from .exceptions import ConfigError
from .password import generate_secret


DEFAULT_CONFIG_PATH = Path.home() / '.minisocks.json'
DEFAULT_ADDRESS = ':7448'
DEFAULT_CIPHER = 'table'

logger = logging.getLogger(__name__)


class Config:
    def __init__(self, listen: str = DEFAULT_ADDRESS, remote: str = DEFAULT_ADDRESS, password: Optional[str] = None,
                 cipher: str = DEFAULT_CIPHER, timeout: Optional[float] = None):
        self.listen = listen
        self.remote = remote
        self.cipher = cipher
        self.password = generate_secret(cipher) if password is None else password
        self.timeout = timeout

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'listen': self.listen,
            'remote': self.remote,
            'password': self.password,
            'cipher': self.cipher,
        }
        if self.timeout is not None:
            data['timeout'] = self.timeout
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        if not isinstance(data, dict):
            raise ConfigError(f'Config must be a JSON object, got {type(data).__name__}')

        cipher = data.get('cipher', DEFAULT_CIPHER)
        return cls(
            listen=data.get('listen', DEFAULT_ADDRESS),
            remote=data.get('remote', DEFAULT_ADDRESS),
            password=data.get('password'),
            cipher=cipher,
            timeout=data.get('timeout'),
        )

    @classmethod
    def load(cls, path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> 'Config':
        path = Path(path)
        logger.info(f'Reading config from {path}')
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f'Invalid JSON config file {path}: {e}') from e
        return cls.from_dict(data)

    def save(self, path: Union[str, Path] = DEFAULT_CONFIG_PATH):
        path = Path(path)
        os.makedirs(path.parent, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent='\t')
        logger.info(f'Saved config to {path}')

    @classmethod
    def read_config(cls, path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> 'Config':
        # missing file -> defaults with a fresh password, written back either way
        path = Path(path)
        config = cls.load(path) if path.is_file() else cls()
        config.save(path)
        return config

    def __str__(self):
        return f'{self.__class__.__name__}(listen="{self.listen}", remote="{self.remote}", cipher={self.cipher})'


def split_address(address: str, default_host: str = '0.0.0.0') -> Tuple[str, int]:
    host, sep, port = address.rpartition(':')
    if not sep:
        raise ConfigError(f'Address must look like "host:port", got "{address}"')
    try:
        port = int(port)
    except ValueError:
        raise ConfigError(f'Invalid port in address "{address}"')
    if not 0 <= port <= 65535:
        raise ConfigError(f'Port out of range in address "{address}"')

    host = host.strip('[]') or default_host
    return host, port
