import json

import pytest

from minisocks.config import Config, split_address
from minisocks.exceptions import ConfigError
from minisocks.password import parse_key, parse_table


def test_read_config_creates_file_with_defaults(tmp_path):
    path = tmp_path / 'nested' / 'minisocks.json'
    config = Config.read_config(path)

    assert path.is_file()
    data = json.loads(path.read_text(encoding='utf-8'))
    assert data == {'listen': ':7448', 'remote': ':7448', 'password': config.password, 'cipher': 'table'}
    assert len(parse_table(config.password)) == 256


def test_read_config_keeps_existing_values(tmp_path):
    path = tmp_path / 'minisocks.json'
    key = '11' * 32
    path.write_text(json.dumps({
        'listen': '127.0.0.1:9000',
        'remote': 'example.com:7448',
        'password': key,
        'cipher': 'chacha20-poly1305',
        'timeout': 12.5,
    }), encoding='utf-8')

    config = Config.read_config(path)
    assert config.listen == '127.0.0.1:9000'
    assert config.remote == 'example.com:7448'
    assert config.cipher == 'chacha20-poly1305'
    assert parse_key(config.password) == b'\x11' * 32
    assert config.timeout == 12.5

    assert Config.load(path).to_dict() == config.to_dict()


def test_missing_password_is_generated_for_cipher(tmp_path):
    path = tmp_path / 'minisocks.json'
    path.write_text(json.dumps({'cipher': 'aes-gcm'}), encoding='utf-8')

    config = Config.read_config(path)
    assert len(parse_key(config.password)) == 32
    assert json.loads(path.read_text(encoding='utf-8'))['password'] == config.password


@pytest.mark.parametrize('content', ['{not json', '[1, 2, 3]'])
def test_invalid_config_raises(tmp_path, content):
    path = tmp_path / 'minisocks.json'
    path.write_text(content, encoding='utf-8')
    with pytest.raises(ConfigError):
        Config.read_config(path)


@pytest.mark.parametrize('address, expected', [
    (':7448', ('0.0.0.0', 7448)),
    ('127.0.0.1:1080', ('127.0.0.1', 1080)),
    ('example.com:443', ('example.com', 443)),
    ('[::1]:7448', ('::1', 7448)),
])
def test_split_address(address, expected):
    assert split_address(address) == expected


def test_split_address_default_host():
    assert split_address(':1080', default_host='127.0.0.1') == ('127.0.0.1', 1080)


@pytest.mark.parametrize('address', ['7448', 'localhost:http', 'localhost:70000'])
def test_split_address_rejects(address):
    with pytest.raises(ConfigError):
        split_address(address)
