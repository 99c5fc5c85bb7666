import os
import sys
import unittest
import keyring
import yaml
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig, AppConfig

class DummyKeyring(keyring.backend.KeyringBackend):
    priority = 1
    def __init__(self):
        self.store = {}
    def get_password(self, service, username):
        return self.store.get((service, username))
    def set_password(self, service, username, password):
        self.store[(service, username)] = password
    def delete_password(self, service, username):
        self.store.pop((service, username), None)

class SettingsEncryptionTest(unittest.TestCase):
    def setUp(self) -> None:
        self.keyring = DummyKeyring()
        keyring.set_keyring(self.keyring)
        os.environ['ENCRYPT_SETTINGS'] = '1'
        self.path = 'enc_settings.yaml'
        if os.path.exists(self.path):
            os.remove(self.path)

    def tearDown(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)
        os.environ.pop('ENCRYPT_SETTINGS', None)

    def test_encrypt_and_load(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'sanity_token': 'secret', 'theme': 'dark'})
        with open(self.path, encoding='utf-8') as f:
            raw = yaml.safe_load(f)
        self.assertIs(raw['sanity_token'], True)
        self.assertEqual(self.keyring.store[('fitlog', 'sanity_token')], 'secret')
        data = cfg.load()
        self.assertEqual(data['sanity_token'], 'secret')
        self.assertEqual(data['theme'], 'dark')

    def test_placeholder_without_secret_counts_as_missing(self) -> None:
        with open(self.path, 'w', encoding='utf-8') as f:
            yaml.safe_dump({'backend': 'document', 'sanity_project_id': 'p1', 'sanity_token': True}, f)
        config = AppConfig.load(self.path, environ={})
        self.assertEqual(config.sanity_token, '')
        self.assertFalse(config.can_write)

if __name__ == '__main__':
    unittest.main()
