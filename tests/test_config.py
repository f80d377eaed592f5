"""Tests for settings.conf loading."""

from decimal import Decimal

import pytest

from config import load_config, PricingSettings, SettingsError
from config.lib.load_settings_conf import load_settings_conf
from pricing import TierClassifier

SETTINGS = """
[DEFAULT]
db_url = postgresql://root@db:26257/pricing?sslmode=disable
admin_token_secret = s3cret
base_price_per_point = 0.25
default_phase_days = 3.5
series_total_nfts = 1000

[tiers]
bronze = 0, 1.0
silver = 200, 1.2
gold = 400, 2.0
"""

def write_settings(tmp_path, content: str):
    (tmp_path / 'settings.conf').write_text(content)
    return str(tmp_path)

def test_missing_file_uses_defaults(tmp_path):
    """Test the fallback when settings.conf is absent."""
    settings = load_config(str(tmp_path))
    assert isinstance(settings, PricingSettings)
    assert settings.base_price_per_point == Decimal('0.10')
    assert settings.default_phase_seconds == 7 * 86400
    assert settings.series_total_nfts == 5000
    assert settings.series_growth_percent == Decimal('7.5')
    assert settings.tiers is None

def test_missing_file_required(tmp_path):
    """Test require_file."""
    with pytest.raises(SettingsError):
        load_settings_conf(str(tmp_path), require_file=True)

def test_load_settings(tmp_path):
    """Test parsing overrides and tier bands."""
    settings = load_config(write_settings(tmp_path, SETTINGS))

    assert settings.admin_token_secret == 's3cret'
    assert settings.base_price_per_point == Decimal('0.25')
    assert settings.default_phase_seconds == 302400
    assert settings.series_total_nfts == 1000
    assert settings.scheduler_interval == 60
    assert [t.tier for t in settings.tiers] == ['BRONZE', 'SILVER', 'GOLD']

    classifier = TierClassifier.from_settings(settings)
    assert classifier.classify(450) == ('GOLD', Decimal('2.0'))

@pytest.mark.parametrize('line', [
    'base_price_per_point = 0',
    'default_phase_days = -1',
    'default_phase_days = 10000000',
    'default_phase_days = 0.000001',
    'series_growth_percent = 150',
    'scheduler_interval = 0',
    'series_total_nfts = lots',
])
def test_invalid_values(tmp_path, line):
    """Test out-of-range and malformed values."""
    content = f"[DEFAULT]\ndb_url = postgresql://localhost/pricing\n{line}\n"
    with pytest.raises(SettingsError):
        load_config(write_settings(tmp_path, content))

def test_missing_db_url(tmp_path):
    """Test the required database URL."""
    with pytest.raises(SettingsError):
        load_config(write_settings(tmp_path, "[DEFAULT]\ndb_url =\n"))

def test_malformed_tiers(tmp_path):
    """Test tier lines without a multiplier."""
    content = "[DEFAULT]\ndb_url = postgresql://localhost/pricing\n\n[tiers]\nbronze = 0\n"
    with pytest.raises(SettingsError):
        load_config(write_settings(tmp_path, content))
