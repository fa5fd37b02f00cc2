"""
Tests for config.yaml loading and default merging.
"""

from wave_analysis.config import DEFAULT_CONFIG, load_config, resolve_config


def test_missing_file_uses_defaults(tmp_path):
    config = load_config(str(tmp_path / "missing.yaml"))
    assert config == DEFAULT_CONFIG
    assert config is not DEFAULT_CONFIG


def test_partial_file_is_merged(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("min_history_bars: 50\ndivergence:\n  lookback: 20\n")
    config = load_config(str(path))

    assert config['min_history_bars'] == 50
    assert config['divergence']['lookback'] == 20
    assert config['divergence']['rsi_gap_pct'] == DEFAULT_CONFIG['divergence']['rsi_gap_pct'], \
        "Nested keys not in the file keep their defaults"


def test_broken_file_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("divergence: [unclosed\n")
    assert load_config(str(path)) == DEFAULT_CONFIG

    path.write_text("- just\n- a list\n")
    assert load_config(str(path)) == DEFAULT_CONFIG


def test_resolve_config_does_not_mutate_defaults():
    config = resolve_config({'targets': {'default_up_pct': 20.0}})
    config['multi_view']['windows']['short']['bars'] = 1

    assert config['targets']['default_up_pct'] == 20.0
    assert config['targets']['default_stop_pct'] == 5.0
    assert DEFAULT_CONFIG['multi_view']['windows']['short']['bars'] == 130
    assert resolve_config() == DEFAULT_CONFIG
