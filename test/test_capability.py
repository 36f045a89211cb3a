"""
Tests for capability identity
"""
import pytest

from guidance_console.console.capability import (
    Capability, abbreviate, activated_ids, capability_id, count_activated)


@pytest.mark.parametrize('name, version', [
    ('Lane Keep', '1.2'),
    (' Lane  Keep ', '1.2'),
    ('Lane-Keep', '1_2'),
    ('Lane Keep!', ' 1.2 '),
])
def test_equivalent_names_share_one_id(name, version):
    assert capability_id(name, version) == 'Lane_Keep&1_2'


def test_different_versions_get_different_ids():
    assert capability_id('Cruising', '1.0') != capability_id('Cruising', '2.0')


def test_non_ascii_names_keep_distinct_ids():
    assert capability_id('車線維持', '1.0') == '車線維持&1_0'
    assert capability_id('車線維持', '1.0') != capability_id('自動減速', '1.0')
    assert capability_id('Spurhalte-Assistent für Öl', '1') == 'Spurhalte_Assistent_für_Öl&1'


def test_plugin_report_matches_capability_id():
    # The id built from a registered plugin finds the same capability in an availability report
    registered = Capability('Route Following', '3.0.1', is_activated=True)
    assert capability_id('Route Following', '3.0.1') == registered.id


def test_display_names():
    capability = Capability('Lane Keep Assist', '1.0')
    assert capability.title == 'Lane Keep Assist 1.0'
    assert capability.display_name == 'Lane Keep Assist 1.0 (LKA)'
    assert abbreviate('cruising') == 'c'


def test_display_name_without_letters():
    assert Capability('---', '1').display_name == '--- 1'


def test_counting():
    capabilities = [
        Capability('A', '1', is_activated=True),
        Capability('B', '1'),
        Capability('C', '2', is_activated=True),
    ]
    assert count_activated(capabilities) == 2
    assert activated_ids(capabilities) == ['A&1', 'C&2']
