"""
Action registry and legacy id mapping.
"""

import pytest
from conftest import TEST_CONFIG, EchoAction, action, condition, trigger

from pystepflow.actions import LEGACY_ACTION_MAPPINGS, ActionRegistry, resolve_legacy_id
from pystepflow.core import EngineConfig, UnknownActionId


@pytest.mark.parametrize(
    "label, expected",
    [
        ("Send Email", "resend/send-email"),
        ("Scrape", "firecrawl/scrape"),
        ("Find Issues", "linear/find-issues"),
        ("resend/send-email", "resend/send-email"),
        ("acme/anything", "acme/anything"),
        ("send email", None),
        (" Send Email", None),
        ("Unknown Label", None),
        ("", None),
        (None, None),
    ],
)
def test_resolve_legacy_id(label, expected):
    assert resolve_legacy_id(label) == expected


def test_every_legacy_mapping_is_namespaced():
    assert all("/" in target for target in LEGACY_ACTION_MAPPINGS.values())


@pytest.mark.parametrize("label", sorted(LEGACY_ACTION_MAPPINGS))
def test_every_legacy_label_resolves_in_default_registry(label):
    registry = ActionRegistry.default()

    descriptor = registry.resolve(resolve_legacy_id(label))

    assert descriptor.action_id == LEGACY_ACTION_MAPPINGS[label]


def test_default_registry_contents():
    registry = ActionRegistry.default()

    assert "resend/send-email" in registry
    assert "ai-gateway/generate-text" in registry
    assert "system/trigger" in registry
    assert len(registry) == len(registry.ids())


def test_ai_actions_toggle():
    registry = ActionRegistry.default(EngineConfig(enable_ai_actions=False))

    assert "ai-gateway/generate-text" not in registry
    assert "firecrawl/scrape" in registry


def test_actions_receive_the_registry_config():
    config = EngineConfig(http_timeout=3.5)
    registry = ActionRegistry.default(config)

    assert registry.resolve("firecrawl/scrape").config.http_timeout == 3.5


def test_resolve_unknown_id():
    with pytest.raises(UnknownActionId) as exc_info:
        ActionRegistry.default().resolve("Send Email")

    assert exc_info.value.action_id == "Send Email"


def test_resolve_node_maps_legacy_labels(registry):
    resolved = registry.resolve_node(action("n", "Mail", "Send Email"))

    assert resolved.action_id == "resend/send-email"


def test_resolve_node_defaults_for_trigger_and_condition(registry):
    assert registry.resolve_node(trigger()).action_id == "system/trigger"
    assert registry.resolve_node(condition("c", "C", "true")).action_id == "system/condition"


def test_duplicate_ids_rejected():
    with pytest.raises(ValueError, match="Duplicate action id"):
        ActionRegistry([EchoAction(), EchoAction()])


def test_extra_actions_cannot_shadow_builtins():
    with pytest.raises(ValueError):
        ActionRegistry.default(TEST_CONFIG, extra=[ActionRegistry.default().resolve("slack/send-message")])


def test_credential_keys_are_collected_once():
    keys = ActionRegistry.default().credential_keys()

    assert "RESEND_API_KEY" in keys
    assert "LINEAR_TEAM_ID" in keys
    assert keys.count("LINEAR_API_KEY") == 1
