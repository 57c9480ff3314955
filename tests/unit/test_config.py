import pytest

from namespace_helm_exporter.config import ConfigValidator, ExportConfig, RuleLoader, SanitationRule
from namespace_helm_exporter.types import RuleSetError
from namespace_helm_exporter.utils import WILDCARD


def test_default_rules_load():
    rules = RuleLoader().load()

    assert any(rule.selector == "metadata.managedFields" for rule in rules.global_rules)
    assert [rule.selector for rule in rules.rules_for("v1", "Service")][:1] == ["spec.clusterIP"]
    assert rules.rules_for("v1", "Unknown") == ()


def test_rules_file(tmp_path):
    rules_file = tmp_path / "rules.yaml"
    rules_file.write_text(
        "global:\n"
        "  metadata.labels.env: null\n"
        "kinds:\n"
        "  apps/v1/Deployment:\n"
        "    spec.replicas: 1\n"
        "    spec.template.spec.containers[*].image: registry.example/app:latest\n"
    )

    rules = RuleLoader().load(str(rules_file))

    [global_rule] = rules.global_rules
    assert global_rule.deletes
    replicas, image = rules.rules_for("apps/v1", "Deployment")
    assert replicas.replacement == 1
    assert not replicas.deletes
    assert image.pattern == ("spec", "template", "spec", "containers", WILDCARD, "image")


def test_empty_rules_file_means_no_rules(tmp_path):
    rules_file = tmp_path / "rules.yaml"
    rules_file.write_text("")

    rules = RuleLoader().load(str(rules_file))

    assert rules.global_rules == ()
    assert dict(rules.kind_rules) == {}


@pytest.mark.parametrize(
    "data",
    [
        ["metadata.uid"],
        {"globals": {}},
        {"global": ["metadata.uid"]},
        {"kinds": {"Deployment": {"spec.replicas": 1}}},
        {"kinds": ["v1/Service"]},
        {"global": {"metadata..uid": None}},
        {"global": {"$": None}},
    ],
)
def test_malformed_rule_sets(data):
    with pytest.raises(RuleSetError) as excinfo:
        RuleLoader().parse(data)

    assert excinfo.value.exit_code == 7


def test_unreadable_rules_file(tmp_path):
    with pytest.raises(RuleSetError):
        RuleLoader().load(str(tmp_path / "missing.yaml"))

    broken = tmp_path / "broken.yaml"
    broken.write_text("global: {unclosed")
    with pytest.raises(RuleSetError):
        RuleLoader().load(str(broken))


def test_sanitation_rule_parse():
    rule = SanitationRule.parse('metadata.annotations["openshift.io/generated-by"]')

    assert rule.pattern == ("metadata", "annotations", "openshift.io/generated-by")
    assert rule.deletes


def test_validate_export_config_defaults():
    assert ConfigValidator().validate_export_config(ExportConfig()) == []


def test_validate_export_config_errors(tmp_path):
    config = ExportConfig(
        chart_name="Not_Valid",
        namespace="UPPER",
        cluster_url="ftp://cluster",
        rules_file=str(tmp_path / "missing.yaml"),
        connect_timeout=0,
        max_workers=0,
    )

    errors = ConfigValidator().validate_export_config(config)

    assert len(errors) == 6


def test_ignored_kind_set_is_case_insensitive():
    assert ExportConfig(ignored_kinds=["Pod", "ReplicationController"]).ignored_kind_set == frozenset(
        {"pod", "replicationcontroller"}
    )
