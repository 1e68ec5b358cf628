import pytest

from scripts import deploy_frontend
from scripts.deploy_frontend import (
    cdk_command,
    check_template_policies,
    main,
    ordered_targets,
    stack_selectors,
)

ENABLED_DISTRIBUTION = {
    "Resources": {
        "Distribution": {
            "Type": "AWS::CloudFront::Distribution",
            "Properties": {"DistributionConfig": {"Enabled": True}},
        }
    }
}


@pytest.fixture(autouse=True)
def _clear_guard_env(monkeypatch):
    for name in ("ALLOW_AWS_DEPLOY", "DEPLOY_CONFIRM", "DESTROY_CONFIRM"):
        monkeypatch.delenv(name, raising=False)


def test_cdk_command_flags():
    assert cdk_command("synth", "Stack") == ["cdk", "synth", "--app", "python3 infra/app.py", "--strict", "--quiet", "Stack"]
    assert cdk_command("deploy", "Stack")[-3:] == ["--require-approval", "never", "Stack"]
    assert cdk_command("destroy", "Stack")[-2:] == ["--force", "Stack"]
    assert cdk_command("diff", "Stack") == ["cdk", "diff", "--app", "python3 infra/app.py", "Stack"]


def test_cdk_command_rejects_unknown_action():
    with pytest.raises(ValueError):
        cdk_command("bootstrap", "Stack")


def test_ordered_targets():
    assert ordered_targets("deploy", "all") == ["pipeline", "infrastructure"]
    assert ordered_targets("destroy", "all") == ["infrastructure", "pipeline"]
    assert ordered_targets("destroy", "pipeline") == ["pipeline"]


def test_stack_selectors(config):
    assert stack_selectors(config) == {
        "pipeline": "BAPSAI-FE-PipelineStack",
        "infrastructure": "BAPSAI-FE-PipelineStack/Deploy/Infrastructure",
    }


def test_dry_run_prints_commands(capsys):
    main(["diff", "--stack", "all"])

    out = capsys.readouterr().out
    assert "DRY RUN: cdk diff --app python3 infra/app.py BAPSAI-FE-PipelineStack" in out
    assert "DRY RUN: cdk diff --app python3 infra/app.py BAPSAI-FE-PipelineStack/Deploy/Infrastructure" in out
    assert "Use --apply flag" in out


def test_destroy_dry_run_runs_in_reverse(capsys):
    main(["destroy", "--stack", "all"])

    out = capsys.readouterr().out
    assert out.index("Deploy/Infrastructure") < out.index("--force BAPSAI-FE-PipelineStack\n")


def test_apply_deploy_requires_confirmation(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["deploy", "--apply"])
    assert exc.value.code == 2
    assert "ALLOW_AWS_DEPLOY=1" in capsys.readouterr().err


def test_apply_destroy_requires_stack_confirmation(monkeypatch, capsys):
    monkeypatch.setenv("ALLOW_AWS_DEPLOY", "1")
    monkeypatch.setenv("DEPLOY_CONFIRM", "I_ACCEPT_CHANGES")

    with pytest.raises(SystemExit) as exc:
        main(["destroy", "--stack", "all", "--apply"])
    assert exc.value.code == 2
    assert "DESTROY_CONFIRM=BAPSAI-FE-PipelineStack" in capsys.readouterr().err


def test_policy_findings_warn_in_dry_run(monkeypatch, config, capsys):
    monkeypatch.setattr(deploy_frontend, "synthesize_infrastructure_template", lambda cfg: ENABLED_DISTRIBUTION)

    check_template_policies(config, dry_run=True)

    out = capsys.readouterr().out
    assert "distribution is enabled" in out
    assert "WARNING: 1 template policy findings (dry-run)" in out


def test_policy_findings_fail_when_applying(monkeypatch, config):
    monkeypatch.setattr(deploy_frontend, "synthesize_infrastructure_template", lambda cfg: ENABLED_DISTRIBUTION)

    with pytest.raises(RuntimeError, match="1 template policy findings"):
        check_template_policies(config, dry_run=False)


def test_deploy_dry_run_checks_policies(monkeypatch, capsys):
    monkeypatch.setattr(deploy_frontend, "synthesize_infrastructure_template", lambda cfg: {"Resources": {}})

    main(["deploy"])

    out = capsys.readouterr().out
    assert "No template policy findings" in out
    assert "DRY RUN: cdk deploy" in out
