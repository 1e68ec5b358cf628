import pytest

from deployer_guard import (
    CONFIRM_TOKEN,
    is_deploy_allowed,
    is_destroy_allowed,
    require_deploy_allowed_or_exit,
)


@pytest.fixture(autouse=True)
def _clear_guard_env(monkeypatch):
    for name in ('ALLOW_AWS_DEPLOY', 'DEPLOY_CONFIRM', 'DESTROY_CONFIRM'):
        monkeypatch.delenv(name, raising=False)


def test_is_deploy_allowed_default_false():
    assert not is_deploy_allowed()


def test_is_deploy_allowed_true_when_both_set(monkeypatch):
    monkeypatch.setenv('ALLOW_AWS_DEPLOY', '1')
    monkeypatch.setenv('DEPLOY_CONFIRM', 'I_ACCEPT_CHANGES')
    assert is_deploy_allowed()


@pytest.mark.parametrize('allow,confirm', [
    ('1', 'i_accept_changes'),
    ('0', CONFIRM_TOKEN),
    ('yes', ''),
])
def test_is_deploy_allowed_requires_exact_confirmation(monkeypatch, allow, confirm):
    monkeypatch.setenv('ALLOW_AWS_DEPLOY', allow)
    monkeypatch.setenv('DEPLOY_CONFIRM', confirm)
    assert not is_deploy_allowed()


def test_is_destroy_allowed_requires_stack_name(monkeypatch):
    monkeypatch.setenv('ALLOW_AWS_DEPLOY', 'true')
    monkeypatch.setenv('DEPLOY_CONFIRM', CONFIRM_TOKEN)
    assert not is_destroy_allowed('BAPSAI-FE-PipelineStack')

    monkeypatch.setenv('DESTROY_CONFIRM', 'BAPSAI-FE-PipelineStack')
    assert is_destroy_allowed('BAPSAI-FE-PipelineStack')
    assert not is_destroy_allowed('BAPSAI-FE-InfrastructureStack')


def test_require_deploy_allowed_or_exit_exits_and_prints_message(capsys):
    with pytest.raises(SystemExit) as exc:
        require_deploy_allowed_or_exit("Test message")

    assert exc.value.code == 2
    captured = capsys.readouterr()
    assert "ERROR: Real AWS deployments are disabled by default." in captured.err
    assert "ALLOW_AWS_DEPLOY=1" in captured.err
    assert "DEPLOY_CONFIRM=I_ACCEPT_CHANGES" in captured.err
    assert "Test message" in captured.err
    assert "DESTROY_CONFIRM" not in captured.err


def test_require_deploy_allowed_passes_when_confirmed(monkeypatch):
    monkeypatch.setenv('ALLOW_AWS_DEPLOY', '1')
    monkeypatch.setenv('DEPLOY_CONFIRM', CONFIRM_TOKEN)
    require_deploy_allowed_or_exit("unused")


def test_require_destroy_confirmation(monkeypatch, capsys):
    monkeypatch.setenv('ALLOW_AWS_DEPLOY', '1')
    monkeypatch.setenv('DEPLOY_CONFIRM', CONFIRM_TOKEN)

    with pytest.raises(SystemExit):
        require_deploy_allowed_or_exit(destroy_stack='BAPSAI-FE-PipelineStack')
    assert "DESTROY_CONFIRM=BAPSAI-FE-PipelineStack" in capsys.readouterr().err

    monkeypatch.setenv('DESTROY_CONFIRM', 'BAPSAI-FE-PipelineStack')
    require_deploy_allowed_or_exit(destroy_stack='BAPSAI-FE-PipelineStack')
