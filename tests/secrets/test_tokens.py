import pytest

from kubeseed.errors import MissingCredential
from kubeseed.secrets.tokens import detect_target_repo, is_ci, resolve_token, validate_repo


def test_token_precedence():
    env = {"GITHUB_TOKEN": "ghs_actions", "GIT_TOKEN": "ghp_git", "GH_PAT": "  "}
    assert resolve_token(env) == ("GIT_TOKEN", "ghp_git")


def test_missing_token():
    with pytest.raises(MissingCredential, match="GH_PAT"):
        resolve_token({})


@pytest.mark.parametrize(
    "env,expected",
    [
        ({}, False),
        ({"CI": "true"}, True),
        ({"CI": "false"}, False),
        ({"CI": "0", "GITHUB_ACTIONS": "true"}, True),
        ({"GITLAB_CI": "yes"}, True),
    ],
)
def test_is_ci(env, expected):
    assert is_ci(env) is expected


def test_detect_target_repo():
    assert detect_target_repo("acme/app", {"GITHUB_REPOSITORY": "acme/other"}) == "acme/app"
    assert detect_target_repo(None, {"GITHUB_REPOSITORY": "acme/other"}) == "acme/other"
    assert detect_target_repo(None, {}) is None


@pytest.mark.parametrize("repo", ["acme", "acme/app/extra", "", "acme/ app"])
def test_validate_repo_rejects(repo):
    with pytest.raises(ValueError):
        validate_repo(repo)
