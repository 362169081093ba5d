from pathlib import Path

WORKFLOW = Path(__file__).resolve().parent.parent / ".github" / "workflows" / "ci.yml"


class TestWorkflow:
    """Test the CI workflow builds, tests and lints on every change."""

    def test_runs_on_push_and_pull_request(self):
        text = WORKFLOW.read_text()

        assert "push:" in text
        assert "pull_request:" in text

    def test_installs_tests_and_lints(self):
        text = WORKFLOW.read_text()

        assert 'pip install -e ".[test,lint]"' in text
        assert "run: pytest" in text
        assert "run: pylint" in text
