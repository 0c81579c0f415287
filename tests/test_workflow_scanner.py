"""Tests for workflow secret reference scanning."""
from gh_secrets_sync.secrets.domains.workflow_scanner import is_workflow_file, scan_references


def test_collects_one_secret():
    result = scan_references({"one.yaml": "some random yaml content: ${{ secrets.ONE_SECRET }} here"})
    assert result == {"ONE_SECRET": {"one.yaml"}}


def test_same_secret_in_two_files():
    result = scan_references({
        "a": "${{ secrets.X }}",
        "b": "${{ secrets.X }}",
    })
    assert result == {"X": {"a", "b"}}


def test_repeated_reference_in_one_file_counts_once():
    result = scan_references({"ci.yml": "${{ secrets.X }} ${{secrets.X}}\n${{ secrets.X }}"})
    assert result == {"X": {"ci.yml"}}


def test_whitespace_inside_braces_is_ignored():
    text = "a: ${{secrets.TIGHT}}\nb: ${{   secrets.LOOSE   }}\nc: ${{\tsecrets.TABBED }}"
    assert scan_references({"f.yml": text}) == {
        "TIGHT": {"f.yml"},
        "LOOSE": {"f.yml"},
        "TABBED": {"f.yml"},
    }


def test_many_names_in_one_file():
    text = """
    env:
      TOKEN: ${{ secrets.DEPLOY_TOKEN }}
      PASS: ${{ secrets.DB_PASS }}
    """
    assert scan_references({"deploy.yml": text}) == {
        "DEPLOY_TOKEN": {"deploy.yml"},
        "DB_PASS": {"deploy.yml"},
    }


def test_file_without_references_contributes_nothing():
    result = scan_references({"plain.yml": "run: echo ${{ github.sha }} and secrets.NOT_INTERPOLATED"})
    assert result == {}


def test_empty_input():
    assert scan_references({}) == {}


def test_bytes_content_is_decoded():
    assert scan_references({"ci.yml": b"x: ${{ secrets.FROM_BYTES }}"}) == {"FROM_BYTES": {"ci.yml"}}


def test_scan_is_order_independent():
    files = {"a.yml": "${{ secrets.A }} ${{ secrets.B }}", "b.yml": "${{ secrets.B }}"}
    reordered = dict(reversed(list(files.items())))
    assert scan_references(files) == scan_references(reordered)
    assert scan_references(files) == scan_references(files)


def test_is_workflow_file():
    assert is_workflow_file("ci.yml")
    assert is_workflow_file("release.yaml")
    assert not is_workflow_file("README.md")
    assert not is_workflow_file(".yaml.bak")


def test_references_are_keyed_by_upper_case_name():
    result = scan_references({"ci.yml": "${{ secrets.db_pass }}", "cd.yml": "${{ secrets.DB_PASS }}"})
    assert result == {"DB_PASS": {"ci.yml", "cd.yml"}}
